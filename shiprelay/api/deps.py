"""
API dependencies

Components are constructed once in create_app() and stored on app.state;
handlers receive them through these dependencies instead of module globals.
"""
from fastapi import Request

from shiprelay.services.fulfillment_service import FulfillmentService
from shiprelay.services.stripe_gateway import StripeGateway


def get_fulfillment_service(request: Request) -> FulfillmentService:
    return request.app.state.fulfillment


def get_stripe_gateway(request: Request) -> StripeGateway:
    return request.app.state.stripe_gateway
