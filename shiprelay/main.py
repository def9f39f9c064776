"""
Ship Relay
FastAPI application entry point

Checkout-and-fulfillment relay between Shippo (rates, labels) and Stripe
(hosted checkout, payment webhooks). No local persistence: all state lives
in the two upstream services, apart from the webhook idempotency store.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from shiprelay.api.routes import checkout, sessions, shipping, webhooks
from shiprelay.core.config import Settings, load_settings
from shiprelay.core.error_handler import (
    ErrorSanitizationMiddleware,
    relay_error_handler,
    validation_error_handler,
)
from shiprelay.core.exceptions import RelayError
from shiprelay.core.redis_client import WebhookEventStore
from shiprelay.services.fulfillment_service import FulfillmentService
from shiprelay.services.shippo_client import ShippoClient
from shiprelay.services.stripe_gateway import StripeGateway

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        f"{app.state.settings.APP_NAME} starting "
        f"(environment={app.state.settings.ENVIRONMENT})"
    )
    yield
    await app.state.shippo_client.close()
    logger.info("Shippo HTTP client closed")
    await app.state.event_store.close()
    logger.info("Webhook event store closed")


def create_app(
    settings: Optional[Settings] = None,
    shippo_client: Optional[ShippoClient] = None,
    stripe_gateway: Optional[StripeGateway] = None,
    event_store: Optional[WebhookEventStore] = None,
) -> FastAPI:
    """
    Build the application with every component wired from one Settings object.

    Components may be passed in directly (tests inject fakes this way).
    """
    settings = settings or load_settings()

    shippo_client = shippo_client or ShippoClient(
        api_key=settings.SHIPPO_API_KEY,
        base_url=settings.SHIPPO_API_BASE,
        timeout=settings.SHIPPO_TIMEOUT_SECONDS,
    )
    stripe_gateway = stripe_gateway or StripeGateway(
        secret_key=settings.STRIPE_SECRET_KEY,
        webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
        currency=settings.STRIPE_CURRENCY,
        base_url=settings.BASE_URL,
    )
    event_store = event_store or WebhookEventStore(
        redis_url=settings.REDIS_URL,
        ttl_hours=settings.WEBHOOK_EVENT_TTL_HOURS,
    )

    app = FastAPI(
        title="Ship Relay API",
        description="Shipping rates, Stripe checkout and label purchase relay.",
        version="1.0.0",
        debug=settings.DEBUG,
        lifespan=lifespan,
        openapi_tags=[
            {"name": "Health", "description": "Liveness probe"},
            {"name": "Shipping", "description": "Live Shippo rates for a shipment"},
            {"name": "Checkout", "description": "Stripe Checkout Session creation"},
            {"name": "Webhooks", "description": "Stripe payment notifications"},
            {"name": "Zapier", "description": "Shipping session intake"},
        ],
    )

    app.state.settings = settings
    app.state.shippo_client = shippo_client
    app.state.stripe_gateway = stripe_gateway
    app.state.event_store = event_store
    app.state.fulfillment = FulfillmentService(
        shippo=shippo_client,
        payments=stripe_gateway,
        event_store=event_store,
        base_url=settings.BASE_URL,
        label_file_type=settings.LABEL_FILE_TYPE,
    )

    app.add_exception_handler(RelayError, relay_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_middleware(ErrorSanitizationMiddleware)

    app.include_router(shipping.router, prefix="/api")
    app.include_router(checkout.router, prefix="/api")
    app.include_router(webhooks.router)
    app.include_router(sessions.router)

    @app.get("/", tags=["Health"])
    async def root():
        return {"status": "ok"}

    return app


def run() -> None:
    """Console entry point: configure logging and serve with uvicorn."""
    settings = load_settings()
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.PORT)


if __name__ == "__main__":
    run()
