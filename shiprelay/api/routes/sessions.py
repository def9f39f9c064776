"""
Shipping Session Intake Routes

Zapier step that opens a shipping session: creates the Shippo shipment and
returns the pay-shipping link the customer follows to choose a rate.
"""
import logging

from fastapi import APIRouter, Depends

from shiprelay.api.deps import get_fulfillment_service
from shiprelay.schemas.shipping import (
    CreateShippingSessionRequest,
    CreateShippingSessionResponse,
)
from shiprelay.services.fulfillment_service import FulfillmentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/zapier", tags=["Zapier"])


@router.post("/create-shipping-session", response_model=CreateShippingSessionResponse)
async def create_shipping_session(
    payload: CreateShippingSessionRequest,
    fulfillment: FulfillmentService = Depends(get_fulfillment_service),
):
    """Create a Shippo shipment from `from`, `to` and `parcel`."""
    session = await fulfillment.create_shipping_session(
        address_from=payload.address_from,
        address_to=payload.address_to,
        parcel=payload.parcel,
    )
    logger.info(f"Shipping session created: {session['shipping_session_id']}")
    return CreateShippingSessionResponse(**session)
