"""
Stripe Checkout API Routes

Turns a selected Shippo rate into a hosted Stripe payment page. The price is
re-read from Shippo on every call so a tampered client amount is never charged.
"""
import logging

from fastapi import APIRouter, Depends

from shiprelay.api.deps import get_fulfillment_service
from shiprelay.core.error_handler import error_response
from shiprelay.schemas.payments import CheckoutRequest, CheckoutResponse
from shiprelay.services.fulfillment_service import FulfillmentService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Checkout"])


@router.post("/checkout", response_model=CheckoutResponse)
async def create_checkout(
    payload: CheckoutRequest,
    fulfillment: FulfillmentService = Depends(get_fulfillment_service),
):
    """
    Create a Checkout Session for the chosen rate.

    Each call creates a new session; retries are not deduplicated.
    """
    result = await fulfillment.start_checkout(
        reference=payload.shipment_reference,
        rate_id=payload.rate_id,
        client_amount=payload.amount,
    )

    if not result.success:
        return error_response(result.status_code, result.error)

    return CheckoutResponse(url=result.url)
