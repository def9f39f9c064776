"""
Shipping API Routes

Rate inquiry for a shipment previously created with Shippo. Read-only.
"""
import logging

from fastapi import APIRouter, Depends

from shiprelay.api.deps import get_fulfillment_service
from shiprelay.core.error_handler import error_response
from shiprelay.schemas.shipping import ShippingRatesResponse
from shiprelay.services.fulfillment_service import FulfillmentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/shipping", tags=["Shipping"])


@router.get("/{reference}", response_model=ShippingRatesResponse)
async def get_shipping_rates(
    reference: str,
    fulfillment: FulfillmentService = Depends(get_fulfillment_service),
):
    """
    Live rates for a shipment.

    - 400: malformed reference
    - 404: unknown shipment, or a shipment with no rates
    - 500: Shippo failure, upstream text in `details`
    """
    result = await fulfillment.get_rates(reference)

    if not result.success:
        return error_response(result.status_code, result.error)

    return ShippingRatesResponse(customer=result.customer, rates=result.rates)
