"""
Webhook Routes

Stripe payment webhook: verifies the signature over the raw body and, for a
completed checkout, buys the shipping label for the rate in the session
metadata.

Returns 200 for every verified delivery, including ones whose label purchase
fails. Stripe retries on non-2xx, and a retry must not turn into a loop of
payment events for a label that cannot be bought.
"""
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from shiprelay.api.deps import get_fulfillment_service, get_stripe_gateway
from shiprelay.core.exceptions import WebhookVerificationError
from shiprelay.schemas.payments import WebhookAck
from shiprelay.services.fulfillment_service import FulfillmentService
from shiprelay.services.stripe_gateway import StripeGateway

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Webhooks"])


@router.post("/webhook/stripe", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    gateway: StripeGateway = Depends(get_stripe_gateway),
    fulfillment: FulfillmentService = Depends(get_fulfillment_service),
):
    """
    Handle Stripe Event Webhook.

    1. Verify signature using STRIPE_WEBHOOK_SECRET (400 plain text on failure)
    2. checkout.session.completed → purchase label once per event id
    3. Everything else → acknowledged, no action
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")

    try:
        event = gateway.verify_event(payload, sig_header)
    except WebhookVerificationError as e:
        logger.warning(f"Stripe webhook rejected: {e.message}")
        return PlainTextResponse("Webhook error", status_code=400)

    logger.info(f"Stripe webhook received: {event.type} (event_id={event.id})")

    outcome = await fulfillment.handle_event(event)
    logger.debug(f"Stripe webhook {event.id} outcome: {outcome.value}")

    return WebhookAck(received=True)
