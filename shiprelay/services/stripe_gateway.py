"""
Stripe Gateway

Wraps the two Stripe interactions the relay needs:
1. Create a hosted Checkout Session for a single shipping charge
2. Verify a webhook delivery against the signing secret

The Stripe SDK is synchronous; session creation runs in a worker thread so
the event loop is never blocked. The secret key is passed per call rather
than set on the stripe module.
"""
import asyncio
import logging
from typing import Dict, Optional

import stripe
from pydantic import ValidationError

from shiprelay.core.exceptions import PaymentSessionError, WebhookVerificationError
from shiprelay.schemas.payments import StripeEvent

logger = logging.getLogger(__name__)

STRIPE_MINIMUM_CHARGE_CENTS = 50
SHIPPING_PRODUCT_NAME = "Shipping Charge"


class CheckoutSessionHandle:
    """The parts of a created Checkout Session the relay hands back."""

    def __init__(self, session_id: str, url: str):
        self.session_id = session_id
        self.url = url


class StripeGateway:
    """Stripe Checkout + webhook verification."""

    def __init__(
        self,
        secret_key: str,
        webhook_secret: str,
        currency: str = "usd",
        base_url: str = "",
    ):
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        self.currency = currency.lower()
        self.base_url = base_url.rstrip("/")

    @property
    def success_url(self) -> str:
        return f"{self.base_url}/success.html"

    @property
    def cancel_url(self) -> str:
        return f"{self.base_url}/cancel.html"

    async def create_checkout_session(
        self,
        unit_amount_cents: int,
        metadata: Dict[str, str],
        description: Optional[str] = None,
    ) -> CheckoutSessionHandle:
        """
        Create a one-line-item payment session.

        Raises:
            PaymentSessionError: Stripe rejected the request or was unreachable
        """
        product_data = {"name": SHIPPING_PRODUCT_NAME}
        if description:
            product_data["description"] = description

        try:
            session = await asyncio.to_thread(
                stripe.checkout.Session.create,
                api_key=self.secret_key,
                mode="payment",
                line_items=[{
                    "price_data": {
                        "currency": self.currency,
                        "product_data": product_data,
                        "unit_amount": unit_amount_cents,
                    },
                    "quantity": 1,
                }],
                metadata=metadata,
                success_url=self.success_url,
                cancel_url=self.cancel_url,
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe checkout session creation failed: {type(e).__name__}")
            raise PaymentSessionError(
                message="Payment processor rejected checkout session",
                details={"upstream_body": e.user_message or str(e)},
            )

        return CheckoutSessionHandle(session_id=session.id, url=session.url)

    def verify_event(self, payload: bytes, signature: Optional[str]) -> StripeEvent:
        """
        Authenticate a webhook delivery and parse it.

        The payload must be the raw request body; any re-serialization breaks
        the signature.

        Raises:
            WebhookVerificationError: missing header, bad signature or malformed payload
        """
        if not signature:
            raise WebhookVerificationError("Missing Stripe-Signature header")

        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except stripe.SignatureVerificationError:
            raise WebhookVerificationError("Invalid webhook signature")
        except ValueError:
            raise WebhookVerificationError("Invalid webhook payload")

        try:
            return StripeEvent.model_validate_json(payload)
        except ValidationError as e:
            raise WebhookVerificationError(
                "Webhook payload missing required event fields",
                details={"errors": e.error_count()},
            )
