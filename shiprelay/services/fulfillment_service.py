"""
FulfillmentService - rate inquiry, checkout initiation, label purchase

Single place where the Shippo and Stripe calls are stitched together so the
route handlers stay thin.

Expected failures (unknown shipment, no rates, invalid rate, amount below
the processor minimum) come back as result objects. Exceptions are reserved
for upstream faults: network errors, non-2xx responses, malformed bodies.
"""
import logging
import re
import time
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from shiprelay.core.exceptions import RelayError, ShippingLabelError, ShippingProviderError
from shiprelay.core.redis_client import WebhookEventStore
from shiprelay.schemas.payments import CheckoutSessionObject, StripeEvent
from shiprelay.schemas.shipping import (
    CustomerOut,
    RateOut,
    ShippoRate,
    ShippoShipment,
)
from shiprelay.services.shippo_client import ShippoClient
from shiprelay.services.stripe_gateway import STRIPE_MINIMUM_CHARGE_CENTS, StripeGateway

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED_EVENT = "checkout.session.completed"

# Shippo statuses that mean "the reference itself is bad", not an outage
NOT_FOUND_STATUSES = {404: "shipment not found", 400: "invalid shipment reference"}

# Shippo object ids are opaque tokens; anything else never reaches the URL
SHIPMENT_REFERENCE_PATTERN = re.compile(r"[A-Za-z0-9_-]+")


def dollars_to_cents(amount: Decimal) -> int:
    """Convert a dollar amount to integer cents, rounding half up."""
    quantized = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return int(quantized * 100)


def normalize_rate(rate: ShippoRate) -> RateOut:
    return RateOut(
        rate_id=rate.object_id,
        carrier=rate.provider,
        service=rate.servicelevel.name,
        amount=float(rate.amount),
        eta=rate.estimated_days,
    )


def find_rate(shipment: ShippoShipment, rate_id: str) -> Optional[ShippoRate]:
    """Locate a rate in the shipment's authoritative rate set."""
    for rate in shipment.rates:
        if rate.object_id == rate_id:
            return rate
    return None


class RateInquiryResult:
    """Result of a rate lookup."""

    def __init__(
        self,
        success: bool,
        rates: Optional[List[RateOut]] = None,
        customer: Optional[CustomerOut] = None,
        error: Optional[str] = None,
        status_code: int = 200,
    ):
        self.success = success
        self.rates = rates or []
        self.customer = customer
        self.error = error
        self.status_code = status_code


class CheckoutResult:
    """Result of checkout initiation."""

    def __init__(
        self,
        success: bool,
        url: Optional[str] = None,
        session_id: Optional[str] = None,
        unit_amount: Optional[int] = None,
        error: Optional[str] = None,
        status_code: int = 200,
    ):
        self.success = success
        self.url = url
        self.session_id = session_id
        self.unit_amount = unit_amount
        self.error = error
        self.status_code = status_code


class LabelPurchaseResult:
    """Result of a successful label purchase."""

    def __init__(
        self,
        transaction_id: Optional[str],
        tracking_number: Optional[str] = None,
        label_url: Optional[str] = None,
    ):
        self.transaction_id = transaction_id
        self.tracking_number = tracking_number
        self.label_url = label_url


class WebhookOutcome(str, Enum):
    IGNORED = "ignored"
    DUPLICATE = "duplicate"
    MISSING_RATE = "missing_rate"
    LABEL_PURCHASED = "label_purchased"
    LABEL_FAILED = "label_failed"


class FulfillmentService:
    """Relay between the shipping provider and the payment processor."""

    def __init__(
        self,
        shippo: ShippoClient,
        payments: StripeGateway,
        event_store: WebhookEventStore,
        base_url: str = "",
        label_file_type: str = "PDF",
    ):
        self.shippo = shippo
        self.payments = payments
        self.event_store = event_store
        self.base_url = base_url.rstrip("/")
        self.label_file_type = label_file_type

    async def _load_shipment(
        self, reference: str
    ) -> Tuple[Optional[ShippoShipment], Optional[Tuple[str, int]]]:
        """
        Fetch a shipment, folding "bad reference" responses into a value.

        Returns (shipment, None) or (None, (error, status_code)).
        """
        if not SHIPMENT_REFERENCE_PATTERN.fullmatch(reference):
            return None, (NOT_FOUND_STATUSES[400], 400)

        try:
            shipment = await self.shippo.get_shipment(reference)
        except ShippingProviderError as e:
            if e.upstream_status in NOT_FOUND_STATUSES:
                return None, (NOT_FOUND_STATUSES[e.upstream_status], e.upstream_status)
            raise

        if not shipment.rates:
            return None, ("no rates available for shipment", 404)

        return shipment, None

    # ==================== Rate Inquiry ====================

    async def get_rates(self, reference: str) -> RateInquiryResult:
        """Normalized rate list for a shipment reference."""
        if not reference or not reference.strip():
            return RateInquiryResult(False, error="missing shipment reference", status_code=400)

        shipment, failure = await self._load_shipment(reference)
        if failure:
            error, status_code = failure
            return RateInquiryResult(False, error=error, status_code=status_code)

        customer = None
        if shipment.address_to and (shipment.address_to.name or shipment.address_to.email):
            customer = CustomerOut(name=shipment.address_to.name, email=shipment.address_to.email)

        return RateInquiryResult(
            True,
            rates=[normalize_rate(r) for r in shipment.rates],
            customer=customer,
        )

    # ==================== Checkout ====================

    async def start_checkout(
        self,
        reference: Optional[str],
        rate_id: Optional[str],
        client_amount: Optional[float] = None,
    ) -> CheckoutResult:
        """
        Re-validate the selected rate and open a hosted payment session.

        The price always comes from Shippo; `client_amount` is only compared
        and logged.
        """
        start_time = time.time()

        if not reference or not rate_id:
            return CheckoutResult(False, error="missing required fields", status_code=400)

        shipment, failure = await self._load_shipment(reference)
        if failure:
            error, status_code = failure
            return CheckoutResult(False, error=error, status_code=status_code)

        rate = find_rate(shipment, rate_id)
        if rate is None:
            logger.info(f"Checkout rejected: rate {rate_id} not in shipment {reference}")
            return CheckoutResult(False, error="invalid rate", status_code=400)

        unit_amount = dollars_to_cents(rate.amount)

        if client_amount is not None and dollars_to_cents(Decimal(str(client_amount))) != unit_amount:
            logger.warning(
                f"Client amount {client_amount} differs from Shippo amount {rate.amount} "
                f"for rate {rate_id}; using Shippo amount"
            )

        if unit_amount < STRIPE_MINIMUM_CHARGE_CENTS:
            return CheckoutResult(False, error="amount below processor minimum", status_code=400)

        session = await self.payments.create_checkout_session(
            unit_amount_cents=unit_amount,
            metadata={"rateId": rate.object_id, "shipmentId": shipment.object_id},
            description=f"{rate.provider} {rate.servicelevel.name}",
        )

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            f"CHECKOUT_METRIC: session_created "
            f"session_id={session.session_id} "
            f"shipment_id={shipment.object_id} "
            f"rate_id={rate.object_id} "
            f"amount_cents={unit_amount} "
            f"duration_ms={duration_ms:.2f}"
        )

        return CheckoutResult(
            True,
            url=session.url,
            session_id=session.session_id,
            unit_amount=unit_amount,
        )

    # ==================== Label Purchase ====================

    async def purchase_label(self, rate_id: str) -> LabelPurchaseResult:
        """
        Buy the label for a paid rate.

        Raises:
            ShippingLabelError: Shippo accepted the request but the transaction failed
            ShippingProviderError / MalformedUpstreamResponse: upstream fault
        """
        transaction = await self.shippo.purchase_label(
            rate_id,
            label_file_type=self.label_file_type,
            async_=False,
        )

        if not transaction.succeeded:
            raise ShippingLabelError(
                transaction.error_text(),
                rate_id=rate_id,
                transaction_id=transaction.object_id,
            )

        return LabelPurchaseResult(
            transaction_id=transaction.object_id,
            tracking_number=transaction.tracking_number,
            label_url=transaction.label_url,
        )

    # ==================== Webhook ====================

    async def handle_event(self, event: StripeEvent) -> WebhookOutcome:
        """
        Act on a verified Stripe event.

        Never raises for downstream failures: the caller acknowledges the
        delivery regardless, and failures are logged here.
        """
        if event.type != CHECKOUT_COMPLETED_EVENT:
            logger.info(f"Unhandled webhook event type: {event.type} (event_id={event.id})")
            return WebhookOutcome.IGNORED

        try:
            session = CheckoutSessionObject.model_validate(event.data.object)
        except ValidationError:
            logger.warning(f"Malformed checkout session in event {event.id}; no label purchased")
            return WebhookOutcome.MISSING_RATE

        rate_id = session.rate_id
        if not rate_id:
            logger.warning(
                f"Checkout session {session.id} completed without rateId metadata "
                f"(event_id={event.id}); no label purchased"
            )
            return WebhookOutcome.MISSING_RATE

        if not await self.event_store.claim(event.id):
            logger.info(f"Stripe webhook event {event.id} already processed, skipping")
            return WebhookOutcome.DUPLICATE

        start_time = time.time()
        try:
            label = await self.purchase_label(rate_id)
        except RelayError as e:
            logger.error(
                f"Label purchase failed for event {event.id} rate {rate_id}: "
                f"{e.code} {e.message}"
            )
            return WebhookOutcome.LABEL_FAILED
        except Exception as e:
            logger.error(
                f"Label purchase crashed for event {event.id} rate {rate_id}: {e}",
                exc_info=True,
            )
            return WebhookOutcome.LABEL_FAILED

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            f"FULFILLMENT_METRIC: label_purchased "
            f"event_id={event.id} "
            f"session_id={session.id} "
            f"rate_id={rate_id} "
            f"transaction_id={label.transaction_id} "
            f"tracking_number={label.tracking_number} "
            f"duration_ms={duration_ms:.2f}"
        )
        return WebhookOutcome.LABEL_PURCHASED

    # ==================== Shipping Session Intake ====================

    async def create_shipping_session(
        self,
        address_from: Dict[str, Any],
        address_to: Dict[str, Any],
        parcel: Dict[str, Any],
    ) -> Dict[str, str]:
        """Create a Shippo shipment and the pay-shipping link for it."""
        shipment = await self.shippo.create_shipment(address_from, address_to, [parcel])
        return {
            "shipping_session_id": shipment.object_id,
            "checkout_url": f"{self.base_url}/pay-shipping.html?session={shipment.object_id}",
        }
