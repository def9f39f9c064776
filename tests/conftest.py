"""
Pytest configuration and fixtures for Ship Relay tests.
"""
import hashlib
import hmac
import json
import os
import time
from typing import Any, Dict, Optional
from unittest.mock import AsyncMock

import pytest

# Set test environment before importing app modules
os.environ["ENVIRONMENT"] = "development"

from fastapi.testclient import TestClient

from shiprelay.core.config import Settings
from shiprelay.core.redis_client import WebhookEventStore
from shiprelay.main import create_app
from shiprelay.schemas.shipping import ShippoShipment, ShippoTransaction
from shiprelay.services.stripe_gateway import CheckoutSessionHandle, StripeGateway

SHIPPO_TEST_KEY = "shippo_test_0123456789abcdef"
STRIPE_TEST_KEY = "sk_test_51AbCdEfGhIjKlMnOp"
WEBHOOK_TEST_SECRET = "whsec_test_signing_secret"
BASE_URL = "https://relay.example.com"


def sign_stripe_payload(
    payload: bytes,
    secret: str = WEBHOOK_TEST_SECRET,
    timestamp: Optional[int] = None,
) -> str:
    """Build a Stripe-Signature header the way Stripe signs deliveries."""
    timestamp = timestamp or int(time.time())
    signed_payload = f"{timestamp}.{payload.decode('utf-8')}"
    signature = hmac.new(
        secret.encode("utf-8"),
        signed_payload.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    return f"t={timestamp},v1={signature}"


def build_stripe_event(
    event_type: str = "checkout.session.completed",
    event_id: str = "evt_test_1",
    metadata: Optional[Dict[str, Any]] = None,
) -> bytes:
    event = {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {
            "object": {
                "id": "cs_test_1",
                "object": "checkout.session",
                "payment_status": "paid",
                "metadata": metadata if metadata is not None else {"rateId": "RATE_A", "shipmentId": "SHIP_1"},
            }
        },
    }
    return json.dumps(event).encode("utf-8")


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        ENVIRONMENT="development",
        SHIPPO_API_KEY=SHIPPO_TEST_KEY,
        STRIPE_SECRET_KEY=STRIPE_TEST_KEY,
        STRIPE_WEBHOOK_SECRET=WEBHOOK_TEST_SECRET,
        BASE_URL=BASE_URL,
        REDIS_URL="",
    )


@pytest.fixture
def shipment_payload() -> Dict[str, Any]:
    """Shippo GET /shipments/SHIP_1 response."""
    return {
        "object_id": "SHIP_1",
        "status": "SUCCESS",
        "address_to": {
            "object_id": "ADDR_TO",
            "name": "Jane Reader",
            "email": "jane@example.com",
        },
        "rates": [
            {
                "object_id": "RATE_A",
                "provider": "UPS",
                "servicelevel": {"name": "Ground", "token": "ups_ground"},
                "amount": "12.50",
                "currency": "USD",
                "estimated_days": 3,
            },
            {
                "object_id": "RATE_B",
                "provider": "USPS",
                "servicelevel": {"name": "Priority Mail", "token": "usps_priority"},
                "amount": "8.05",
                "currency": "USD",
                "estimated_days": 2,
            },
        ],
    }


@pytest.fixture
def transaction_payload() -> Dict[str, Any]:
    """Shippo POST /transactions/ success response."""
    return {
        "object_id": "TXN_1",
        "status": "SUCCESS",
        "rate": "RATE_A",
        "tracking_number": "1Z999AA10123456784",
        "label_url": "https://shippo-delivery.s3.amazonaws.com/label.pdf",
        "messages": [],
    }


@pytest.fixture
def mock_shippo_client(shipment_payload, transaction_payload) -> AsyncMock:
    """Create mock Shippo client."""
    client = AsyncMock()
    client.get_shipment = AsyncMock(return_value=ShippoShipment.model_validate(shipment_payload))
    client.purchase_label = AsyncMock(return_value=ShippoTransaction.model_validate(transaction_payload))
    client.create_shipment = AsyncMock(return_value=ShippoShipment.model_validate(shipment_payload))
    client.close = AsyncMock()
    return client


@pytest.fixture
def stripe_gateway(test_settings) -> StripeGateway:
    """Real gateway (real signature checks) with session creation stubbed."""
    gateway = StripeGateway(
        secret_key=test_settings.STRIPE_SECRET_KEY,
        webhook_secret=test_settings.STRIPE_WEBHOOK_SECRET,
        currency=test_settings.STRIPE_CURRENCY,
        base_url=test_settings.BASE_URL,
    )
    gateway.create_checkout_session = AsyncMock(return_value=CheckoutSessionHandle(
        session_id="cs_test_1",
        url="https://checkout.stripe.com/c/pay/cs_test_1",
    ))
    return gateway


@pytest.fixture
def event_store() -> WebhookEventStore:
    return WebhookEventStore()


@pytest.fixture
def app(test_settings, mock_shippo_client, stripe_gateway, event_store):
    return create_app(
        test_settings,
        shippo_client=mock_shippo_client,
        stripe_gateway=stripe_gateway,
        event_store=event_store,
    )


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)
