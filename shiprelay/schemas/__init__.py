from shiprelay.schemas.shipping import (
    ShippoRate,
    ShippoShipment,
    ShippoTransaction,
    RateOut,
    CustomerOut,
    ShippingRatesResponse,
    CreateShippingSessionRequest,
    CreateShippingSessionResponse,
)
from shiprelay.schemas.payments import (
    CheckoutRequest,
    CheckoutResponse,
    CheckoutSessionObject,
    StripeEvent,
    WebhookAck,
)

__all__ = [
    "ShippoRate",
    "ShippoShipment",
    "ShippoTransaction",
    "RateOut",
    "CustomerOut",
    "ShippingRatesResponse",
    "CreateShippingSessionRequest",
    "CreateShippingSessionResponse",
    "CheckoutRequest",
    "CheckoutResponse",
    "CheckoutSessionObject",
    "StripeEvent",
    "WebhookAck",
]
