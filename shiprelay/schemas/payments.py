"""
Payment Schemas

Checkout request/response bodies and the subset of Stripe's webhook event
shape the relay relies on. Events are parsed only after signature checks pass.
"""
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CheckoutRequest(BaseModel):
    """
    Checkout initiation body.

    The shipment reference arrives under different names depending on the
    front-end (sessionId from the Zapier link, orderToken, or shipmentId).
    `amount` is accepted for compatibility but never used for pricing.
    """
    model_config = ConfigDict(populate_by_name=True)

    session_id: Optional[str] = Field(None, alias="sessionId")
    order_token: Optional[str] = Field(None, alias="orderToken")
    shipment_id: Optional[str] = Field(None, alias="shipmentId")
    rate_id: Optional[str] = Field(None, alias="rateId")
    amount: Optional[float] = None

    @property
    def shipment_reference(self) -> Optional[str]:
        return self.shipment_id or self.session_id or self.order_token


class CheckoutResponse(BaseModel):
    url: str


class CheckoutSessionObject(BaseModel):
    """data.object of a checkout.session.* event."""
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    payment_status: Optional[str] = None
    metadata: Dict[str, Any] = {}

    @field_validator("metadata", mode="before")
    @classmethod
    def none_metadata(cls, v):
        return v or {}

    @property
    def rate_id(self) -> Optional[str]:
        return self.metadata.get("rateId") or None


class StripeEventData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    object: Dict[str, Any]


class StripeEvent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    type: str
    data: StripeEventData


class WebhookAck(BaseModel):
    received: bool = True
