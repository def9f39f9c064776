"""
Shipping Schemas

Pydantic models for Shippo responses (validated at the client boundary)
and for the relay's own shipping API requests and responses.
"""
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ==================== Shippo Upstream Schemas ====================


class ShippoServiceLevel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    token: Optional[str] = None


class ShippoRate(BaseModel):
    """A rate object as returned inside a Shippo shipment."""
    model_config = ConfigDict(extra="ignore")

    object_id: str = Field(..., min_length=1)
    provider: str
    servicelevel: ShippoServiceLevel
    amount: Decimal = Field(..., ge=0)
    currency: Optional[str] = None
    estimated_days: Optional[int] = None


class ShippoAddress(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    email: Optional[str] = None


class ShippoShipment(BaseModel):
    model_config = ConfigDict(extra="ignore")

    object_id: str = Field(..., min_length=1)
    status: Optional[str] = None
    address_to: Optional[ShippoAddress] = None
    rates: List[ShippoRate] = []

    @field_validator("address_to", mode="before")
    @classmethod
    def address_id_only(cls, v):
        # Shippo returns a bare object id when the address is not expanded
        if isinstance(v, str):
            return None
        return v


class ShippoMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    source: Optional[str] = None
    code: Optional[str] = None
    text: Optional[str] = None


class ShippoTransaction(BaseModel):
    """Result of POST /transactions/ (label purchase)."""
    model_config = ConfigDict(extra="ignore")

    object_id: Optional[str] = None
    status: str
    rate: Optional[str] = None
    tracking_number: Optional[str] = None
    label_url: Optional[str] = None
    messages: List[ShippoMessage] = []

    @property
    def succeeded(self) -> bool:
        return self.status.upper() == "SUCCESS"

    def error_text(self) -> str:
        texts = [m.text for m in self.messages if m.text]
        return "; ".join(texts) or f"transaction status {self.status}"


# ==================== Relay API Schemas ====================


class RateOut(BaseModel):
    """Normalized rate returned to the front-end."""
    rate_id: str
    carrier: str
    service: str
    amount: float
    eta: Optional[int] = None


class CustomerOut(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None


class ShippingRatesResponse(BaseModel):
    customer: Optional[CustomerOut] = None
    rates: List[RateOut]


class CreateShippingSessionRequest(BaseModel):
    """Zapier intake: addresses and parcel in Shippo's own shape."""
    model_config = ConfigDict(populate_by_name=True)

    address_from: Dict[str, Any] = Field(..., alias="from")
    address_to: Dict[str, Any] = Field(..., alias="to")
    parcel: Dict[str, Any]


class CreateShippingSessionResponse(BaseModel):
    shipping_session_id: str
    checkout_url: str
