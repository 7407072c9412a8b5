"""
Inbound webhook payload DTOs (Pydantic v2).

Each gateway's delivery is validated against an explicit model at the
boundary; nothing loosely typed travels past the gate.
"""
from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _metadata_value(metadata: dict[str, Any], *names: str) -> Optional[str]:
    for name in names:
        value = metadata.get(name)
        if value:
            return str(value)
    return None


# ---------------------------------------------------------------- Stripe

class _StripeObject(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    currency: str = "usd"
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def order_id(self) -> Optional[str]:
        return _metadata_value(self.metadata, "orderId", "order_id")


class StripePaymentError(BaseModel):
    model_config = ConfigDict(extra="ignore")

    code: Optional[str] = None
    message: Optional[str] = None


class StripePaymentIntent(_StripeObject):
    amount: int = 0
    amount_received: int = 0
    latest_charge: Optional[str] = None
    last_payment_error: Optional[StripePaymentError] = None
    cancellation_reason: Optional[str] = None

    @property
    def payment_type(self) -> str:
        value = _metadata_value(self.metadata, "paymentType", "payment_type")
        return value if value in ("full", "deposit", "balance") else "full"

    @field_validator("latest_charge", mode="before")
    @classmethod
    def _expandable_id(cls, v):
        if isinstance(v, dict):
            return v.get("id")
        return v


class StripeCharge(_StripeObject):
    amount: int = 0
    amount_refunded: int = 0
    payment_intent: Optional[str] = None

    @field_validator("payment_intent", mode="before")
    @classmethod
    def _expandable_id(cls, v):
        if isinstance(v, dict):
            return v.get("id")
        return v


class StripeDispute(_StripeObject):
    amount: int = 0
    charge: Optional[str] = None
    payment_intent: Optional[str] = None
    reason: Optional[str] = None

    @field_validator("charge", "payment_intent", mode="before")
    @classmethod
    def _expandable_id(cls, v):
        if isinstance(v, dict):
            return v.get("id")
        return v


class StripeEvent(BaseModel):
    """Envelope of a verified Stripe event; `object` is parsed per event type."""

    model_config = ConfigDict(extra="ignore")

    id: str
    type: str
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def object(self) -> dict[str, Any]:
        return self.data.get("object") or {}


# ---------------------------------------------------------------- SSLCommerz

class SSLCommerzIPN(BaseModel):
    """Form-encoded IPN body. Only identifiers are trusted, and only after validation."""

    model_config = ConfigDict(extra="allow")

    tran_id: str = Field(min_length=1)
    val_id: str = Field(min_length=1)
    status: Optional[str] = None
    amount: Optional[str] = None
    currency: Optional[str] = None
    bank_tran_id: Optional[str] = None
    card_type: Optional[str] = None
    card_brand: Optional[str] = None
    value_a: Optional[str] = None


class SSLCommerzValidation(BaseModel):
    """Response of the validation API (validationserverAPI.php, format=json)."""

    model_config = ConfigDict(extra="allow")

    status: str
    tran_id: Optional[str] = None
    val_id: Optional[str] = None
    amount: Optional[str] = None
    store_amount: Optional[str] = None
    currency: Optional[str] = None
    currency_type: Optional[str] = None
    bank_tran_id: Optional[str] = None
    card_type: Optional[str] = None
    card_brand: Optional[str] = None
    value_a: Optional[str] = None

    @field_validator("status", mode="before")
    @classmethod
    def _upper(cls, v):
        return str(v or "").upper()

    @property
    def payment_type(self) -> str:
        return self.value_a if self.value_a in ("full", "deposit", "balance") else "full"

    @field_validator("amount", "store_amount", mode="before")
    @classmethod
    def _as_text(cls, v):
        return None if v is None else str(v)


# ---------------------------------------------------------------- Couriers

class SteadfastStatusPush(BaseModel):
    model_config = ConfigDict(extra="allow")

    consignment_id: Optional[str] = None
    tracking_code: Optional[str] = None
    status: str = Field(min_length=1)
    invoice: Optional[str] = None
    cod_amount: Optional[float] = None
    note: Optional[str] = None

    @field_validator("consignment_id", mode="before")
    @classmethod
    def _as_text(cls, v):
        return None if v in (None, "") else str(v)

    @model_validator(mode="after")
    def _needs_reference(self):
        if not self.consignment_id and not self.tracking_code:
            raise ValueError("consignment_id or tracking_code is required")
        return self

    @property
    def raw_status(self) -> str:
        return self.status


class PathaoStatusPush(BaseModel):
    model_config = ConfigDict(extra="allow")

    consignment_id: str = Field(min_length=1)
    order_status: Optional[str] = None
    order_status_slug: Optional[str] = None
    merchant_order_id: Optional[str] = None
    invoice_id: Optional[str] = None
    updated_at: Optional[str] = None

    @field_validator("consignment_id", mode="before")
    @classmethod
    def _as_text(cls, v):
        return None if v is None else str(v)

    @model_validator(mode="after")
    def _needs_status(self):
        if not (self.order_status_slug or self.order_status):
            raise ValueError("order_status or order_status_slug is required")
        return self

    @property
    def raw_status(self) -> str:
        return self.order_status_slug or self.order_status or ""

    @property
    def tracking_code(self) -> Optional[str]:
        return None
