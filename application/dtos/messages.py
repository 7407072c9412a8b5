"""
Queue message DTOs (Pydantic v2).

Every message on the payment-events queue is one variant of a tagged union
keyed by `type`. Messages carry identifiers and minor-unit amounts only;
the consumer re-derives everything else from the database. Variants are
frozen once built, and a `type` tag is never reused for another shape.
"""
from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

PaymentTypeName = Literal["full", "deposit", "balance"]
NotificationType = Literal["order_created", "order_confirmed", "order_shipped", "order_delivered"]


class _Message(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    order_id: str

    @property
    def gateway(self) -> str:
        return self.type.split(".")[1]  # type: ignore[attr-defined]

    @property
    def natural_key(self) -> str:
        raise NotImplementedError


class _StripeMessage(_Message):
    event_id: str
    payment_intent_id: str = ""

    @property
    def natural_key(self) -> str:
        return self.event_id


class StripePaymentConfirmed(_StripeMessage):
    type: Literal["payment.stripe.confirmed"] = "payment.stripe.confirmed"
    amount: int = Field(ge=0, description="amount_received in minor units")
    currency: str
    payment_type: PaymentTypeName = "full"
    charge_id: Optional[str] = None
    metadata: dict[str, str] = Field(default_factory=dict)


class StripePaymentFailed(_StripeMessage):
    type: Literal["payment.stripe.failed"] = "payment.stripe.failed"
    currency: str = "usd"
    failure_code: Optional[str] = None
    failure_message: Optional[str] = None


class StripePaymentCanceled(_StripeMessage):
    type: Literal["payment.stripe.canceled"] = "payment.stripe.canceled"
    cancellation_reason: Optional[str] = None


class StripeChargeRefunded(_StripeMessage):
    type: Literal["payment.stripe.refunded"] = "payment.stripe.refunded"
    charge_id: str
    amount_refunded: int = Field(ge=0, description="cumulative refunded amount in minor units")
    currency: str


class StripeChargeDisputed(_StripeMessage):
    type: Literal["payment.stripe.disputed"] = "payment.stripe.disputed"
    dispute_id: str
    charge_id: Optional[str] = None
    amount: int = Field(ge=0)
    currency: str
    reason: Optional[str] = None


class SSLCommerzPaymentConfirmed(_Message):
    type: Literal["payment.sslcommerz.confirmed"] = "payment.sslcommerz.confirmed"
    tran_id: str
    val_id: str
    bank_tran_id: Optional[str] = None
    amount: int = Field(ge=0, description="validated amount in minor units")
    currency: str
    payment_type: PaymentTypeName = "full"
    card_type: Optional[str] = None
    card_brand: Optional[str] = None
    metadata: dict[str, str] = Field(default_factory=dict)

    @property
    def natural_key(self) -> str:
        return f"{self.tran_id}_{self.val_id}"


class SSLCommerzPaymentFailed(_Message):
    type: Literal["payment.sslcommerz.failed"] = "payment.sslcommerz.failed"
    tran_id: str
    val_id: str
    status: str

    @property
    def natural_key(self) -> str:
        return f"{self.tran_id}_{self.val_id}"


class ShipmentStatusChanged(_Message):
    type: Literal["shipment.steadfast.status_changed", "shipment.pathao.status_changed"]
    shipment_id: str
    consignment_id: str
    tracking_code: Optional[str] = None
    raw_status: str
    payload: dict[str, Any] = Field(default_factory=dict)

    @property
    def natural_key(self) -> str:
        return f"{self.gateway}_{self.consignment_id}_{self.raw_status}"


class OrderNotification(_Message):
    type: Literal["order.notification"] = "order.notification"
    customer_email: Optional[str] = None
    customer_name: str = ""
    notification_type: NotificationType
    reference: str = Field(default="", description="event that triggered the notification")
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def gateway(self) -> str:
        return "notification"

    @property
    def natural_key(self) -> str:
        return f"notify_{self.order_id}_{self.notification_type}_{self.reference}"


QueueMessage = Annotated[
    Union[
        StripePaymentConfirmed,
        StripePaymentFailed,
        StripePaymentCanceled,
        StripeChargeRefunded,
        StripeChargeDisputed,
        SSLCommerzPaymentConfirmed,
        SSLCommerzPaymentFailed,
        ShipmentStatusChanged,
        OrderNotification,
    ],
    Field(discriminator="type"),
]

_adapter: TypeAdapter[QueueMessage] = TypeAdapter(QueueMessage)


def parse_message(data: dict[str, Any] | str | bytes) -> QueueMessage:
    """Validate a wire payload into its message variant; raises pydantic.ValidationError."""
    if isinstance(data, (str, bytes)):
        return _adapter.validate_json(data)
    return _adapter.validate_python(data)


def dump_message(message: QueueMessage) -> dict[str, Any]:
    return message.model_dump(mode="json")
