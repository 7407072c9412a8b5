"""
订单领域实体 - 订单聚合根

Order is the aggregate the payment event pipeline mutates. Amounts are
Decimal major units; conversion from gateway minor units happens before
any value reaches this module.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from domain.common.exceptions import DomainValidationException, PaymentRejectedException


ZERO = Decimal("0")


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"
    REFUNDED = "refunded"


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"


class InventoryState(str, Enum):
    """What the order currently holds against variant stock."""
    RESERVED = "reserved"   # checkout placed a hold on reserved_stock
    SOLD = "sold"           # hold converted into a permanent deduction
    RELEASED = "released"   # hold dropped or sold stock put back


TERMINAL_ORDER_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.RETURNED, OrderStatus.CANCELLED})


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class OrderItem:
    order_id: str
    variant_id: Optional[str]
    quantity: int
    id: Optional[int] = None


@dataclass
class Order:
    """
    订单聚合根

    业务规则：
    1. paid_amount 不超过 total_amount（退款记账过程中除外）
    2. 未退款时 balance_due = total_amount - paid_amount
    3. version 为乐观锁令牌，每次持久化 +1
    """

    id: str
    total_amount: Decimal
    paid_amount: Decimal = ZERO
    balance_due: Optional[Decimal] = None
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    status: OrderStatus = OrderStatus.PENDING
    payment_intent_reference: Optional[str] = None
    inventory_state: InventoryState = InventoryState.RESERVED
    customer_name: str = ""
    customer_email: Optional[str] = None
    version: int = 1
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    items: list[OrderItem] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.total_amount < 0:
            raise DomainValidationException(
                f"Order total must not be negative: {self.total_amount}",
                field="total_amount",
            )
        if self.balance_due is None:
            self.balance_due = self._computed_balance()

    def _computed_balance(self) -> Decimal:
        return max(ZERO, self.total_amount - self.paid_amount)

    @property
    def is_fully_paid(self) -> bool:
        return self.paid_amount >= self.total_amount

    def apply_payment(self, amount: Decimal) -> PaymentStatus:
        """Credit a captured payment and derive the new payment status."""
        if amount <= 0:
            raise DomainValidationException(f"Payment amount must be positive: {amount}", field="amount")
        if self.payment_status == PaymentStatus.PAID:
            raise PaymentRejectedException.already_paid(self.id)
        self.paid_amount += amount
        self.balance_due = self._computed_balance()
        self.payment_status = PaymentStatus.PAID if self.is_fully_paid else PaymentStatus.PARTIAL
        if self.status == OrderStatus.PENDING:
            self.status = OrderStatus.PROCESSING
        self.updated_at = _now()
        return self.payment_status

    def apply_refund(self, amount: Decimal) -> bool:
        """Debit a refund. Returns True when nothing paid remains (full refund)."""
        if amount <= 0:
            raise DomainValidationException(f"Refund amount must be positive: {amount}", field="amount")
        if self.paid_amount < amount:
            raise PaymentRejectedException.refund_exceeds_paid(self.id, amount, self.paid_amount)
        self.paid_amount -= amount
        full = self.paid_amount <= 0
        if full:
            self.paid_amount = ZERO
            self.payment_status = PaymentStatus.REFUNDED
            self.balance_due = ZERO
        else:
            self.payment_status = PaymentStatus.PARTIAL
            self.balance_due = self._computed_balance()
        self.updated_at = _now()
        return full

    def cancel_unpaid(self) -> None:
        """Cancellation driven by a gateway session that never captured funds."""
        if self.paid_amount > 0:
            raise PaymentRejectedException.funds_captured(self.id, self.paid_amount)
        if self.status in (OrderStatus.PENDING, OrderStatus.PROCESSING):
            self.status = OrderStatus.CANCELLED
        self.payment_status = PaymentStatus.UNPAID
        self.updated_at = _now()

    def status_for_shipment(self, shipment_status: str) -> OrderStatus:
        """Order status implied by a courier shipment status; current status when none applies."""
        current = self.status
        if shipment_status in ("picked_up", "in_transit"):
            return current if current in TERMINAL_ORDER_STATUSES else OrderStatus.SHIPPED
        if shipment_status == "delivered":
            return OrderStatus.DELIVERED
        if shipment_status == "returned":
            return OrderStatus.RETURNED
        if shipment_status == "failed":
            # Delivery failed: back to confirmed so it can be re-dispatched
            if current in (OrderStatus.SHIPPED, OrderStatus.PROCESSING):
                return OrderStatus.CONFIRMED
            return current
        if shipment_status == "cancelled":
            if current == OrderStatus.SHIPPED:
                return OrderStatus.CONFIRMED
            if current in (OrderStatus.PENDING, OrderStatus.PROCESSING):
                return OrderStatus.CANCELLED
            return current
        return current

    def change_status(self, status: OrderStatus) -> None:
        self.status = status
        self.updated_at = _now()
