"""
支付领域实体 - 支付流水与分期计划
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from domain.common.exceptions import DomainValidationException


class PaymentType(str, Enum):
    FULL = "full"
    DEPOSIT = "deposit"
    BALANCE = "balance"
    REFUND = "refund"


class LedgerStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class PaymentPlanStatus(str, Enum):
    PENDING = "pending"
    DEPOSIT_PAID = "deposit_paid"
    FULLY_PAID = "fully_paid"


@dataclass
class OrderPayment:
    """
    支付流水 - one row per gateway transaction.

    (gateway, gateway_reference) is unique, which makes redelivered
    confirmations detectable without the fast idempotency cache.
    """

    order_id: str
    gateway: str
    payment_type: PaymentType
    status: LedgerStatus
    amount: Decimal
    currency: str
    gateway_reference: str
    charge_reference: Optional[str] = None
    id: Optional[int] = None
    metadata: dict = field(default_factory=dict)
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if self.amount < 0:
            raise DomainValidationException(f"Ledger amount must not be negative: {self.amount}", field="amount")
        if self.created_at is None:
            self.created_at = datetime.now(timezone.utc)
        if self.metadata is None:
            self.metadata = {}


@dataclass
class PaymentPlan:
    """Deposit/balance split for an order."""

    order_id: str
    total_amount: Decimal
    deposit_amount: Decimal
    balance_due: Decimal
    status: PaymentPlanStatus = PaymentPlanStatus.PENDING
    id: Optional[int] = None
    deposit_paid_at: Optional[datetime] = None
    balance_paid_at: Optional[datetime] = None

    def record_deposit(self, amount: Decimal, paid_total: Decimal) -> None:
        self.deposit_amount = amount
        self.balance_due = max(Decimal("0"), self.total_amount - paid_total)
        self.status = PaymentPlanStatus.DEPOSIT_PAID
        self.deposit_paid_at = datetime.now(timezone.utc)

    def record_balance(self, paid_total: Decimal) -> None:
        self.balance_due = max(Decimal("0"), self.total_amount - paid_total)
        if self.balance_due == 0:
            self.status = PaymentPlanStatus.FULLY_PAID
            self.balance_paid_at = datetime.now(timezone.utc)
