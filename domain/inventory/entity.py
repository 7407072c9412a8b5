"""
库存领域实体 - 可售规格、库存流水、低库存告警
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class MovementType(str, Enum):
    ADJUSTED = "adjusted"
    RESERVED = "reserved"
    RELEASED = "released"
    SOLD = "sold"
    RESTOCKED = "restocked"


class AlertStatus(str, Enum):
    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"


@dataclass
class StockChange:
    variant_id: str
    previous_stock: int
    new_stock: int

    @property
    def decreased(self) -> bool:
        return self.new_stock < self.previous_stock


@dataclass
class Variant:
    """
    可售规格（SKU）

    stock 为实物库存计数，reserved_stock 为已下单未结算的占用量；
    两者都不允许为负。
    """

    id: str
    sku: str
    stock: int = 0
    reserved_stock: int = 0
    low_stock_threshold: Optional[int] = None
    version: int = 1
    updated_at: Optional[datetime] = None

    @property
    def available(self) -> int:
        return max(0, self.stock - self.reserved_stock)

    def _touch(self) -> None:
        self.updated_at = datetime.now(timezone.utc)

    def adjust(self, delta: int) -> StockChange:
        previous = self.stock
        self.stock = max(0, previous + delta)
        self._touch()
        return StockChange(self.id, previous, self.stock)

    def release_reservation(self, quantity: int) -> StockChange:
        # stock is untouched; the hold on it is dropped
        self.reserved_stock = max(0, self.reserved_stock - quantity)
        self._touch()
        return StockChange(self.id, self.stock, self.stock)

    def commit_sale(self, quantity: int) -> StockChange:
        previous = self.stock
        self.stock = max(0, previous - quantity)
        self.reserved_stock = max(0, self.reserved_stock - quantity)
        self._touch()
        return StockChange(self.id, previous, self.stock)

    def is_low(self, default_threshold: int) -> bool:
        threshold = self.low_stock_threshold if self.low_stock_threshold is not None else default_threshold
        return self.available <= threshold


@dataclass
class InventoryMovement:
    """库存流水（只追加）"""

    variant_id: str
    movement_type: MovementType
    quantity: int
    previous_stock: int
    new_stock: int
    reason: Optional[str] = None
    actor_id: Optional[str] = None
    order_id: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if self.created_at is None:
            self.created_at = datetime.now(timezone.utc)


@dataclass
class LowStockAlert:
    variant_id: str
    available: int
    threshold: int
    status: AlertStatus = AlertStatus.ACTIVE
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    acknowledged_by: Optional[str] = None

    def reactivate(self, available: int, threshold: int) -> None:
        self.available = available
        self.threshold = threshold
        self.status = AlertStatus.ACTIVE
        self.acknowledged_by = None
        self.updated_at = datetime.now(timezone.utc)

    def resolve(self) -> None:
        self.status = AlertStatus.RESOLVED
        self.updated_at = datetime.now(timezone.utc)

    def acknowledge(self, actor_id: Optional[str]) -> None:
        self.status = AlertStatus.ACKNOWLEDGED
        self.acknowledged_by = actor_id
        self.updated_at = datetime.now(timezone.utc)
