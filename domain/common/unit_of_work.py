"""Unit of Work 抽象定义"""
from __future__ import annotations

from abc import ABC, abstractmethod

from domain.inventory.repository import (
    InventoryMovementRepository,
    LowStockAlertRepository,
    VariantRepository,
)
from domain.order.repository import OrderRepository
from domain.payment.repository import PaymentLedgerRepository, PaymentPlanRepository
from domain.shipment.repository import ShipmentRepository
from domain.webhook.repository import WebhookEventRepository


class AbstractUnitOfWork(ABC):
    """Transaction boundary over every pipeline repository.

    A clean exit commits unless the caller already did (or the unit is
    read-only); an exception rolls back. The durable event log row and the
    state change it records therefore land together or not at all.
    """

    orders: OrderRepository
    payments: PaymentLedgerRepository
    payment_plans: PaymentPlanRepository
    webhook_events: WebhookEventRepository
    variants: VariantRepository
    movements: InventoryMovementRepository
    alerts: LowStockAlertRepository
    shipments: ShipmentRepository

    def __init__(self, *, readonly: bool = False) -> None:
        self._committed = False
        self._readonly = readonly

    async def __aenter__(self) -> "AbstractUnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc is not None:
            await self.rollback()
        elif not (self._readonly or self._committed):
            await self.commit()

    @property
    def committed(self) -> bool:
        return self._committed

    @abstractmethod
    async def commit(self) -> None: ...

    @abstractmethod
    async def rollback(self) -> None: ...
