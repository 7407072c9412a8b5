"""SQLAlchemy Unit of Work 实现"""
from __future__ import annotations

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from domain.common.unit_of_work import AbstractUnitOfWork
from infrastructure.repositories.inventory_repository import (
    SQLAlchemyInventoryMovementRepository,
    SQLAlchemyLowStockAlertRepository,
    SQLAlchemyVariantRepository,
)
from infrastructure.repositories.order_repository import SQLAlchemyOrderRepository
from infrastructure.repositories.payment_repository import (
    SQLAlchemyPaymentLedgerRepository,
    SQLAlchemyPaymentPlanRepository,
)
from infrastructure.repositories.shipment_repository import SQLAlchemyShipmentRepository
from infrastructure.repositories.webhook_event_repository import SQLAlchemyWebhookEventRepository


class SQLAlchemyUnitOfWork(AbstractUnitOfWork):
    """一个实例对应一个会话与一个事务；只读模式不开启显式事务"""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], *, readonly: bool = False) -> None:
        super().__init__(readonly=readonly)
        self._session_factory = session_factory
        self.session: Optional[AsyncSession] = None

    async def __aenter__(self) -> "SQLAlchemyUnitOfWork":
        session = self._session_factory()
        self.session = session
        self.orders = SQLAlchemyOrderRepository(session)
        self.payments = SQLAlchemyPaymentLedgerRepository(session)
        self.payment_plans = SQLAlchemyPaymentPlanRepository(session)
        self.webhook_events = SQLAlchemyWebhookEventRepository(session)
        self.variants = SQLAlchemyVariantRepository(session)
        self.movements = SQLAlchemyInventoryMovementRepository(session)
        self.alerts = SQLAlchemyLowStockAlertRepository(session)
        self.shipments = SQLAlchemyShipmentRepository(session)
        if not self._readonly:
            await session.begin()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            await super().__aexit__(exc_type, exc, tb)
        finally:
            if self.session is not None:
                await self.session.close()
                self.session = None

    async def commit(self) -> None:
        if not self._readonly and self.session is not None and self.session.in_transaction():
            await self.session.commit()
        self._committed = True

    async def rollback(self) -> None:
        if self.session is not None and self.session.in_transaction():
            await self.session.rollback()
        self._committed = False
