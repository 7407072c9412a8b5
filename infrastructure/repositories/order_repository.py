"""
订单仓储实现 - 使用SQLAlchemy实现数据访问
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import get_logger
from domain.common.exceptions import ConcurrencyConflictException
from domain.order.entity import (
    InventoryState,
    Order,
    OrderItem,
    OrderStatus,
    PaymentStatus,
)
from domain.order.repository import OrderRepository
from infrastructure.models.order import OrderItemModel, OrderModel


logger = get_logger(__name__)


class SQLAlchemyOrderRepository(OrderRepository):
    """订单仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: OrderModel) -> Order:
        """将数据库模型转换为领域实体"""
        return Order(
            id=model.id,
            total_amount=Decimal(str(model.total_amount)),
            paid_amount=Decimal(str(model.paid_amount)),
            balance_due=Decimal(str(model.balance_due)),
            payment_status=PaymentStatus(model.payment_status),
            status=OrderStatus(model.status),
            payment_intent_reference=model.payment_intent_reference,
            inventory_state=InventoryState(model.inventory_state),
            customer_name=model.customer_name or "",
            customer_email=model.customer_email,
            version=model.version,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    async def get_by_id(self, order_id: str) -> Optional[Order]:
        """根据ID获取订单"""
        result = await self.session.execute(
            select(OrderModel)
            .where(OrderModel.id == order_id)
            .execution_options(populate_existing=True)
        )
        db_order = result.scalar_one_or_none()
        return self._to_entity(db_order) if db_order else None

    async def list_items(self, order_id: str) -> List[OrderItem]:
        result = await self.session.execute(
            select(OrderItemModel)
            .where(OrderItemModel.order_id == order_id)
            .order_by(OrderItemModel.id)
        )
        return [
            OrderItem(order_id=m.order_id, variant_id=m.variant_id, quantity=m.quantity, id=m.id)
            for m in result.scalars().all()
        ]

    async def update(self, order: Order) -> Order:
        """按 version 条件更新；0 行受影响说明并发写入"""
        expected = order.version
        result = await self.session.execute(
            update(OrderModel)
            .where(OrderModel.id == order.id, OrderModel.version == expected)
            .values(
                paid_amount=order.paid_amount,
                balance_due=order.balance_due,
                payment_status=order.payment_status.value,
                status=order.status.value,
                inventory_state=order.inventory_state.value,
                payment_intent_reference=order.payment_intent_reference,
                version=expected + 1,
                updated_at=order.updated_at or datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning("order_version_conflict", order_id=order.id, expected_version=expected)
            raise ConcurrencyConflictException("Order", order.id, expected)
        order.version = expected + 1
        return order
