"""
库存仓储实现
"""
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import get_logger
from domain.common.exceptions import ConcurrencyConflictException
from domain.inventory.entity import (
    AlertStatus,
    InventoryMovement,
    LowStockAlert,
    MovementType,
    Variant,
)
from domain.inventory.repository import (
    InventoryMovementRepository,
    LowStockAlertRepository,
    VariantRepository,
)
from infrastructure.models.inventory import (
    InventoryMovementModel,
    LowStockAlertModel,
    ProductVariantModel,
)


logger = get_logger(__name__)


class SQLAlchemyVariantRepository(VariantRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, variant_id: str) -> Optional[Variant]:
        result = await self.session.execute(
            select(ProductVariantModel)
            .where(ProductVariantModel.id == variant_id)
            .execution_options(populate_existing=True)
        )
        m = result.scalar_one_or_none()
        if m is None:
            return None
        return Variant(
            id=m.id,
            sku=m.sku,
            stock=m.stock,
            reserved_stock=m.reserved_stock,
            low_stock_threshold=m.low_stock_threshold,
            version=m.version,
            updated_at=m.updated_at,
        )

    async def update_stock(self, variant: Variant) -> Variant:
        expected = variant.version
        result = await self.session.execute(
            update(ProductVariantModel)
            .where(ProductVariantModel.id == variant.id, ProductVariantModel.version == expected)
            .values(
                stock=variant.stock,
                reserved_stock=variant.reserved_stock,
                version=expected + 1,
                updated_at=variant.updated_at or datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning("variant_version_conflict", variant_id=variant.id, expected_version=expected)
            raise ConcurrencyConflictException("Variant", variant.id, expected)
        variant.version = expected + 1
        return variant


class SQLAlchemyInventoryMovementRepository(InventoryMovementRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, movement: InventoryMovement) -> InventoryMovement:
        model = InventoryMovementModel(
            variant_id=movement.variant_id,
            movement_type=movement.movement_type.value,
            quantity=movement.quantity,
            previous_stock=movement.previous_stock,
            new_stock=movement.new_stock,
            reason=movement.reason,
            actor_id=movement.actor_id,
            order_id=movement.order_id,
            created_at=movement.created_at,
        )
        self.session.add(model)
        await self.session.flush()
        movement.id = model.id
        return movement

    async def list_by_variant(self, variant_id: str, limit: int = 100) -> List[InventoryMovement]:
        result = await self.session.execute(
            select(InventoryMovementModel)
            .where(InventoryMovementModel.variant_id == variant_id)
            .order_by(InventoryMovementModel.id)
            .limit(limit)
        )
        return [
            InventoryMovement(
                id=m.id,
                variant_id=m.variant_id,
                movement_type=MovementType(m.movement_type),
                quantity=m.quantity,
                previous_stock=m.previous_stock,
                new_stock=m.new_stock,
                reason=m.reason,
                actor_id=m.actor_id,
                order_id=m.order_id,
                created_at=m.created_at,
            )
            for m in result.scalars().all()
        ]


class SQLAlchemyLowStockAlertRepository(LowStockAlertRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, m: LowStockAlertModel) -> LowStockAlert:
        return LowStockAlert(
            id=m.id,
            variant_id=m.variant_id,
            available=m.available,
            threshold=m.threshold,
            status=AlertStatus(m.status),
            acknowledged_by=m.acknowledged_by,
            created_at=m.created_at,
            updated_at=m.updated_at,
        )

    async def get_by_variant(self, variant_id: str) -> Optional[LowStockAlert]:
        result = await self.session.execute(
            select(LowStockAlertModel).where(LowStockAlertModel.variant_id == variant_id)
        )
        m = result.scalar_one_or_none()
        return self._to_entity(m) if m else None

    async def save(self, alert: LowStockAlert) -> LowStockAlert:
        result = await self.session.execute(
            select(LowStockAlertModel).where(LowStockAlertModel.variant_id == alert.variant_id)
        )
        m = result.scalar_one_or_none()
        if m is None:
            m = LowStockAlertModel(variant_id=alert.variant_id)
            self.session.add(m)
        m.available = alert.available
        m.threshold = alert.threshold
        m.status = alert.status.value
        m.acknowledged_by = alert.acknowledged_by
        await self.session.flush()
        alert.id = m.id
        return alert

    async def list(self, status: Optional[AlertStatus] = None, limit: int = 100) -> List[LowStockAlert]:
        query = select(LowStockAlertModel)
        if status is not None:
            query = query.where(LowStockAlertModel.status == status.value)
        query = query.order_by(LowStockAlertModel.id.desc()).limit(limit)
        result = await self.session.execute(query)
        return [self._to_entity(m) for m in result.scalars().all()]
