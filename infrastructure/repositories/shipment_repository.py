"""
配送单仓储实现
"""
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from domain.shipment.entity import Shipment
from domain.shipment.repository import ShipmentRepository
from infrastructure.models.shipment import DeliveryShipmentModel


class SQLAlchemyShipmentRepository(ShipmentRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, m: DeliveryShipmentModel) -> Shipment:
        return Shipment(
            id=m.id,
            order_id=m.order_id,
            provider=m.provider,
            external_id=m.external_id,
            tracking_id=m.tracking_id,
            status=m.status,
            raw_status=m.raw_status,
            metadata=dict(m.extra_metadata or {}),
            last_checked=m.last_checked,
            updated_at=m.updated_at,
        )

    async def get_by_id(self, shipment_id: str) -> Optional[Shipment]:
        result = await self.session.execute(
            select(DeliveryShipmentModel).where(DeliveryShipmentModel.id == shipment_id)
        )
        m = result.scalar_one_or_none()
        return self._to_entity(m) if m else None

    async def find_by_reference(
        self, provider: str, external_id: Optional[str], tracking_id: Optional[str] = None
    ) -> Optional[Shipment]:
        if external_id:
            result = await self.session.execute(
                select(DeliveryShipmentModel).where(
                    DeliveryShipmentModel.provider == provider,
                    DeliveryShipmentModel.external_id == external_id,
                )
            )
            m = result.scalars().first()
            if m is not None:
                return self._to_entity(m)
        if tracking_id:
            result = await self.session.execute(
                select(DeliveryShipmentModel).where(
                    DeliveryShipmentModel.provider == provider,
                    DeliveryShipmentModel.tracking_id == tracking_id,
                )
            )
            m = result.scalars().first()
            if m is not None:
                return self._to_entity(m)
        return None

    async def update(self, shipment: Shipment) -> Shipment:
        result = await self.session.execute(
            select(DeliveryShipmentModel).where(DeliveryShipmentModel.id == shipment.id)
        )
        m = result.scalar_one()
        m.status = shipment.status
        m.raw_status = shipment.raw_status
        m.extra_metadata = shipment.metadata
        m.last_checked = shipment.last_checked
        m.updated_at = shipment.updated_at
        await self.session.flush()
        return shipment
