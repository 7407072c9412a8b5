"""
配送单仓储接口
"""
from abc import ABC, abstractmethod
from typing import Optional

from .entity import Shipment


class ShipmentRepository(ABC):

    @abstractmethod
    async def get_by_id(self, shipment_id: str) -> Optional[Shipment]:
        pass

    @abstractmethod
    async def find_by_reference(
        self, provider: str, external_id: Optional[str], tracking_id: Optional[str] = None
    ) -> Optional[Shipment]:
        """先按 external_id 查找，未命中再按 tracking_id 查找"""
        pass

    @abstractmethod
    async def update(self, shipment: Shipment) -> Shipment:
        pass
