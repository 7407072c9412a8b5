"""
库存仓储接口
"""
from abc import ABC, abstractmethod
from typing import List, Optional

from .entity import AlertStatus, InventoryMovement, LowStockAlert, Variant


class VariantRepository(ABC):
    """规格库存仓储抽象接口"""

    @abstractmethod
    async def get_by_id(self, variant_id: str) -> Optional[Variant]:
        pass

    @abstractmethod
    async def update_stock(self, variant: Variant) -> Variant:
        """按 version 条件写回 stock/reserved_stock；冲突时抛出 ConcurrencyConflictException"""
        pass


class InventoryMovementRepository(ABC):
    """库存流水仓储抽象接口（只追加）"""

    @abstractmethod
    async def add(self, movement: InventoryMovement) -> InventoryMovement:
        pass

    @abstractmethod
    async def list_by_variant(self, variant_id: str, limit: int = 100) -> List[InventoryMovement]:
        pass


class LowStockAlertRepository(ABC):
    """低库存告警仓储抽象接口"""

    @abstractmethod
    async def get_by_variant(self, variant_id: str) -> Optional[LowStockAlert]:
        pass

    @abstractmethod
    async def save(self, alert: LowStockAlert) -> LowStockAlert:
        pass

    @abstractmethod
    async def list(self, status: Optional[AlertStatus] = None, limit: int = 100) -> List[LowStockAlert]:
        pass
