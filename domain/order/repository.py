"""
订单仓储接口 - 定义订单数据访问的抽象接口
"""
from abc import ABC, abstractmethod
from typing import List, Optional

from .entity import Order, OrderItem


class OrderRepository(ABC):
    """订单仓储抽象接口"""

    @abstractmethod
    async def get_by_id(self, order_id: str) -> Optional[Order]:
        """根据ID获取订单（不含明细）"""
        pass

    @abstractmethod
    async def list_items(self, order_id: str) -> List[OrderItem]:
        """获取订单明细"""
        pass

    @abstractmethod
    async def update(self, order: Order) -> Order:
        """按 version 条件更新订单；版本不匹配时抛出 ConcurrencyConflictException"""
        pass
