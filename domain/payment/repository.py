"""
支付仓储接口 - 支付流水与分期计划
"""
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import List, Optional

from .entity import OrderPayment, PaymentPlan


class PaymentLedgerRepository(ABC):
    """支付流水仓储抽象接口（只追加）"""

    @abstractmethod
    async def add(self, payment: OrderPayment) -> OrderPayment:
        """追加一条流水"""
        pass

    @abstractmethod
    async def get_by_reference(self, gateway: str, gateway_reference: str) -> Optional[OrderPayment]:
        """根据渠道交易号获取流水"""
        pass

    @abstractmethod
    async def list_by_order(self, order_id: str) -> List[OrderPayment]:
        """获取订单的全部流水"""
        pass

    @abstractmethod
    async def refunded_total_for_charge(self, gateway: str, charge_reference: str) -> Decimal:
        """某笔扣款已记账的退款总额"""
        pass


class PaymentPlanRepository(ABC):
    """分期计划仓储抽象接口"""

    @abstractmethod
    async def get_by_order(self, order_id: str) -> Optional[PaymentPlan]:
        pass

    @abstractmethod
    async def save(self, plan: PaymentPlan) -> PaymentPlan:
        """新建或更新"""
        pass
