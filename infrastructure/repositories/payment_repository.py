"""
支付仓储实现 - 支付流水与分期计划
"""
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from domain.common.exceptions import ConcurrencyConflictException
from domain.payment.entity import (
    LedgerStatus,
    OrderPayment,
    PaymentPlan,
    PaymentPlanStatus,
    PaymentType,
)
from domain.payment.repository import PaymentLedgerRepository, PaymentPlanRepository
from infrastructure.models.payment import OrderPaymentModel, PaymentPlanModel


class SQLAlchemyPaymentLedgerRepository(PaymentLedgerRepository):
    """支付流水仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: OrderPaymentModel) -> OrderPayment:
        return OrderPayment(
            id=model.id,
            order_id=model.order_id,
            gateway=model.gateway,
            payment_type=PaymentType(model.payment_type),
            status=LedgerStatus(model.status),
            amount=Decimal(str(model.amount)),
            currency=model.currency,
            gateway_reference=model.gateway_reference,
            charge_reference=model.charge_reference,
            metadata=model.extra_metadata or {},
            created_at=model.created_at,
        )

    def _to_model(self, entity: OrderPayment) -> OrderPaymentModel:
        return OrderPaymentModel(
            order_id=entity.order_id,
            gateway=entity.gateway,
            payment_type=entity.payment_type.value,
            status=entity.status.value,
            amount=entity.amount,
            currency=entity.currency.upper(),
            gateway_reference=entity.gateway_reference,
            charge_reference=entity.charge_reference,
            extra_metadata=entity.metadata or None,
            created_at=entity.created_at,
        )

    async def add(self, payment: OrderPayment) -> OrderPayment:
        db_payment = self._to_model(payment)
        self.session.add(db_payment)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            # 并发写入了同一渠道交易号
            raise ConcurrencyConflictException("OrderPayment", payment.gateway_reference) from exc
        payment.id = db_payment.id
        return payment

    async def get_by_reference(self, gateway: str, gateway_reference: str) -> Optional[OrderPayment]:
        """只匹配成功流水；失败尝试不占用渠道交易号"""
        result = await self.session.execute(
            select(OrderPaymentModel).where(
                OrderPaymentModel.gateway == gateway,
                OrderPaymentModel.gateway_reference == gateway_reference,
                OrderPaymentModel.status == LedgerStatus.SUCCEEDED.value,
            )
        )
        model = result.scalars().first()
        return self._to_entity(model) if model else None

    async def list_by_order(self, order_id: str) -> List[OrderPayment]:
        result = await self.session.execute(
            select(OrderPaymentModel)
            .where(OrderPaymentModel.order_id == order_id)
            .order_by(OrderPaymentModel.id)
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def refunded_total_for_charge(self, gateway: str, charge_reference: str) -> Decimal:
        result = await self.session.execute(
            select(func.coalesce(func.sum(OrderPaymentModel.amount), 0)).where(
                OrderPaymentModel.gateway == gateway,
                OrderPaymentModel.charge_reference == charge_reference,
                OrderPaymentModel.payment_type == PaymentType.REFUND.value,
                OrderPaymentModel.status == LedgerStatus.SUCCEEDED.value,
            )
        )
        return Decimal(str(result.scalar_one()))


class SQLAlchemyPaymentPlanRepository(PaymentPlanRepository):
    """分期计划仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: PaymentPlanModel) -> PaymentPlan:
        return PaymentPlan(
            id=model.id,
            order_id=model.order_id,
            total_amount=Decimal(str(model.total_amount)),
            deposit_amount=Decimal(str(model.deposit_amount)),
            balance_due=Decimal(str(model.balance_due)),
            status=PaymentPlanStatus(model.status),
            deposit_paid_at=model.deposit_paid_at,
            balance_paid_at=model.balance_paid_at,
        )

    async def get_by_order(self, order_id: str) -> Optional[PaymentPlan]:
        result = await self.session.execute(
            select(PaymentPlanModel).where(PaymentPlanModel.order_id == order_id)
        )
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def save(self, plan: PaymentPlan) -> PaymentPlan:
        result = await self.session.execute(
            select(PaymentPlanModel).where(PaymentPlanModel.order_id == plan.order_id)
        )
        model = result.scalar_one_or_none()
        if model is None:
            model = PaymentPlanModel(order_id=plan.order_id)
            self.session.add(model)
        model.total_amount = plan.total_amount
        model.deposit_amount = plan.deposit_amount
        model.balance_due = plan.balance_due
        model.status = plan.status.value
        model.deposit_paid_at = plan.deposit_paid_at
        model.balance_paid_at = plan.balance_paid_at
        await self.session.flush()
        plan.id = model.id
        return plan
