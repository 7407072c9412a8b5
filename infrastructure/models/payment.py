"""
支付数据库模型 - 支付流水与分期计划
注意：这是基础设施层的实现细节，不是领域模型
"""
from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, JSON,
    Index, ForeignKey, text
)
from datetime import datetime, timezone

from .base import Base


class OrderPaymentModel(Base):
    """
    支付流水数据库模型

    每笔渠道交易一行；成功流水按 (gateway, gateway_reference) 唯一
    """
    __tablename__ = "order_payments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(64), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)

    gateway = Column(String(50), nullable=False, comment="支付渠道: stripe/sslcommerz")
    payment_type = Column(String(20), nullable=False, comment="full/deposit/balance/refund")
    status = Column(String(20), nullable=False, comment="succeeded/failed")

    amount = Column(Numeric(precision=15, scale=2), nullable=False, comment="金额（主币单位）")
    currency = Column(String(3), nullable=False, comment="货币代码 ISO-4217")

    gateway_reference = Column(String(200), nullable=False, comment="渠道交易号")
    charge_reference = Column(String(200), nullable=True, comment="扣款号（退款对账用）")

    # 使用 extra_metadata 避免与 SQLAlchemy 的 metadata 冲突
    extra_metadata = Column("metadata", JSON, nullable=True, comment="扩展元数据")

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
        comment="创建时间"
    )

    __table_args__ = (
        Index(
            "uq_order_payments_succeeded_reference",
            "gateway",
            "gateway_reference",
            unique=True,
            postgresql_where=text("status = 'succeeded'"),
            sqlite_where=text("status = 'succeeded'"),
        ),
        Index("ix_order_payments_charge", "gateway", "charge_reference"),
    )

    def __repr__(self):
        return (
            f"<OrderPaymentModel(id={self.id}, order_id='{self.order_id}', gateway='{self.gateway}', "
            f"type='{self.payment_type}', amount={self.amount}, status='{self.status}')>"
        )


class PaymentPlanModel(Base):
    """分期（定金/尾款）计划"""
    __tablename__ = "payment_plans"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(64), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, unique=True)

    total_amount = Column(Numeric(precision=15, scale=2), nullable=False)
    deposit_amount = Column(Numeric(precision=15, scale=2), nullable=False)
    balance_due = Column(Numeric(precision=15, scale=2), nullable=False)
    status = Column(String(20), nullable=False, default="pending", comment="pending/deposit_paid/fully_paid")

    deposit_paid_at = Column(DateTime(timezone=True), nullable=True)
    balance_paid_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
