"""
订单数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，不是领域模型
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, Index
from datetime import datetime, timezone

from .base import Base


class OrderModel(Base):
    """
    订单数据库模型

    所有业务规则都在 domain.order.entity.Order 中
    """
    __tablename__ = "orders"

    id = Column(String(64), primary_key=True, comment="订单ID")

    # 金额（主币单位）
    total_amount = Column(Numeric(precision=15, scale=2), nullable=False, comment="订单总额")
    paid_amount = Column(Numeric(precision=15, scale=2), nullable=False, default=0, comment="已付金额")
    balance_due = Column(Numeric(precision=15, scale=2), nullable=False, default=0, comment="待付金额")

    # 状态
    payment_status = Column(String(20), nullable=False, default="unpaid", index=True,
                            comment="支付状态: unpaid/partial/paid/refunded")
    status = Column(String(20), nullable=False, default="pending", index=True,
                    comment="订单状态: pending/processing/confirmed/shipped/delivered/cancelled/returned")
    inventory_state = Column(String(20), nullable=False, default="reserved",
                             comment="库存占用状态: reserved/sold/released")
    payment_intent_reference = Column(String(200), nullable=True, index=True, comment="渠道会话/意图ID")

    # 客户信息（通知用）
    customer_name = Column(String(200), nullable=False, default="", comment="客户姓名")
    customer_email = Column(String(200), nullable=True, comment="客户邮箱")

    # 乐观锁
    version = Column(Integer, nullable=False, default=1, comment="版本号")

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="创建时间"
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="更新时间"
    )

    def __repr__(self):
        return (
            f"<OrderModel(id='{self.id}', total={self.total_amount}, paid={self.paid_amount}, "
            f"payment_status='{self.payment_status}', version={self.version})>"
        )


class OrderItemModel(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(64), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    variant_id = Column(String(64), ForeignKey("product_variants.id", ondelete="SET NULL"), nullable=True)
    quantity = Column(Integer, nullable=False, comment="数量")

    __table_args__ = (
        Index("ix_order_items_variant", "variant_id"),
    )
