"""
库存数据库模型 - 规格库存、库存流水、低库存告警
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, Text
from datetime import datetime, timezone

from .base import Base


class ProductVariantModel(Base):
    """规格库存计数（stock 为流水的物化汇总）"""
    __tablename__ = "product_variants"

    id = Column(String(64), primary_key=True)
    sku = Column(String(100), nullable=False, unique=True, comment="SKU")
    stock = Column(Integer, nullable=False, default=0, comment="实物库存")
    reserved_stock = Column(Integer, nullable=False, default=0, comment="已占用库存")
    low_stock_threshold = Column(Integer, nullable=True, comment="低库存阈值（空则用全局默认）")
    version = Column(Integer, nullable=False, default=1, comment="版本号")
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def __repr__(self):
        return f"<ProductVariantModel(id='{self.id}', stock={self.stock}, reserved={self.reserved_stock})>"


class InventoryMovementModel(Base):
    """库存流水（只追加）"""
    __tablename__ = "inventory_movements"

    id = Column(Integer, primary_key=True, autoincrement=True)
    variant_id = Column(String(64), ForeignKey("product_variants.id", ondelete="CASCADE"), nullable=False)
    movement_type = Column(String(20), nullable=False, comment="adjusted/reserved/released/sold/restocked")
    quantity = Column(Integer, nullable=False, comment="数量变化")
    previous_stock = Column(Integer, nullable=False)
    new_stock = Column(Integer, nullable=False)
    reason = Column(Text, nullable=True, comment="备注")
    actor_id = Column(String(64), nullable=True, comment="操作人")
    order_id = Column(String(64), nullable=True, index=True, comment="关联订单")
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_inventory_movements_variant_created", "variant_id", "created_at"),
    )


class LowStockAlertModel(Base):
    __tablename__ = "low_stock_alerts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    variant_id = Column(String(64), ForeignKey("product_variants.id", ondelete="CASCADE"),
                        nullable=False, unique=True)
    available = Column(Integer, nullable=False, comment="触发时可用库存")
    threshold = Column(Integer, nullable=False, comment="触发时阈值")
    status = Column(String(20), nullable=False, default="active", index=True,
                    comment="active/acknowledged/resolved")
    acknowledged_by = Column(String(64), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
