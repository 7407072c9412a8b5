"""
配送单数据库模型
"""
from sqlalchemy import Column, String, DateTime, JSON, ForeignKey, Index
from datetime import datetime, timezone

from .base import Base


class DeliveryShipmentModel(Base):
    __tablename__ = "delivery_shipments"

    id = Column(String(64), primary_key=True)
    order_id = Column(String(64), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    provider = Column(String(50), nullable=False, comment="快递: steadfast/pathao")
    external_id = Column(String(100), nullable=True, comment="快递单号（consignment）")
    tracking_id = Column(String(100), nullable=True, comment="追踪码")
    status = Column(String(20), nullable=False, default="pending", comment="标准化状态")
    raw_status = Column(String(100), nullable=True, comment="快递原始状态")
    extra_metadata = Column("metadata", JSON, nullable=True, comment="扩展元数据")
    last_checked = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_delivery_shipments_external", "provider", "external_id"),
        Index("ix_delivery_shipments_tracking", "provider", "tracking_id"),
    )
