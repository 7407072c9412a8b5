"""
Webhook 事件日志数据库模型
"""
from sqlalchemy import Column, Integer, String, DateTime, JSON, Index, text
from datetime import datetime, timezone

from .base import Base


class WebhookEventModel(Base):
    """
    事件日志（只追加）

    同一 natural_key 可有多条 failed 行，但最多一条 processed 行
    """
    __tablename__ = "webhook_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    natural_key = Column(String(255), nullable=False, index=True, comment="渠道事件自然键")
    gateway = Column(String(50), nullable=False, comment="渠道")
    event_type = Column(String(100), nullable=False, comment="事件类型")
    order_id = Column(String(64), nullable=True, index=True, comment="关联订单")
    outcome = Column(String(20), nullable=False, comment="processed/failed")
    attempt = Column(Integer, nullable=False, default=1, comment="投递次数")
    result = Column(JSON, nullable=True, comment="处理结果（审计）")
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="记录时间"
    )

    __table_args__ = (
        Index(
            "uq_webhook_events_processed_key",
            "natural_key",
            unique=True,
            postgresql_where=text("outcome = 'processed'"),
            sqlite_where=text("outcome = 'processed'"),
        ),
    )

    def __repr__(self):
        return f"<WebhookEventModel(id={self.id}, key='{self.natural_key}', outcome='{self.outcome}')>"
