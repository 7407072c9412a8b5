"""
Webhook 事件日志 - durable record of every processed or failed event.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class EventOutcome(str, Enum):
    PROCESSED = "processed"
    FAILED = "failed"


@dataclass
class WebhookEvent:
    natural_key: str
    gateway: str
    event_type: str
    outcome: EventOutcome
    order_id: Optional[str] = None
    result: dict[str, Any] = field(default_factory=dict)
    attempt: int = 1
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if self.created_at is None:
            self.created_at = datetime.now(timezone.utc)
