"""
配送单领域实体
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class ShipmentStatus(str, Enum):
    PENDING = "pending"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    FAILED = "failed"
    CANCELLED = "cancelled"
    RETURNED = "returned"
    UNKNOWN = "unknown"


@dataclass
class Shipment:
    id: str
    order_id: str
    provider: str
    external_id: Optional[str] = None
    tracking_id: Optional[str] = None
    status: str = ShipmentStatus.PENDING.value
    raw_status: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    last_checked: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def record_status(self, normalized: ShipmentStatus, raw_status: str, payload: dict[str, Any]) -> str:
        """Store a pushed status; returns the previous normalised status."""
        previous = self.status
        now = datetime.now(timezone.utc)
        self.status = normalized.value
        self.raw_status = raw_status
        self.metadata = {
            **(self.metadata or {}),
            "last_webhook_payload": payload,
            "last_webhook_at": now.isoformat(),
        }
        self.last_checked = now
        self.updated_at = now
        return previous
