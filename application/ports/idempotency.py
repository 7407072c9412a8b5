"""
Idempotency store port (fast tier).

A present key means "already enqueued" (producer keys) or "already applied"
(consumer keys). Implementations must never raise for backend outages: an
unreachable store behaves like an empty one, and the durable event log
catches the resulting re-delivery.
"""
from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class IdempotencyStore(Protocol):

    async def seen(self, key: str) -> bool: ...

    async def mark(self, key: str, value: str = "1", ttl: Optional[int] = None) -> bool:
        """Set the key; returns False when the backend could not record it."""
        ...


def producer_key(gateway: str, natural_id: str) -> str:
    prefix = "ssl" if gateway == "sslcommerz" else gateway
    return f"{prefix}_wh:{natural_id}"


def consumer_key(natural_key: str) -> str:
    return f"applied:{natural_key}"
