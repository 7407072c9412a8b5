"""Infrastructure adapters implementing the application IdempotencyStore port."""
from __future__ import annotations

import asyncio
import time
from typing import Dict, Optional, Tuple

from application.ports.idempotency import IdempotencyStore
from core.logging_config import get_logger
from infrastructure.external.cache import RedisClient


logger = get_logger(__name__)


class RedisIdempotencyStore(IdempotencyStore):
    """Keys live under `<namespace>:idem:`; an unreachable Redis reads as a miss."""

    def __init__(self, client: RedisClient, prefix: str = "idem"):
        self._client = client
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    async def seen(self, key: str) -> bool:
        # RedisClient already turns RedisError into 0
        return bool(await self._client.exists(self._key(key)))

    async def mark(self, key: str, value: str = "1", ttl: Optional[int] = None) -> bool:
        ok = await self._client.set(self._key(key), value, ttl=ttl)
        if not ok:
            logger.warning("idempotency_mark_failed", key=key, backend="redis")
        return ok


class InMemoryIdempotencyStore(IdempotencyStore):
    """Process-local store with monotonic-clock expiry.

    Expired keys are dropped when read, and swept in bulk from `mark` at most
    once per `sweep_interval` seconds.
    """

    def __init__(self, default_ttl: Optional[int] = None, sweep_interval: float = 60.0):
        self._default_ttl = default_ttl
        self._sweep_interval = sweep_interval
        self._entries: Dict[str, Tuple[str, Optional[float]]] = {}
        self._lock = asyncio.Lock()
        self._next_sweep = time.monotonic() + sweep_interval

    def _alive(self, key: str) -> bool:
        entry = self._entries.get(key)
        if entry is None:
            return False
        _, expires_at = entry
        if expires_at is not None and expires_at <= time.monotonic():
            del self._entries[key]
            return False
        return True

    async def seen(self, key: str) -> bool:
        async with self._lock:
            return self._alive(key)

    async def mark(self, key: str, value: str = "1", ttl: Optional[int] = None) -> bool:
        expire = ttl if ttl is not None else self._default_ttl
        expires_at = time.monotonic() + expire if expire and expire > 0 else None
        async with self._lock:
            self._sweep()
            self._entries[key] = (value, expires_at)
        return True

    def _sweep(self) -> None:
        now = time.monotonic()
        if now < self._next_sweep:
            return
        self._next_sweep = now + self._sweep_interval
        expired = [k for k, (_, exp) in self._entries.items() if exp is not None and exp <= now]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("idempotency_keys_swept", removed=len(expired), remaining=len(self._entries))

    def value(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        return entry[0] if entry else None

    def __len__(self) -> int:
        return len(self._entries)
