"""
Webhook ingestion: producer side of the payment-events queue.

A gate result is turned into exactly one enqueue, and the producer key is
recorded only after that enqueue succeeded. A failed enqueue leaves no
marker behind, so the provider's redelivery gets another chance.
"""
from __future__ import annotations

from enum import Enum

from application.ports.idempotency import IdempotencyStore
from application.ports.work_queue import WorkQueue
from application.services.gates import GateResult
from core.logging_config import get_logger
from core.settings import WebhookSettings


logger = get_logger(__name__)


class IngestOutcome(str, Enum):
    ENQUEUED = "enqueued"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"


class WebhookIngestion:
    def __init__(self, idempotency: IdempotencyStore, queue: WorkQueue, settings: WebhookSettings) -> None:
        self._idempotency = idempotency
        self._queue = queue
        self._settings = settings

    async def is_duplicate(self, key: str) -> bool:
        return await self._idempotency.seen(key)

    async def ingest(self, result: GateResult) -> IngestOutcome:
        """Enqueue an actionable gate result; raises QueueUnavailableError when the queue is down."""
        if not result.actionable or result.message is None:
            logger.info(
                "webhook_ignored",
                gateway=result.gateway,
                decision=result.decision.value,
                reason=result.reason,
            )
            return IngestOutcome.IGNORED

        key = result.idempotency_key
        if key and await self.is_duplicate(key):
            logger.info("webhook_duplicate", gateway=result.gateway, idempotency_key=key)
            return IngestOutcome.DUPLICATE

        message = result.message
        await self._queue.enqueue(message)
        if key:
            await self._idempotency.mark(key, message.type, self._settings.idempotency_ttl_seconds)
        logger.info(
            "webhook_enqueued",
            gateway=result.gateway,
            event_type=message.type,
            order_id=message.order_id,
            natural_key=message.natural_key,
            backend=self._queue.backend,
        )
        return IngestOutcome.ENQUEUED
