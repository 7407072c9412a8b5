"""
Batch consumer for the payment-events queue.

Each delivery in a batch is handled on its own: a failing message is
scheduled for a delayed retry while its siblings are acknowledged as usual.
Once a message has used up its attempts it is logged at CRITICAL, recorded
as a `failed` event and acknowledged.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

from application.dtos.messages import OrderNotification, QueueMessage
from application.ports.notifier import OrderNotifier
from application.services.payment_processor import PaymentEventProcessor, ProcessResult
from core.logging_config import get_logger
from core.settings import QueueSettings


logger = get_logger(__name__)


class DeliveryAction(str, Enum):
    ACK = "ack"
    RETRY = "retry"
    DEAD = "dead"


@dataclass(frozen=True)
class Delivery:
    message: QueueMessage
    attempt: int = 1

    def next_attempt(self) -> "Delivery":
        return Delivery(self.message, self.attempt + 1)


@dataclass
class DeliveryResult:
    delivery: Delivery
    action: DeliveryAction
    delay: float = 0.0
    result: Optional[ProcessResult] = None
    error: Optional[str] = None


class QueueConsumer:
    def __init__(
        self,
        processor: PaymentEventProcessor,
        notifier: OrderNotifier,
        settings: QueueSettings,
    ) -> None:
        self._processor = processor
        self._notifier = notifier
        self._settings = settings

    @property
    def max_attempts(self) -> int:
        return max(1, self._settings.max_attempts)

    async def handle_batch(self, deliveries: Sequence[Delivery]) -> List[DeliveryResult]:
        return list(await asyncio.gather(*(self.handle(delivery) for delivery in deliveries)))

    async def handle(self, delivery: Delivery) -> DeliveryResult:
        message = delivery.message
        try:
            if isinstance(message, OrderNotification):
                await self._notifier.notify(message)
                return DeliveryResult(delivery, DeliveryAction.ACK)
            result = await self._processor.process(message, attempt=delivery.attempt)
            return DeliveryResult(delivery, DeliveryAction.ACK, result=result)
        except Exception as exc:
            return await self._on_failure(delivery, exc)

    async def _on_failure(self, delivery: Delivery, exc: Exception) -> DeliveryResult:
        message = delivery.message
        error = f"{type(exc).__name__}: {exc}"
        if delivery.attempt >= self.max_attempts:
            logger.critical(
                "queue_message_retries_exhausted",
                event_type=message.type,
                natural_key=message.natural_key,
                order_id=message.order_id,
                attempts=delivery.attempt,
                error=error,
            )
            if not isinstance(message, OrderNotification):
                await self._processor.record_failure(message, exc, delivery.attempt)
            return DeliveryResult(delivery, DeliveryAction.DEAD, error=error)

        logger.warning(
            "queue_message_retry_scheduled",
            event_type=message.type,
            natural_key=message.natural_key,
            order_id=message.order_id,
            attempt=delivery.attempt,
            delay_seconds=self._settings.retry_delay_seconds,
            error=error,
        )
        return DeliveryResult(
            delivery, DeliveryAction.RETRY, delay=self._settings.retry_delay_seconds, error=error
        )
