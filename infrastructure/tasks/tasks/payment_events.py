"""Payment-event consumer task.

One Celery message carries one queue message. The task hands it to the
batch consumer and maps the consumer's verdict onto Celery: ack by
returning, retry by `self.retry(countdown=...)`. Exhausted deliveries are
recorded by the consumer itself and acknowledged here.
"""
from __future__ import annotations

import asyncio
from typing import Any

from celery import shared_task
from pydantic import ValidationError

from application.dtos.messages import parse_message
from application.services.queue_consumer import Delivery, DeliveryAction, DeliveryResult
from core.logging_config import get_logger
from core.settings import gateway_settings

from ..utils.base_task import BaseTask
from ..utils.runtime import worker_container


logger = get_logger(__name__)


async def _consume(delivery: Delivery) -> DeliveryResult:
    async with worker_container() as container:
        return await container.consumer.handle(delivery)


@shared_task(
    name="payments.process_event",
    bind=True,
    base=BaseTask,
    acks_late=True,
    max_retries=gateway_settings.queue.max_attempts,
    default_retry_delay=gateway_settings.queue.retry_delay_seconds,
)
def process_payment_event(self, payload: dict[str, Any]) -> dict[str, Any]:
    try:
        message = parse_message(payload)
    except ValidationError as exc:
        # a payload that never parses can never succeed
        logger.error("queue_message_invalid", payload_type=payload.get("type"), errors=exc.errors())
        return {"action": DeliveryAction.DEAD.value, "error": "invalid_payload"}

    attempt = self.request.retries + 1
    result = asyncio.run(_consume(Delivery(message, attempt)))
    if result.action is DeliveryAction.RETRY:
        raise self.retry(countdown=result.delay, exc=RuntimeError(result.error or "retry"))

    summary: dict[str, Any] = {"action": result.action.value, "natural_key": message.natural_key}
    if result.result is not None:
        summary["outcome"] = result.result.outcome.value
    if result.error:
        summary["error"] = result.error
    return summary
