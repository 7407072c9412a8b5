"""Dispatching helpers that put queue messages onto Celery."""
from __future__ import annotations

import asyncio
from typing import Any, Dict

from kombu.exceptions import OperationalError

from application.dtos.messages import OrderNotification, QueueMessage, dump_message
from application.ports.work_queue import QueueUnavailableError, WorkQueue
from core.logging_config import get_logger

from ..config.celery import celery_app


logger = get_logger(__name__)

PROCESS_EVENT_TASK = "payments.process_event"
SEND_NOTIFICATION_TASK = "notifications.send_order_notification"

# Fail fast: the webhook request is waiting on this call.
_PUBLISH_RETRY_POLICY = {"max_retries": 2, "interval_start": 0, "interval_step": 0.2, "interval_max": 0.5}


class TaskDispatcher(WorkQueue):
    """WorkQueue backed by Celery; delivery, ack and retry are the broker's job."""

    backend = "celery"

    async def enqueue(self, message: QueueMessage) -> None:
        task_name = SEND_NOTIFICATION_TASK if isinstance(message, OrderNotification) else PROCESS_EVENT_TASK
        payload = dump_message(message)
        try:
            # send_task blocks on the broker connection
            await asyncio.to_thread(self.send, task_name, kwargs={"payload": payload})
        except (OperationalError, OSError) as exc:
            logger.error(
                "work_queue_enqueue_failed",
                backend=self.backend,
                task_name=task_name,
                natural_key=message.natural_key,
                error=str(exc),
            )
            raise QueueUnavailableError(str(exc), backend=self.backend, details={"task": task_name}) from exc

    def send(self, task_name: str, *, args: tuple | None = None, kwargs: Dict[str, Any] | None = None) -> None:
        """Generic escape hatch for scheduling arbitrary tasks by name."""
        celery_app.send_task(
            task_name,
            args=args or (),
            kwargs=kwargs or {},
            retry=True,
            retry_policy=_PUBLISH_RETRY_POLICY,
        )
