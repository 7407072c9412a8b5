"""Order notification tasks"""
from __future__ import annotations

import asyncio
from typing import Any

from celery import shared_task

from application.dtos.messages import OrderNotification
from infrastructure.adapters.notifier import LoggingOrderNotifier

from ..utils.base_task import BaseTask


@shared_task(
    name="notifications.send_order_notification",
    bind=True,
    base=BaseTask,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=600,
    retry_jitter=True,
    retry_kwargs={"max_retries": 5},
)
def send_order_notification(self, payload: dict[str, Any]) -> None:
    """Deliver an order notification.

    The logging notifier stands in until an email/SMS channel is wired to the
    OrderNotifier port.
    """
    notification = OrderNotification.model_validate(payload)
    asyncio.run(LoggingOrderNotifier().notify(notification))
