"""Celery application for the payment-event and notification queues"""
from __future__ import annotations

import os

from celery import Celery
from kombu import Exchange, Queue

from core.config import settings
from core.logging_config import get_logger


logger = get_logger(__name__)

PAYMENT_EVENTS_QUEUE = "payment-events"
NOTIFICATIONS_QUEUE = "notifications"

TASK_PACKAGES = ("infrastructure.tasks.tasks",)

_exchange = Exchange("storefront", type="direct")

celery_app = Celery("storefront_payments")

celery_app.conf.update(
    broker_url=settings.redis.url or os.getenv("CELERY_BROKER_URL"),
    task_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    # 消息处理完成后才确认，worker 崩溃时由 broker 重投
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    # 结果只写日志，不落 result backend
    task_ignore_result=True,
    broker_connection_retry_on_startup=True,
    task_default_queue=PAYMENT_EVENTS_QUEUE,
    task_default_exchange=_exchange.name,
    task_queues=(
        Queue(PAYMENT_EVENTS_QUEUE, _exchange, routing_key=PAYMENT_EVENTS_QUEUE),
        Queue(NOTIFICATIONS_QUEUE, _exchange, routing_key=NOTIFICATIONS_QUEUE),
    ),
    task_routes={
        "payments.*": {"queue": PAYMENT_EVENTS_QUEUE, "routing_key": PAYMENT_EVENTS_QUEUE},
        "notifications.*": {"queue": NOTIFICATIONS_QUEUE, "routing_key": NOTIFICATIONS_QUEUE},
    },
)
celery_app.conf.imports = TASK_PACKAGES
celery_app.autodiscover_tasks(packages=TASK_PACKAGES)


@celery_app.on_after_configure.connect
def _log_configuration(sender, **kwargs):
    logger.info(
        "celery_configured",
        queues=[q.name for q in sender.conf.task_queues],
        acks_late=sender.conf.task_acks_late,
    )
