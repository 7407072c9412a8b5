"""Expose Celery configuration objects for convenient imports."""
from .celery import celery_app, NOTIFICATIONS_QUEUE, PAYMENT_EVENTS_QUEUE

__all__ = ["celery_app", "NOTIFICATIONS_QUEUE", "PAYMENT_EVENTS_QUEUE"]
