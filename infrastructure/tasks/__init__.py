"""Celery task infrastructure package.

Importing this module wires together the configured Celery app and the
dispatcher that implements the WorkQueue port on top of it.
"""
from .config.celery import celery_app
from .utils.dispatcher import TaskDispatcher

__all__ = ["celery_app", "TaskDispatcher"]
