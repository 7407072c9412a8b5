"""Work queue backends implementing the application WorkQueue port."""
from __future__ import annotations

from core.settings import QueueSettings
from application.ports.work_queue import WorkQueue
from application.utils.background import BackgroundTaskGroup
from .inprocess import InProcessWorkQueue


def build_work_queue(settings: QueueSettings, tasks: BackgroundTaskGroup) -> WorkQueue:
    if settings.backend == "celery":
        from infrastructure.tasks import TaskDispatcher
        return TaskDispatcher()
    return InProcessWorkQueue(settings, tasks)


__all__ = ["InProcessWorkQueue", "build_work_queue"]
