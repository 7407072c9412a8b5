"""Base task for pipeline jobs: one structured log line per task outcome."""
from __future__ import annotations

from typing import Any, Optional

from celery import Task

from core.logging_config import get_logger


logger = get_logger(__name__)


def _message_type(kwargs: Optional[dict]) -> Optional[str]:
    payload: Any = (kwargs or {}).get("payload")
    return payload.get("type") if isinstance(payload, dict) else None


class BaseTask(Task):

    def on_retry(self, exc, task_id, args, kwargs, einfo):  # type: ignore[override]
        logger.warning(
            "celery_task_retry",
            task_id=task_id,
            task_name=self.name,
            message_type=_message_type(kwargs),
            retries=self.request.retries,
            error=str(exc),
        )
        super().on_retry(exc, task_id, args, kwargs, einfo)

    def on_failure(self, exc, task_id, args, kwargs, einfo):  # type: ignore[override]
        # payload 不入日志：可能含客户联系方式
        logger.error(
            "celery_task_failure",
            task_id=task_id,
            task_name=self.name,
            message_type=_message_type(kwargs),
            error=str(exc),
            error_type=type(exc).__name__,
        )
        super().on_failure(exc, task_id, args, kwargs, einfo)

    def on_success(self, retval, task_id, args, kwargs):  # type: ignore[override]
        logger.info(
            "celery_task_success",
            task_id=task_id,
            task_name=self.name,
            message_type=_message_type(kwargs),
            result=retval,
        )
        super().on_success(retval, task_id, args, kwargs)
