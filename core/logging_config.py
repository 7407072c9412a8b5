"""
Structlog 日志配置

structlog and stdlib logging (uvicorn, celery, sqlalchemy, httpx) share one
processor chain: console output in DEBUG, one JSON object per line otherwise.
"""
import json
import logging
from typing import Any

import structlog
from structlog.contextvars import merge_contextvars
from structlog.stdlib import ProcessorFormatter

from core.config import settings


# Gateway credentials that must never reach a log sink, whatever the event.
SECRET_KEYS = frozenset({
    "store_passwd",
    "store_password",
    "webhook_secret",
    "secret_key",
    "shared_secret",
    "authorization",
    "stripe-signature",
})

# 第三方库的日志噪音
_QUIET_LOGGERS = {
    "sqlalchemy.engine": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "uvicorn.access": logging.WARNING,
    "celery.utils.functional": logging.INFO,
}


def mask_secrets(_logger: Any, _method: str, event_dict: dict) -> dict:
    for key in event_dict:
        if key.lower() in SECRET_KEYS:
            event_dict[key] = "***"
    return event_dict


def add_environment(_logger: Any, _method: str, event_dict: dict) -> dict:
    event_dict.setdefault("env", settings.ENVIRONMENT)
    return event_dict


def _renderer() -> Any:
    if settings.DEBUG:
        return structlog.dev.ConsoleRenderer(colors=True)
    return structlog.processors.JSONRenderer(serializer=lambda obj, **kw: json.dumps(obj, ensure_ascii=False, **kw))


def configure_logging() -> None:
    """配置 structlog 并桥接标准库 logging 到同一处理链（可重复调用）"""
    pre_chain: list[Any] = [
        merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_environment,
        mask_secrets,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    structlog.configure(
        processors=[*pre_chain, ProcessorFormatter.wrap_for_formatter],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[ProcessorFormatter.remove_processors_meta, _renderer()],
        )
    )
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)
    for name, level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


configure_logging()
