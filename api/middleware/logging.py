"""
请求/响应日志中间件

Gateway callbacks are the interesting traffic here: their bodies are always
logged (truncated, credentials masked) so a disputed delivery can be traced
back to what the provider actually sent.
"""
import json
import time
from typing import Any, Optional
from urllib.parse import parse_qsl

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from core.config import settings
from core.logging_config import SECRET_KEYS, get_logger


logger = get_logger(__name__)

WEBHOOK_PREFIX = "/api/v1/webhooks/"
QUIET_PATHS = frozenset({"/health", "/docs", "/redoc", "/openapi.json"})

# 回调报文中的敏感字段
MASKED_FIELDS = SECRET_KEYS | {"verify_sign", "verify_sign_sha2", "verify_key", "card_no", "card_number", "signature"}


def sanitize(data: Any) -> Any:
    if isinstance(data, dict):
        return {k: "***" if str(k).lower() in MASKED_FIELDS else sanitize(v) for k, v in data.items()}
    if isinstance(data, list):
        return [sanitize(v) for v in data]
    return data


def decode_body(raw: bytes, content_type: str) -> Any:
    text = raw.decode("utf-8", errors="replace")
    if "json" in content_type:
        try:
            return json.loads(text)
        except ValueError:
            return text
    if "x-www-form-urlencoded" in content_type:
        return dict(parse_qsl(text, keep_blank_values=True))
    return text


class LoggingMiddleware(BaseHTTPMiddleware):
    """记录请求开始/结束、耗时以及（脱敏后的）请求体"""

    def __init__(self, app: ASGIApp):
        super().__init__(app)
        self.log_body_by_default = settings.LOG_REQUEST_BODY_ENABLE_BY_DEFAULT and settings.DEBUG
        self.max_body_bytes = settings.LOG_REQUEST_BODY_MAX_BYTES

    async def dispatch(self, request: Request, call_next):
        if request.url.path in QUIET_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        context = {"method": request.method, "path": request.url.path}
        if request.query_params:
            context["query"] = sanitize(dict(request.query_params))
        body = await self._body_for_log(request)
        if body is not None:
            logger.info("request_started", body=body, **context)
        else:
            logger.info("request_started", **context)

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "request_failed",
                duration=round(time.perf_counter() - started, 4),
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=True,
                **context,
            )
            raise

        duration = time.perf_counter() - started
        response.headers["X-Process-Time"] = f"{duration:.3f}"
        status_code = response.status_code
        if status_code >= 500:
            log = logger.error
        elif status_code >= 400:
            log = logger.warning
        else:
            log = logger.info
        log("request_completed", status_code=status_code, duration=round(duration, 4), **context)
        return response

    async def _body_for_log(self, request: Request) -> Optional[Any]:
        if request.method not in ("POST", "PUT", "PATCH"):
            return None
        if not (request.url.path.startswith(WEBHOOK_PREFIX) or self.log_body_by_default):
            return None
        raw = await request.body()
        if not raw:
            return None
        content_type = request.headers.get("content-type", "").lower()
        return sanitize(decode_body(raw[: self.max_body_bytes], content_type))
