"""
全局异常处理器

BusinessException codes map onto HTTP statuses; everything is rendered in the
unified envelope from `core.response`.
"""
import traceback
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status as http_status
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.logging_config import get_logger
from core.response import error_response
from domain.common.exceptions import BusinessException
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


logger = get_logger(__name__)

_STATUS_BY_CODE = {
    BusinessCode.PARAM_VALIDATION_ERROR: http_status.HTTP_422_UNPROCESSABLE_ENTITY,
    BusinessCode.NOT_FOUND: http_status.HTTP_404_NOT_FOUND,
    BusinessCode.ORDER_NOT_FOUND: http_status.HTTP_404_NOT_FOUND,
    BusinessCode.VARIANT_NOT_FOUND: http_status.HTTP_404_NOT_FOUND,
    BusinessCode.CONCURRENT_MODIFICATION: http_status.HTTP_409_CONFLICT,
    BusinessCode.UNAUTHORIZED: http_status.HTTP_401_UNAUTHORIZED,
    BusinessCode.FORBIDDEN: http_status.HTTP_403_FORBIDDEN,
    BusinessCode.SERVICE_UNAVAILABLE: http_status.HTTP_503_SERVICE_UNAVAILABLE,
    BusinessCode.TOO_MANY_REQUESTS: http_status.HTTP_429_TOO_MANY_REQUESTS,
    PaymentCode.PROVIDER_ERROR: http_status.HTTP_502_BAD_GATEWAY,
    PaymentCode.QUEUE_UNAVAILABLE: http_status.HTTP_503_SERVICE_UNAVAILABLE,
    PaymentCode.ALREADY_PAID: http_status.HTTP_409_CONFLICT,
    PaymentCode.REFUND_EXCEEDS_PAID: http_status.HTTP_409_CONFLICT,
    PaymentCode.FUNDS_CAPTURED: http_status.HTTP_409_CONFLICT,
    PaymentCode.NO_PARTIAL_PAYMENT: http_status.HTTP_409_CONFLICT,
}

_CODE_BY_STATUS = {
    400: BusinessCode.PARAM_ERROR,
    401: BusinessCode.UNAUTHORIZED,
    403: BusinessCode.FORBIDDEN,
    404: BusinessCode.NOT_FOUND,
    429: BusinessCode.TOO_MANY_REQUESTS,
    503: BusinessCode.SERVICE_UNAVAILABLE,
}


def business_code_to_http_status(code: int) -> int:
    """未登记的业务码：4xxxx 系统错误按 500，其余按 400"""
    if code in _STATUS_BY_CODE:
        return _STATUS_BY_CODE[code]
    if 40000 <= code < 50000:
        return http_status.HTTP_500_INTERNAL_SERVER_ERROR
    return http_status.HTTP_400_BAD_REQUEST


def _render(request: Request, status_code: int, code: int, message: str, error_type: str,
            details: Optional[dict] = None, field: Optional[str] = None, headers=None) -> JSONResponse:
    body = error_response(
        code,
        message,
        error_type,
        details=details,
        field=field,
        request_id=getattr(request.state, "request_id", None),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"), headers=headers)


def register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(BusinessException)
    async def _business(request: Request, exc: BusinessException):
        status_code = business_code_to_http_status(exc.code)
        if status_code >= 500:
            logger.error("business_exception", code=int(exc.code), error_type=exc.error_type, error=exc.message)
        return _render(request, status_code, exc.code, exc.message, exc.error_type, exc.details, exc.field)

    @app.exception_handler(RequestValidationError)
    async def _validation(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        return _render(
            request,
            http_status.HTTP_422_UNPROCESSABLE_ENTITY,
            BusinessCode.PARAM_VALIDATION_ERROR,
            f"Validation failed: {first.get('msg', 'unknown')}",
            "ValidationError",
            {"errors": [{k: v for k, v in e.items() if k != "ctx"} for e in errors]},
            ".".join(str(p) for p in first.get("loc", ())[1:]) or None,
        )

    @app.exception_handler(StarletteHTTPException)
    async def _http(request: Request, exc: StarletteHTTPException):
        return _render(
            request,
            exc.status_code,
            _CODE_BY_STATUS.get(exc.status_code, BusinessCode.SYSTEM_ERROR),
            str(exc.detail),
            "HTTPError",
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        logger.error("unhandled_exception", error=str(exc), exc_info=True)
        details = {"exception": str(exc), "traceback": traceback.format_exc()} if app.debug else None
        return _render(
            request,
            http_status.HTTP_500_INTERNAL_SERVER_ERROR,
            BusinessCode.SYSTEM_ERROR,
            "Internal server error",
            "SystemError",
            details,
        )
