from .request_id import RequestIDMiddleware, REQUEST_ID_HEADER
from .logging import LoggingMiddleware

__all__ = ["RequestIDMiddleware", "LoggingMiddleware", "REQUEST_ID_HEADER"]
