"""
Business codes shared by domain, core and api layers.

Payment and queue codes live in `shared.codes.payment_codes` (6xxxx).
"""
from enum import IntEnum


class BusinessCode(IntEnum):
    SUCCESS = 0

    # 参数错误 1xxxx
    PARAM_ERROR = 10000
    PARAM_VALIDATION_ERROR = 10003

    # 业务错误 2xxxx
    NOT_FOUND = 20006
    ORDER_NOT_FOUND = 20101
    VARIANT_NOT_FOUND = 20102
    CONCURRENT_MODIFICATION = 20103

    # 访问控制 3xxxx
    UNAUTHORIZED = 30001
    FORBIDDEN = 30002

    # 系统错误 4xxxx
    SYSTEM_ERROR = 40000
    SERVICE_UNAVAILABLE = 40003

    # 限流 5xxxx
    TOO_MANY_REQUESTS = 50001


__all__ = ["BusinessCode"]
