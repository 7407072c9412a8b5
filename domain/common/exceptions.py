"""领域层业务异常定义，供领域与基础设施使用。

核心（core）层仅负责全局映射与异常处理，尽量避免领域层反向依赖核心层。
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="DomainValidationError",
            details=details,
            field=field,
        )


class OrderNotFoundException(BusinessException):
    def __init__(self, order_id: str):
        super().__init__(
            code=BusinessCode.ORDER_NOT_FOUND,
            message=f"Order {order_id} not found",
            error_type="OrderNotFound",
            details={"order_id": order_id},
        )


class VariantNotFoundException(BusinessException):
    def __init__(self, variant_id: str):
        super().__init__(
            code=BusinessCode.VARIANT_NOT_FOUND,
            message=f"Variant {variant_id} not found",
            error_type="VariantNotFound",
            details={"variant_id": variant_id},
        )


class PaymentRejectedException(BusinessException):
    """A payment event that can never apply to the order as it stands.

    Retrying will not change the outcome, so consumers log it as a failed
    event and acknowledge the message.
    """

    def __init__(self, message: str, *, code: int, order_id: str, details: Optional[dict] = None):
        full_details = {"order_id": order_id}
        if details:
            full_details.update(details)
        super().__init__(
            code=code,
            message=message,
            error_type="PaymentRejected",
            details=full_details,
        )

    @classmethod
    def already_paid(cls, order_id: str) -> "PaymentRejectedException":
        return cls("Order is already fully paid", code=PaymentCode.ALREADY_PAID, order_id=order_id)

    @classmethod
    def refund_exceeds_paid(cls, order_id: str, refund: Decimal, paid: Decimal) -> "PaymentRejectedException":
        return cls(
            f"Refund {refund} exceeds paid amount {paid}",
            code=PaymentCode.REFUND_EXCEEDS_PAID,
            order_id=order_id,
            details={"refund_amount": str(refund), "paid_amount": str(paid)},
        )

    @classmethod
    def funds_captured(cls, order_id: str, paid: Decimal) -> "PaymentRejectedException":
        return cls(
            "Cancellation ignored: order already has captured funds",
            code=PaymentCode.FUNDS_CAPTURED,
            order_id=order_id,
            details={"paid_amount": str(paid)},
        )

    @classmethod
    def no_partial_payment(cls, order_id: str) -> "PaymentRejectedException":
        return cls(
            "Balance payment without a prior partial payment",
            code=PaymentCode.NO_PARTIAL_PAYMENT,
            order_id=order_id,
        )


class ConcurrencyConflictException(BusinessException):
    """Raised when a versioned row changed between read and write."""

    def __init__(self, entity: str, entity_id: str, expected_version: Optional[int] = None):
        super().__init__(
            code=BusinessCode.CONCURRENT_MODIFICATION,
            message=f"{entity} {entity_id} was modified concurrently",
            error_type="ConcurrencyConflict",
            details={"entity": entity, "id": entity_id, "expected_version": expected_version},
        )
