"""
Gateway adapter errors, expressed as BusinessException so the HTTP layer and
the logs treat them like any other coded failure.
"""
from __future__ import annotations

from typing import Optional

from domain.common.exceptions import BusinessException
from shared.codes.payment_codes import PaymentCode


class PaymentGatewayError(BusinessException):
    code_value = PaymentCode.PROVIDER_ERROR

    def __init__(self, message: str, *, provider: str, details: Optional[dict] = None):
        super().__init__(
            code=self.code_value,
            message=message,
            error_type=type(self).__name__,
            details={"provider": provider, **(details or {})},
        )
        self.provider = provider


class PaymentProviderError(PaymentGatewayError):
    """The provider answered, but with something we cannot use."""


class PaymentSignatureError(PaymentGatewayError):
    """Webhook authenticity could not be established."""

    code_value = PaymentCode.SIGNATURE_ERROR
