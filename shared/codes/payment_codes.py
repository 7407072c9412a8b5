"""
Payment specific codes and provider status mapping.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Gateway adapters (60xxx)
    PROVIDER_ERROR = 60000
    SIGNATURE_ERROR = 60002

    # Domain rejections (61xxx)
    ALREADY_PAID = 61000
    REFUND_EXCEEDS_PAID = 61001
    FUNDS_CAPTURED = 61002
    NO_PARTIAL_PAYMENT = 61003

    # Queue (62xxx)
    QUEUE_UNAVAILABLE = 62000


# Redirect-gateway validation API statuses grouped by what the pipeline does next.
SSLCOMMERZ_VALID_STATUSES = frozenset({"VALID", "VALIDATED"})
SSLCOMMERZ_TERMINAL_FAILURE_STATUSES = frozenset({"FAILED", "CANCELLED"})
SSLCOMMERZ_INVALID_STATUSES = frozenset({"INVALID_TRANSACTION"})

# Card-gateway event types the pipeline turns into queue messages.
STRIPE_HANDLED_EVENTS = frozenset({
    "payment_intent.succeeded",
    "payment_intent.payment_failed",
    "payment_intent.canceled",
    "charge.refunded",
    "charge.dispute.created",
})

# Minor-unit exponent per ISO-4217 currency (default 2).
ZERO_DECIMAL_CURRENCIES = frozenset({"JPY", "KRW", "VND", "CLP", "ISK", "UGX"})
