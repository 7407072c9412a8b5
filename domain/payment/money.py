"""
Minor/major currency unit conversion.

Gateways report amounts either in minor units (cents, paisa) or as decimal
strings in major units. Queue messages always carry minor units; the payment
event processor converts to major units exactly once with `to_major_units`.
"""
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

from domain.common.exceptions import DomainValidationException
from shared.codes.payment_codes import ZERO_DECIMAL_CURRENCIES


def currency_exponent(currency: str) -> int:
    return 0 if (currency or "").upper() in ZERO_DECIMAL_CURRENCIES else 2


def to_major_units(amount_minor: int, currency: str) -> Decimal:
    """520800 BDT -> Decimal('5208.00')"""
    exponent = currency_exponent(currency)
    quantum = Decimal(1).scaleb(-exponent)
    return (Decimal(int(amount_minor)) / (Decimal(10) ** exponent)).quantize(quantum)


def to_minor_units(amount: Decimal | str, currency: str) -> int:
    """Decimal('5208.00') or '5208.00' BDT -> 520800"""
    try:
        value = Decimal(str(amount))
    except InvalidOperation as exc:
        raise DomainValidationException(f"Invalid amount: {amount!r}", field="amount") from exc
    if not value.is_finite():
        raise DomainValidationException(f"Invalid amount: {amount!r}", field="amount")
    exponent = currency_exponent(currency)
    return int((value * (Decimal(10) ** exponent)).quantize(Decimal(1), rounding=ROUND_HALF_UP))
