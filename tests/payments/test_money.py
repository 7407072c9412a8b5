from decimal import Decimal

import pytest

from domain.common.exceptions import DomainValidationException
from domain.payment.money import to_major_units, to_minor_units


def test_bdt_minor_units_become_taka():
    assert to_major_units(520800, "BDT") == Decimal("5208.00")
    assert str(to_major_units(520800, "bdt")) == "5208.00"


def test_zero_decimal_currency_is_not_scaled():
    assert to_major_units(1500, "JPY") == Decimal("1500")
    assert to_minor_units("1500", "JPY") == 1500


def test_decimal_string_to_minor_units():
    assert to_minor_units("5208.00", "BDT") == 520800
    assert to_minor_units(Decimal("10.005"), "USD") == 1001


@pytest.mark.parametrize("bad", ["abc", "NaN", "Infinity"])
def test_invalid_amount_rejected(bad):
    with pytest.raises(DomainValidationException):
        to_minor_units(bad, "USD")
