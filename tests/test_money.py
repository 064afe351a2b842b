from decimal import Decimal

import pytest

from app.utils.money import from_minor_units, to_minor_units


@pytest.mark.parametrize(
    "amount, expected",
    [
        ("100", 10000),
        ("0.01", 1),
        ("10.005", 1000),
        ("10.015", 1002),
        ("19.999", 2000),
        ("42.50", 4250),
    ],
)
def test_to_minor_units_rounds_half_to_even(amount, expected):
    assert to_minor_units(Decimal(amount)) == expected


def test_to_minor_units_tiny_amount_rounds_to_zero():
    # A positive amount below half a cent yields 0; callers must reject it.
    assert to_minor_units(Decimal("0.004")) == 0


def test_from_minor_units():
    assert from_minor_units(10000) == Decimal("100.00")
    assert from_minor_units(1) == Decimal("0.01")
    assert str(from_minor_units(4250)) == "42.50"
