from decimal import Decimal, ROUND_HALF_EVEN

_ONE = Decimal("1")
_MINOR_PER_MAJOR = Decimal("100")


def to_minor_units(amount: Decimal) -> int:
    """
    Convert a major-unit amount to integer minor units (cents).

    Rounds half to even on amount * 100: 10.005 -> 1000, 10.015 -> 1002.
    """
    return int((Decimal(str(amount)) * _MINOR_PER_MAJOR).quantize(_ONE, rounding=ROUND_HALF_EVEN))


def from_minor_units(amount_minor: int) -> Decimal:
    return (Decimal(amount_minor) / _MINOR_PER_MAJOR).quantize(Decimal("0.01"))
