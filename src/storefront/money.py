"""Money arithmetic helpers.

Amounts are stored as floats on aggregates but every calculation runs on
``Decimal`` and is rounded half-up to cents before it is stored.
"""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def as_float(value) -> float:
    return float(quantize(value))
