"""
Money arithmetic.

Balances are Decimal end to end. round_money is the single rounding rule
for anything persisted or displayed: two places, half away from zero
(0.625 -> 0.63), so repeated halving never drifts.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

MoneyLike = Union[Decimal, int, float, str]


def to_decimal(value: MoneyLike) -> Decimal:
    """
    Convert user or storage input to Decimal.

    Floats go through str() so 0.1 becomes Decimal("0.1") rather than
    its binary expansion. NaN and infinities are rejected.
    """
    result = _coerce(value)
    if not result.is_finite():
        raise ValueError(f"Not a finite amount: {value!r}")
    return result


def _coerce(value: MoneyLike) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError("Booleans are not amounts")
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, str):
        try:
            return Decimal(value.strip())
        except InvalidOperation:
            raise ValueError(f"Not a valid amount: {value!r}")
    raise ValueError(f"Unsupported amount type: {type(value).__name__}")


def round_money(value: MoneyLike) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
