"""
Numeric coercion applied at the boundary of the arithmetic layers.

A malformed value (None, empty string, non-numeric text, NaN, infinity)
degrades to zero instead of propagating through the computations.
"""
from decimal import Decimal, InvalidOperation
from typing import Any

ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal:
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return ZERO
    if not result.is_finite():
        return ZERO
    return result


def to_quantity(value: Any) -> int:
    return int(to_decimal(value))
