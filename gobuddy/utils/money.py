"""
Decimal helpers shared by the fee, rating and settlement calculations.

All money is handled as Decimal and quantized to cents with ROUND_HALF_UP so
that the values shown to callers, runners and admins agree to the centavo.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

CENTS = Decimal("0.01")
ZERO = Decimal("0")


def round_decimal(value: Decimal, precision: Decimal = CENTS) -> Decimal:
    """
    Round a Decimal value to the specified precision (half-up).

    Example:
        >>> round_decimal(Decimal("4.714285"))
        Decimal('4.71')
        >>> round_decimal(Decimal("100.005"))
        Decimal('100.01')
    """
    return value.quantize(precision, rounding=ROUND_HALF_UP)


def to_decimal(value: Any) -> Decimal:
    """Convert ints, floats, strings or Decimals to Decimal via str() so floats keep their printed value."""
    if isinstance(value, Decimal):
        return value
    if value is None:
        return ZERO
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Not a numeric value: {value!r}") from e
