"""
Money Utilities - Safe Decimal operations for cart prices.

Avoids float precision issues by using Decimal throughout.
"""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Union

MONEY_PRECISION = Decimal("0.01")

Numeric = Union[str, int, float, Decimal, None]


def to_decimal(value: Numeric) -> Decimal:
    """
    Convert any value to Decimal safely.

    Args:
        value: Value to convert (str, int, float, Decimal, or None)

    Returns:
        Decimal representation of the value, or Decimal("0") if None/invalid
    """
    if value is None:
        return Decimal("0")

    if isinstance(value, Decimal):
        return value

    try:
        if isinstance(value, float):
            # Via str to keep the printed precision
            return Decimal(str(value))
        return Decimal(value)
    except (InvalidOperation, ValueError, TypeError):
        return Decimal("0")


def round_money(value: Numeric) -> Decimal:
    """Round monetary value to cents."""
    return to_decimal(value).quantize(MONEY_PRECISION, rounding=ROUND_HALF_UP)


def line_total(unit_price: Numeric, quantity: int) -> Decimal:
    """Price of `quantity` units, rounded to cents."""
    return round_money(to_decimal(unit_price) * quantity)


def to_float(value: Numeric) -> float:
    """Convert Decimal to float for JSON output."""
    return float(round_money(value))
