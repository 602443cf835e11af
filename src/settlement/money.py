"""Decimal helpers for monetary amounts and percentages."""

from decimal import ROUND_HALF_UP, Decimal

from src.core.constants import CURRENCY_UNIT, PERCENT_BASE, RATE_PRECISION, ZERO


def to_decimal(val: Decimal | int | float | str | None) -> Decimal:
    """Convert a collaborator-supplied amount to Decimal.

    Floats go through ``str`` so that 0.1 stays 0.1.
    """
    if val is None:
        return ZERO
    if isinstance(val, Decimal):
        return val
    return Decimal(str(val))


def percent_of(amount: Decimal, percent: Decimal | int | float) -> Decimal:
    """Return ``amount * percent / 100`` without rounding."""
    return amount * to_decimal(percent) / PERCENT_BASE


def round_currency(val: Decimal) -> Decimal:
    """Round half-up to the nearest whole currency unit."""
    return val.quantize(CURRENCY_UNIT, rounding=ROUND_HALF_UP)


def round_rate(val: Decimal) -> Decimal:
    """Round a percentage half-up to two decimals."""
    return val.quantize(RATE_PRECISION, rounding=ROUND_HALF_UP)
