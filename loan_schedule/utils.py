"""Utility functions for the loan schedule engine.

This module provides helpers for parsing user input into Python data types,
rounding monetary values and stepping payment dates forward one calendar
month at a time.
"""

from __future__ import annotations

from datetime import date
from decimal import ROUND_DOWN, ROUND_HALF_EVEN, Decimal, InvalidOperation, getcontext
from typing import Union

getcontext().prec = 28  # increase decimal precision to avoid rounding errors

CENT = Decimal("0.01")


def round2(value: Decimal) -> Decimal:
    """Round a monetary value to 2 decimal places (round half to even)."""
    return value.quantize(CENT, rounding=ROUND_HALF_EVEN)


def decimal_from_str(value: str) -> Decimal:
    """Convert a numeric string into a ``Decimal``.

    The function strips any commas and surrounding whitespace. It raises
    ``ValueError`` if conversion fails or the value is not finite.
    """
    try:
        cleaned = value.replace(",", "").strip()
        result = Decimal(cleaned)
    except (InvalidOperation, AttributeError) as exc:
        raise ValueError(f"Invalid numeric value: {value}") from exc
    if not result.is_finite():
        raise ValueError(f"Invalid numeric value: {value}")
    return result


def to_decimal(value: Union[Decimal, int, float, str]) -> Decimal:
    """Coerce ``value`` to ``Decimal`` without going through binary floats."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Invalid numeric value: {value!r}")
    if isinstance(value, (int, float)):
        return decimal_from_str(str(value))
    if isinstance(value, str):
        return decimal_from_str(value)
    raise ValueError(f"Invalid numeric value: {value!r}")


def parse_date(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` string into a ``date`` object.

    Raises
    ------
    ValueError
        If the string is not a valid calendar date.
    """
    try:
        return date.fromisoformat(value.strip())
    except (ValueError, AttributeError) as exc:
        raise ValueError(f"Invalid date string: {value}") from exc


def next_month(dt: date) -> date:
    """Return the same day of the following calendar month.

    Only month and year advance; the day of the month is kept as is. Unlike a
    clamping month offset, a day that does not exist in the following month
    (e.g. the 31st going into April) raises ``ValueError``.
    """
    year = dt.year + dt.month // 12
    month = dt.month % 12 + 1
    try:
        return dt.replace(year=year, month=month)
    except ValueError as exc:
        raise ValueError(
            f"Cannot advance payment date {dt.isoformat()} to {year:04d}-{month:02d}: "
            f"day {dt.day} does not exist in that month"
        ) from exc


def add_months(dt: date, months: int) -> date:
    """Advance ``dt`` by ``months`` calendar months using :func:`next_month`."""
    for _ in range(months):
        dt = next_month(dt)
    return dt


def installment_multiple(installment: Decimal, budget: Decimal) -> Decimal:
    """Return the largest whole multiple of ``installment`` not exceeding ``budget``."""
    if installment <= 0:
        return Decimal("0.00")
    count = (budget / installment).to_integral_value(rounding=ROUND_DOWN)
    if count <= 0:
        return Decimal("0.00")
    return round2(count * installment)
