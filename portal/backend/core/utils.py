"""
Core Utilities.

Shared utility functions used across the backend.
All modules should import utilities from this module.
"""

import calendar
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")


def utc_now() -> datetime:
    """
    Return current UTC time as timezone-naive datetime.

    All datetime values in the application should be timezone-naive
    and assumed to be UTC. This ensures consistent behavior across
    the codebase and simplifies database storage.

    Returns:
        Current UTC time with tzinfo stripped
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime | None) -> datetime | None:
    """Convert an aware datetime to naive UTC; naive values pass through."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def to_money(value: Decimal | float | int | str) -> Decimal:
    """Round a monetary value to cents, half up."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(value: Decimal) -> int:
    """Convert a money amount to integer minor units."""
    return int(to_money(value) * 100)


def add_months(value: datetime, months: int, day: int | None = None) -> datetime:
    """
    Shift a datetime by whole months.

    The day is clamped to the last day of the target month
    (Jan 31 + 1 month is Feb 28 or 29). ``day`` replaces the
    original day of month and is clamped the same way.
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return value.replace(year=year, month=month, day=min(day or value.day, last_day))


def percentage(numerator: int | float | Decimal, denominator: int | float | Decimal) -> float:
    """numerator / denominator * 100 rounded to 2 places; 0 when denominator is 0."""
    if not denominator:
        return 0.0
    return round(float(numerator) / float(denominator) * 100, 2)
