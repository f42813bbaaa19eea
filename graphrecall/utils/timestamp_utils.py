"""
Timestamp utilities for consistent time handling across the system.

All timestamps exchanged with the graph store are UTC ISO-8601 strings with millisecond
precision and a trailing ``Z`` (``2025-01-01T00:00:00.000Z``) so they compare correctly
as plain strings.
"""

from datetime import datetime, timezone
from typing import Optional

from dateutil.parser import isoparse
from dateutil.relativedelta import relativedelta

RELATIVE_UNITS = {
    'h': lambda amount: relativedelta(hours=amount),
    'd': lambda amount: relativedelta(days=amount),
    'm': lambda amount: relativedelta(months=amount),
    'y': lambda amount: relativedelta(years=amount),
}


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_iso_string(value: Optional[datetime] = None) -> str:
    """Format a datetime as a UTC ISO-8601 string with milliseconds.

    Args:
        value: datetime to format (optional, uses current time if None); naive values are read as UTC

    Returns:
        ISO-8601 string ending in ``Z``
    """
    if value is None:
        value = utc_now()
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime('%Y-%m-%dT%H:%M:%S.') + f'{value.microsecond // 1000:03d}Z'


def parse_iso(value: str) -> datetime:
    """Parse an ISO-8601 date or date-time string into an aware UTC datetime.

    Raises:
        ValueError: If the string is not ISO-8601
    """
    parsed = isoparse(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def subtract_relative(amount: int, unit: str, now: Optional[datetime] = None) -> datetime:
    """Resolve a relative expression such as ``7d`` against now.

    Months and years use calendar arithmetic (day of month clamped to the target month).

    Args:
        amount: Number of units
        unit: One of h, d, m, y (case-insensitive)
        now: Reference time (optional, uses current time if None)

    Raises:
        ValueError: If the unit is unknown
    """
    unit = unit.lower()
    if unit not in RELATIVE_UNITS:
        raise ValueError(f"Invalid relative date unit: {unit}. Use 'h' (hours), 'd' (days), 'm' (months), or 'y' (years)")
    return (now or utc_now()) - RELATIVE_UNITS[unit](amount)
