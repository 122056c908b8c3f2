"""
Timestamp helpers.

Timestamps are stored as naive UTC datetimes; API responses carry them as
ISO strings with an explicit UTC offset.
"""

from datetime import datetime, timezone
from typing import Optional


def now_utc() -> datetime:
    """
    Get the current time as a naive UTC datetime.

    Returns:
        datetime: Current UTC time without tzinfo
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Convert a datetime to an aware UTC datetime.

    Args:
        dt: Datetime to convert (naive values are assumed to be UTC already)

    Returns:
        datetime: Aware UTC datetime, or None if input is None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def to_utc_isoformat(dt: Optional[datetime]) -> Optional[str]:
    """
    Convert a datetime to an ISO 8601 string in UTC.

    Example:
        >>> to_utc_isoformat(datetime(2026, 2, 9, 8, 13, 5))
        '2026-02-09T08:13:05+00:00'
    """
    if dt is None:
        return None

    return to_utc(dt).isoformat()


def format_date(dt: Optional[datetime]) -> str:
    """Format date only (YYYY-MM-DD)."""
    if dt is None:
        return "N/A"
    return to_utc(dt).strftime('%Y-%m-%d')
