"""
Datetime utility functions.
"""

from datetime import datetime, timedelta
import pytz


def utcnow() -> datetime:
    """
    Get current UTC datetime using pytz.UTC.

    Returns:
        Current UTC datetime with pytz timezone information
    """
    return datetime.now(pytz.UTC)


def days_ago(days: int) -> datetime:
    """Start of a rolling window ending now, e.g. days_ago(7) for "this week"."""
    return utcnow() - timedelta(days=days)


def ensure_utc(value: datetime) -> datetime:
    """
    Attach UTC to a naive datetime; aware datetimes are returned unchanged.

    SQLite drops timezone information on read.
    """
    if value.tzinfo is None:
        return pytz.UTC.localize(value)
    return value
