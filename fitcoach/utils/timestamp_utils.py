"""
Timestamp utilities for consistent time handling across the engine.
"""

import time
from datetime import date, datetime
from typing import Optional, Union

TimestampLike = Union[datetime, date, str, int, float, None]


def to_datetime(timestamp: TimestampLike = None) -> datetime:
    """Convert a timestamp to a naive local datetime object.

    Args:
        timestamp: datetime, date, ISO-8601 string or Unix timestamp in seconds
            (optional, uses current time if None)

    Returns:
        datetime object

    Raises:
        ValueError: If a string timestamp is not ISO-8601
    """
    if timestamp is None:
        timestamp = time.time()
    if isinstance(timestamp, datetime):
        if timestamp.tzinfo is not None:
            return timestamp.astimezone().replace(tzinfo=None)
        return timestamp
    if isinstance(timestamp, date):
        return datetime(timestamp.year, timestamp.month, timestamp.day)
    if isinstance(timestamp, str):
        # fromisoformat() rejects the trailing 'Z' that JavaScript clients send
        value = timestamp.strip()
        if value.endswith('Z'):
            value = value[:-1] + '+00:00'
        return to_datetime(datetime.fromisoformat(value))
    return datetime.fromtimestamp(timestamp)


def hours_between(earlier: datetime, later: datetime) -> float:
    """Elapsed hours from earlier to later, never negative."""
    return max((later - earlier).total_seconds() / 3600.0, 0.0)


def days_between(earlier: datetime, later: datetime) -> int:
    """Whole days elapsed from earlier to later (floor), never negative.

    Args:
        earlier: Start of the interval
        later: End of the interval

    Returns:
        Number of complete 24-hour periods between the two datetimes
    """
    return int(hours_between(earlier, later) // 24)
