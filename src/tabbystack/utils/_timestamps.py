"""Timestamp helpers.

All timestamps are timezone-aware UTC datetimes, using dateutil's UTC
zone.
"""

from datetime import datetime

from dateutil import tz


def utc_now() -> datetime:
    """Return the current time in UTC."""
    return datetime.now(tz=tz.UTC)


def from_epoch(seconds: float) -> datetime:
    """Convert a POSIX timestamp (e.g. a file mtime) to a UTC datetime."""
    return datetime.fromtimestamp(seconds, tz=tz.UTC)


def format_duration(seconds: float) -> str:
    """Format elapsed seconds for operator messages.

    Examples:
        >>> format_duration(42)
        '42s'
        >>> format_duration(125)
        '2m 5s'
    """
    minutes, remainder = divmod(int(seconds), 60)
    if minutes == 0:
        return f"{remainder}s"
    return f"{minutes}m {remainder}s"
