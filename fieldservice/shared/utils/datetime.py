"""
UTC datetime utilities for consistent timezone handling.

All datetime values in the system should be timezone-aware UTC.
Use these helpers instead of datetime.now() or datetime.utcnow().
"""

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return the current UTC datetime with timezone info."""
    return datetime.now(UTC)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """
    Ensure a datetime is UTC-aware.

    - If None, returns None
    - If naive, assumes UTC and attaches timezone
    - If aware, converts to UTC

    Use at storage boundaries to normalize datetimes.
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)

    return dt.astimezone(UTC)


def parse_iso_utc(value: str) -> datetime:
    """
    Parse an ISO-8601 string (with or without trailing 'Z') into UTC.

    Raises:
        ValueError: If value is not a valid ISO-8601 timestamp.
    """
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return ensure_utc(parsed)  # type: ignore[return-value]


def from_timestamp_ms_utc(timestamp_ms: int) -> datetime:
    """
    Create a UTC-aware datetime from a millisecond Unix timestamp.
    Common in documents written by JavaScript clients.
    """
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=UTC)
