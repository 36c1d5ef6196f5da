"""Timezone-aware timestamp utilities."""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime.

    Use instead of deprecated ``datetime.utcnow()`` which returns naive datetimes.
    """
    return datetime.now(timezone.utc)


def as_wall_clock(value: datetime) -> datetime:
    """Drop tzinfo without converting.

    Event start/end columns hold local wall-clock values, so remote
    timestamps are stored with their digits untouched.
    """
    return value.replace(tzinfo=None)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes, leave aware ones as they are."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
