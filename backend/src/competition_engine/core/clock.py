"""Wall-clock helpers.

The engine never reads the clock below the entry points: routes and the
maintenance loop take ``utcnow()`` once and pass it down. Timestamps are
stored as naive UTC (TIMESTAMP WITHOUT TIME ZONE).
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Interpret naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_db_time(value: datetime) -> datetime:
    """Convert a datetime to the naive UTC form stored in the database."""
    return ensure_utc(value).replace(tzinfo=None)
