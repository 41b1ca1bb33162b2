"""UTC time helpers.

Timestamps are stored naive, in UTC, the same way across SQLite and PostgreSQL.
"""
from datetime import date, datetime, timedelta, timezone


def utcnow() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Start (inclusive) and end (exclusive) of a UTC calendar day."""
    start = datetime(day.year, day.month, day.day)
    return start, start + timedelta(days=1)


def hour_window(moment: datetime) -> str:
    """Label of the UTC hour containing ``moment``, e.g. ``2026-10-19T09``."""
    return moment.strftime("%Y-%m-%dT%H")
