"""Half-open time interval helpers.

All instants handled by the booking core are timezone-aware UTC datetimes.
An interval ``[start, end)`` includes its start and excludes its end, so a
meeting ending at 11:00 and one starting at 11:00 do not overlap.
"""

from datetime import date, datetime, time, timedelta, timezone


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    return a_start < b_end and b_start < a_end


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; they were written as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def compose_utc(day: date, at: time) -> datetime:
    """Wall-clock times are UTC; a time carrying an offset is converted."""
    if at.tzinfo is None:
        return datetime.combine(day, at, tzinfo=timezone.utc)
    return datetime.combine(day, at).astimezone(timezone.utc)


def day_bounds_utc(day: date) -> tuple[datetime, datetime]:
    start = compose_utc(day, time.min)
    return start, start + timedelta(days=1)
