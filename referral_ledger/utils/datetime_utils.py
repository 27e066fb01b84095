"""
Datetime utilities.

All ledger timestamps are timezone-aware UTC.
"""

from datetime import UTC, date, datetime, time, timedelta


def utc_now() -> datetime:
    """Current time as aware UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """
    Attach UTC to naive datetimes.

    SQLite returns naive values for timezone-aware columns.

    Args:
        value: Datetime, naive or aware

    Returns:
        Aware UTC datetime
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def hours_ago(hours: int, now: datetime | None = None) -> datetime:
    """Point in time `hours` before now."""
    return (now or utc_now()) - timedelta(hours=hours)


def start_of_day(day: date) -> datetime:
    """Midnight UTC of the given day."""
    return datetime.combine(day, time.min, tzinfo=UTC)
