"""Calendar-day helpers for Things dates.

Things reports dates as ISO-8601 timestamps. Scheduling decisions only care
about the calendar day, so everything here works on ``datetime.date``.
"""
import re
from datetime import date, timedelta

# Leading YYYY-MM-DD of an ISO-8601 string
CALENDAR_DAY_PATTERN = re.compile(r'^(\d{4})-(\d{2})-(\d{2})', re.ASCII)


def to_calendar_day(timestamp: str) -> date:
    """Truncate an ISO-8601 timestamp to its calendar day.

    Only the literal date digits are used. No time-zone conversion happens,
    so "2026-07-04T23:30:00-05:00" is July 4th even though the UTC instant
    falls on July 5th.

    Raises:
        ValueError: If the string does not start with a valid YYYY-MM-DD.
    """
    match = CALENDAR_DAY_PATTERN.match(timestamp or "")
    if not match:
        raise ValueError(f"Invalid date '{timestamp}'. Expected an ISO-8601 date (YYYY-MM-DD...)")
    year, month, day = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError as e:
        raise ValueError(f"Invalid date '{timestamp}': {e}") from e


def format_calendar_day(day: date) -> str:
    """Render as zero-padded YYYY-MM-DD."""
    return f"{day.year:04d}-{day.month:02d}-{day.day:02d}"


def days_between(start: date, end: date) -> int:
    """Signed number of days from start to end."""
    return (end - start).days


def shift_days(day: date, days: int) -> date:
    """Move a calendar day forward (positive) or back (negative)."""
    return day + timedelta(days=days)
