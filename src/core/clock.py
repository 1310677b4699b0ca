"""Discipline day arithmetic.

The discipline day is NOT the calendar day: it runs from 04:00 local time to
03:59:59 the next calendar day and is identified by the calendar date on which
it started (``YYYY-MM-DD``).

Examples:
    03:30 on 2026-02-10 -> "2026-02-09" (still inside the Feb 9th window)
    04:01 on 2026-02-10 -> "2026-02-10"

All functions here are pure and work on naive local wall-clock datetimes.
"""

from datetime import date, datetime, timedelta

from src.core.config import Constants


def current_day_id(now: datetime | None = None) -> str:
    """Return the discipline day id that ``now`` belongs to.

    Args:
        now: Local wall-clock instant (defaults to the current time)

    Returns:
        ISO date string of the discipline day
    """
    now = now or datetime.now()
    day = now.date()
    if now.hour < Constants.RESET_HOUR:
        day -= timedelta(days=1)
    return day.isoformat()


def previous_day_id(day_id: str) -> str:
    """Return the discipline day id immediately before ``day_id``."""
    return (date.fromisoformat(day_id) - timedelta(days=1)).isoformat()


def time_until_next_boundary(now: datetime | None = None) -> timedelta:
    """Return the delay until the next 04:00 boundary strictly after ``now``.

    The result is always greater than zero and at most 24 hours.
    """
    now = now or datetime.now()
    boundary = now.replace(hour=Constants.RESET_HOUR, minute=0, second=0, microsecond=0)
    if now >= boundary:
        boundary += timedelta(days=1)
    return boundary - now


def next_boundary(now: datetime | None = None) -> datetime:
    """Return the wall-clock instant of the next boundary."""
    now = now or datetime.now()
    return now + time_until_next_boundary(now)


def last_n_day_ids(today: str, n: int) -> list[str]:
    """Return the last ``n`` discipline day ids ending at ``today``, most recent first."""
    days: list[str] = []
    current = today
    for _ in range(n):
        days.append(current)
        current = previous_day_id(current)
    return days


def format_local_time(value: datetime | None) -> str:
    """Format a timestamp as ``HH:MM:SS`` (``--:--:--`` when missing)."""
    if value is None:
        return "--:--:--"
    if value.tzinfo is not None:
        value = value.astimezone()
    return value.strftime("%H:%M:%S")
