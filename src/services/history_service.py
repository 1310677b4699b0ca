"""Day history queries for review and reporting.

This module provides functions for:
- Looking up a single discipline day (archived record or live open day)
- Building the multi-day review (completion count, mood trend)

Key Concepts:
- Archived day: a DayRecord written by the store when the day closed.
- Open day: the discipline day the clock is currently in; its record is
  computed live from the store and may still change.
"""

import logging
from datetime import datetime

from pydantic import BaseModel

from src.core.clock import current_day_id, last_n_day_ids
from src.core.config import settings
from src.domain.day import DayRecord
from src.services.state_store import StateStore


logger = logging.getLogger(__name__)


class DaySummary(BaseModel):
    """One discipline day as shown in the review."""

    day_id: str
    is_today: bool
    has_data: bool
    record: DayRecord | None = None


class MoodPoint(BaseModel):
    """Mood value of one day (0 = not set)."""

    day_id: str
    mood: int


class ReviewSummary(BaseModel):
    """Review over the last N discipline days, most recent first."""

    today: str
    streak: int
    days_tracked: int
    days_complete: int
    days: list[DaySummary]
    mood_trend: list[MoodPoint]


def get_day_record(store: StateStore, day_id: str, *, now: datetime | None = None) -> DayRecord | None:
    """Return the record for ``day_id``.

    Args:
        store: State store to read
        day_id: Discipline day ID
        now: Local wall-clock instant defining the open day (defaults to the store clock)

    Returns:
        Live record for the open day, archived record for a closed day, or None
    """
    today = current_day_id(now or store.now())
    if day_id == today:
        record = store.build_day_record(day_id)
        # An open day only counts as complete when there is something to complete
        return record.model_copy(update={"complete": record.complete and record.total_tasks > 0})
    return store.day_history.get(day_id)


def get_day_summary(store: StateStore, day_id: str, *, now: datetime | None = None) -> DaySummary:
    """Wrap ``get_day_record`` with review metadata."""
    today = current_day_id(now or store.now())
    record = get_day_record(store, day_id, now=now)
    return DaySummary(day_id=day_id, is_today=day_id == today, has_data=record is not None, record=record)


def get_review(store: StateStore, *, now: datetime | None = None, days: int | None = None) -> ReviewSummary:
    """Build the review over the last ``days`` discipline days.

    Args:
        store: State store to read
        now: Local wall-clock instant (defaults to the store clock)
        days: Window length (defaults to the configured review window)

    Returns:
        Review summary with per-day entries and the mood trend (oldest first)
    """
    now = now or store.now()
    window = days or settings.review_window_days
    today = current_day_id(now)

    summaries = [get_day_summary(store, day_id, now=now) for day_id in last_n_day_ids(today, window)]
    days_complete = sum(1 for summary in summaries if summary.record is not None and summary.record.complete)
    mood_trend = [
        MoodPoint(day_id=summary.day_id, mood=summary.record.mood if summary.record else 0)
        for summary in reversed(summaries)
    ]

    logger.debug("Review built", extra={"today": today, "window": window, "days_complete": days_complete})
    return ReviewSummary(
        today=today,
        streak=store.streak,
        days_tracked=len(summaries),
        days_complete=days_complete,
        days=summaries,
        mood_trend=mood_trend,
    )
