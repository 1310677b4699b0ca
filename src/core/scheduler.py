"""Scheduler for the discipline day boundary reset.

On start the current discipline day is pushed to the store immediately, which
recovers a boundary crossed while the process was not running. A one-shot job
is then armed for the next 04:00 boundary; each firing resets and re-arms for
the following boundary, so firings never overlap.
"""

import logging
from collections.abc import Callable
from datetime import datetime

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

from src.core.clock import current_day_id, time_until_next_boundary
from src.core.config import constants
from src.services.state_store import StateStore


logger = logging.getLogger(__name__)


class ResetScheduler:
    """Drives ``StateStore.perform_reset`` at every discipline day boundary."""

    def __init__(
        self,
        store: StateStore,
        *,
        scheduler: AsyncIOScheduler | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the reset scheduler.

        Args:
            store: Store receiving reset calls
            scheduler: APScheduler instance (a private one is created if omitted)
            clock: Source of local wall-clock time (defaults to the store's clock)
        """
        self._store = store
        self._scheduler = scheduler or AsyncIOScheduler()
        self._clock = clock or store.now
        self._started = False
        self._stopped = False

    @property
    def is_running(self) -> bool:
        return self._started and not self._stopped

    def next_run_time(self) -> datetime | None:
        """Instant the outstanding boundary job will fire, if any."""
        job = self._scheduler.get_job(constants.RESET_JOB_ID)
        if job is None:
            return None
        trigger = job.trigger
        return trigger.run_date if isinstance(trigger, DateTrigger) else None

    async def check_and_reset(self) -> None:
        """Push the current discipline day to the store (idempotent)."""
        day_id = current_day_id(self._clock())
        await self._store.perform_reset(day_id)

    def _arm_next_boundary(self) -> None:
        now = self._clock()
        run_date = now + time_until_next_boundary(now)
        self._scheduler.add_job(
            self._on_boundary,
            trigger=DateTrigger(run_date=run_date),
            id=constants.RESET_JOB_ID,
            name="Discipline Day Reset",
            replace_existing=True,
            misfire_grace_time=None,  # A late fire (e.g., after sleep) must still run
        )
        logger.info("Scheduled discipline day reset", extra={"run_date": run_date.isoformat()})

    async def _on_boundary(self) -> None:
        """Boundary job: reset, then re-arm for the following boundary."""
        if self._stopped:
            return

        logger.info("Running discipline day reset job")
        try:
            await self.check_and_reset()
        except Exception as e:
            logger.error(f"Error in discipline day reset job: {e}")

        if not self._stopped:
            self._arm_next_boundary()

    async def start(self) -> None:
        """Recover any missed boundary, arm the next one, and start the scheduler.

        Must be called from within the running event loop. Calling it twice has
        no further effect.
        """
        if self._started:
            logger.warning("Reset scheduler already started")
            return

        logger.info("Starting reset scheduler")
        self._started = True
        await self.check_and_reset()
        self._arm_next_boundary()

        if not self._scheduler.running:
            self._scheduler.start()
        logger.info("Reset scheduler started successfully")

    def shutdown(self) -> None:
        """Cancel the outstanding boundary job and stop the scheduler.

        No reset call is delivered after this returns.
        """
        logger.info("Stopping reset scheduler")
        self._stopped = True

        try:
            self._scheduler.remove_job(constants.RESET_JOB_ID)
        except JobLookupError:
            logger.debug("No outstanding reset job to cancel")

        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        logger.info("Reset scheduler stopped")
