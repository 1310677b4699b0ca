"""Pomodoro countdown runner.

The store holds the single Pomodoro slot; this runner drives the countdown for
whatever occupies it. On expiry it asks the store to complete the bound task
(which clears the slot afterwards). A countdown whose slot was replaced,
stopped, or cleared by a day reset exits without delivering its completion.
"""

import asyncio
import contextlib
import logging
from collections.abc import Callable
from datetime import timedelta

from src.core.config import settings
from src.core.logging import span
from src.domain.day import ActivePomodoro
from src.services.state_store import StateStore


logger = logging.getLogger(__name__)

TickCallback = Callable[[ActivePomodoro, timedelta], None]


class PomodoroRunner:
    """Runs at most one countdown task at a time."""

    def __init__(
        self,
        store: StateStore,
        *,
        tick_seconds: float | None = None,
        on_tick: TickCallback | None = None,
    ) -> None:
        """Initialize the runner.

        Args:
            store: Store owning the Pomodoro slot
            tick_seconds: Polling interval for live remaining-time updates
            on_tick: Optional callback receiving the active countdown and time left
        """
        self._store = store
        self._tick_seconds = settings.pomodoro_tick_seconds if tick_seconds is None else tick_seconds
        self._on_tick = on_tick
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def remaining(self) -> timedelta | None:
        """Time left on the active countdown, or None when idle."""
        active = self._store.active_pomodoro
        if active is None:
            return None
        return active.remaining(self._store.now())

    async def start(self, task_id: str, *, minutes: float | None = None) -> ActivePomodoro:
        """Start a countdown for ``task_id``, replacing any running one.

        Args:
            task_id: Catalog task the countdown is bound to
            minutes: Length of the countdown (defaults to the task's Pomodoro minutes)

        Returns:
            The active countdown

        Raises:
            KeyError: If ``task_id`` is not in the catalog
        """
        with span("pomodoro_service.start"):
            entry = self._store.get_task(task_id)
            if entry is None:
                msg = f"Task {task_id} not found"
                raise KeyError(msg)

            total = timedelta(minutes=entry.pomodoro_minutes if minutes is None else minutes)
            await self._cancel_countdown()

            active = await self._store.start_pomodoro(task_id, self._store.now() + total, total)
            self._task = asyncio.create_task(self._countdown(active), name=f"pomodoro:{task_id}")
            return active

    async def stop(self) -> None:
        """Cancel the running countdown and clear the slot without completion."""
        await self._cancel_countdown()
        await self._store.stop_pomodoro()

    async def _cancel_countdown(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _countdown(self, active: ActivePomodoro) -> None:
        while True:
            # Slot replaced, stopped, or cleared by a reset: this countdown is void
            if self._store.active_pomodoro is not active:
                logger.debug("Pomodoro countdown superseded", extra={"task_id": active.task_id})
                return

            now = self._store.now()
            if active.is_expired(now):
                break

            remaining = active.remaining(now)
            if self._on_tick is not None:
                self._on_tick(active, remaining)
            await asyncio.sleep(min(self._tick_seconds, remaining.total_seconds()))

        logger.info("Pomodoro expired", extra={"task_id": active.task_id})
        try:
            await self._store.complete_pomodoro(active.task_id)
        except Exception as e:
            logger.error(f"Error completing Pomodoro for task {active.task_id}: {e}")
