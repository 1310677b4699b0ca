"""Authoritative state store for the discipline day.

This module owns every piece of accountability state:
- Built-in and custom task completion for the open discipline day
- Streak and the archive of closed days (DayRecord per day ID)
- Failure log, daily intents/moods, weight log
- Enforcement flags (sequential order, Pomodoro-only completion)
- Ephemeral state: the single Pomodoro slot and the failure flag

Key Concepts:
- Epoch: the store is always inside exactly one discipline day, identified by
  ``last_reset_day_id``. ``perform_reset`` moves it to the next one and is a
  no-op for the day it is already in, so the scheduler may call it redundantly.
- Derived values (locked set, progress, completeness) are recomputed on every
  read from the current state.
- Mutations finish their in-memory update before awaiting persistence, so
  concurrent coroutines on the same loop never observe a half-applied change.
"""

import asyncio
import logging
import math
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta

from pydantic import ValidationError

from src.core.clock import current_day_id
from src.core.config import Constants, settings
from src.core.errors import KeyValueStoreError
from src.core.kv_store import KeyValueStore
from src.core.logging import log_with_context, span
from src.domain.create_models import CustomTaskCreate, ProtocolInitiation, WeightLogCreate
from src.domain.day import ActivePomodoro, DayRecord, FailureEvent, WeightEntry, WeightUnit
from src.domain.state import PersistedState, StoreSnapshot
from src.domain.task import (
    TASK_DEFINITIONS,
    CatalogEntry,
    CustomTask,
    TaskKind,
    initial_task_state,
    is_builtin_task,
)


logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def decode_state(raw: str | None) -> PersistedState:
    """Decode a persisted snapshot, falling back to the initial state.

    A missing, corrupt, or incompatible snapshot is treated as a first-ever run.
    """
    if raw is None:
        return PersistedState()

    try:
        return PersistedState.model_validate_json(raw)
    except ValidationError as e:
        logger.warning(
            "Persisted snapshot could not be decoded, starting from initial state",
            extra={"error_count": e.error_count()},
        )
        return PersistedState()


class StateStore:
    """Single writer of all accountability state."""

    def __init__(
        self,
        *,
        channel: KeyValueStore,
        state: PersistedState | None = None,
        storage_key: str | None = None,
        clock: Clock | None = None,
        failure_active_seconds: float | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            channel: Key-value persistence channel
            state: Initial persisted state (defaults to a first-ever run)
            storage_key: Versioned key of the snapshot
            clock: Source of local wall-clock time
            failure_active_seconds: Length of the failure flag window
        """
        self._channel = channel
        self._state = state or PersistedState()
        self._storage_key = storage_key or settings.storage_key
        self._clock: Clock = clock or datetime.now
        self._failure_active_seconds = (
            settings.failure_active_seconds if failure_active_seconds is None else failure_active_seconds
        )

        # Ephemeral, never persisted
        self._active_pomodoro: ActivePomodoro | None = None
        self._failure_active = False
        self._failure_reset_handles: list[asyncio.TimerHandle] = []

    @classmethod
    async def load(
        cls,
        channel: KeyValueStore,
        *,
        storage_key: str | None = None,
        clock: Clock | None = None,
        failure_active_seconds: float | None = None,
    ) -> "StateStore":
        """Hydrate a store from the persistence channel.

        Args:
            channel: Key-value persistence channel
            storage_key: Versioned key of the snapshot
            clock: Source of local wall-clock time
            failure_active_seconds: Length of the failure flag window

        Returns:
            Store holding the persisted state, or the initial state if loading failed
        """
        key = storage_key or settings.storage_key
        try:
            raw = await channel.get(key)
        except KeyValueStoreError as e:
            logger.warning("Failed to read persisted snapshot: %s", e, extra={"storage_key": key})
            raw = None

        state = decode_state(raw)
        logger.info(
            "State store loaded",
            extra={"storage_key": key, "last_reset_day_id": state.last_reset_day_id, "streak": state.streak},
        )
        return cls(
            channel=channel,
            state=state,
            storage_key=key,
            clock=clock,
            failure_active_seconds=failure_active_seconds,
        )

    # ── Persistence ──────────────────────────────────────────────────────────

    async def _persist(self) -> None:
        """Write the persisted fields to the channel. Failures are logged, not raised."""
        payload = self._state.model_dump_json()
        try:
            await self._channel.set(self._storage_key, payload)
        except KeyValueStoreError as e:
            logger.error("Failed to persist state: %s", e, extra={"storage_key": self._storage_key})

    def now(self) -> datetime:
        """Current local wall-clock time as seen by the store."""
        return self._clock()

    # ── Read-only state ──────────────────────────────────────────────────────

    @property
    def streak(self) -> int:
        return self._state.streak

    @property
    def last_reset_day_id(self) -> str:
        return self._state.last_reset_day_id

    @property
    def protocol_start_time(self) -> datetime | None:
        return self._state.protocol_start_time

    @property
    def enforce_task_order(self) -> bool:
        return self._state.enforce_task_order

    @property
    def enforce_pomodoro(self) -> bool:
        return self._state.enforce_pomodoro

    @property
    def active_pomodoro(self) -> ActivePomodoro | None:
        return self._active_pomodoro

    @property
    def is_failure_active(self) -> bool:
        return self._failure_active

    @property
    def custom_tasks(self) -> list[CustomTask]:
        return list(self._state.custom_tasks)

    @property
    def failure_history(self) -> list[FailureEvent]:
        return list(self._state.failure_history)

    @property
    def weight_log(self) -> list[WeightEntry]:
        return list(self._state.weight_log)

    @property
    def day_history(self) -> dict[str, DayRecord]:
        return dict(self._state.day_history)

    def intent_for(self, day_id: str) -> str:
        return self._state.daily_intents.get(day_id, "")

    def mood_for(self, day_id: str) -> int:
        return self._state.daily_moods.get(day_id, Constants.MOOD_NOT_SET)

    def snapshot(self) -> StoreSnapshot:
        """Return a consistent copy of persisted and ephemeral state."""
        return StoreSnapshot.model_validate(
            {
                **self._state.model_dump(),
                "is_failure_active": self._failure_active,
                "active_pomodoro": self._active_pomodoro,
            }
        )

    def persisted_state(self) -> PersistedState:
        """Return a copy of exactly what is written to the persistence channel."""
        return self._state.model_copy(deep=True)

    # ── Catalog queries ──────────────────────────────────────────────────────

    def catalog(self) -> list[CatalogEntry]:
        """All tasks in unlock order: built-ins first, then custom tasks by creation."""
        return [*TASK_DEFINITIONS, *self._state.custom_tasks]

    def get_task(self, task_id: str) -> CatalogEntry | None:
        """Look up a catalog entry by ID."""
        for entry in self.catalog():
            if entry.id == task_id:
                return entry
        return None

    def is_task_complete(self, task_id: str) -> bool:
        """Check completion of a built-in or custom task (unknown IDs are incomplete)."""
        if is_builtin_task(task_id):
            return self._state.tasks.get(task_id, False)
        return self._state.custom_task_completions.get(task_id, False)

    def completed_count(self) -> int:
        return sum(1 for entry in self.catalog() if self.is_task_complete(entry.id))

    def total_count(self) -> int:
        return len(TASK_DEFINITIONS) + len(self._state.custom_tasks)

    def is_day_complete(self) -> bool:
        """All built-ins done and (no custom tasks or all custom tasks done)."""
        builtin_done = all(self._state.tasks.get(task.id, False) for task in TASK_DEFINITIONS)
        custom_done = all(self._state.custom_task_completions.get(task.id, False) for task in self._state.custom_tasks)
        return builtin_done and custom_done

    def progress_percent(self) -> int:
        """Completion percentage rounded half-up; 0 when there are no tasks."""
        total = self.total_count()
        if total == 0:
            return 0
        return math.floor(self.completed_count() / total * 100 + 0.5)

    def locked_task_ids(self) -> frozenset[str]:
        """Tasks locked by order enforcement: everything after the first incomplete task."""
        if not self._state.enforce_task_order:
            return frozenset()

        locked: set[str] = set()
        found_incomplete = False
        for entry in self.catalog():
            if found_incomplete:
                locked.add(entry.id)
            elif not self.is_task_complete(entry.id):
                found_incomplete = True
        return frozenset(locked)

    def failures_for_day(self, day_id: str) -> list[FailureEvent]:
        return [event for event in self._state.failure_history if event.discipline_day == day_id]

    def build_day_record(self, day_id: str) -> DayRecord:
        """Compute a DayRecord for ``day_id`` from the current completion maps."""
        return DayRecord(
            discipline_day=day_id,
            complete=self.is_day_complete(),
            tasks_completed=self.completed_count(),
            total_tasks=self.total_count(),
            failure_count=len(self.failures_for_day(day_id)),
            intent=self.intent_for(day_id),
            mood=self.mood_for(day_id),
        )

    # ── Reset transition ─────────────────────────────────────────────────────

    async def perform_reset(self, new_day_id: str) -> None:
        """Move the store into discipline day ``new_day_id``.

        Archives the closing day, updates the streak, and clears per-day state.
        Calling it again with the day the store is already in does nothing.

        Args:
            new_day_id: Discipline day to transition to
        """
        with span("state_store.perform_reset"):
            closing_day_id = self._state.last_reset_day_id
            if new_day_id == closing_day_id:
                logger.debug("Reset skipped, already in discipline day %s", new_day_id)
                return

            has_prior_day = closing_day_id != Constants.NO_PRIOR_DAY
            day_was_complete = self.is_day_complete()

            if has_prior_day:
                if closing_day_id in self._state.day_history:
                    logger.warning("Day %s already archived, keeping original record", closing_day_id)
                else:
                    record = self.build_day_record(closing_day_id)
                    self._state.day_history[closing_day_id] = record
                    log_with_context(
                        logger,
                        "info",
                        "Archived discipline day",
                        day_id=closing_day_id,
                        complete=record.complete,
                        tasks_completed=record.tasks_completed,
                        total_tasks=record.total_tasks,
                        failure_count=record.failure_count,
                    )
                if new_day_id < closing_day_id:
                    logger.warning("Reset moved backwards from %s to %s", closing_day_id, new_day_id)

            self._state.streak = self._state.streak + 1 if has_prior_day and day_was_complete else 0

            self._state.tasks = initial_task_state()
            self._state.custom_task_completions = {}
            self._state.protocol_start_time = None
            self._active_pomodoro = None
            self._state.last_reset_day_id = new_day_id

            logger.info(
                "Discipline day reset",
                extra={"closing_day_id": closing_day_id, "new_day_id": new_day_id, "streak": self._state.streak},
            )
            await self._persist()

    # ── Protocol ─────────────────────────────────────────────────────────────

    async def initiate_protocol(self, *, intent: str, mood: int) -> datetime:
        """Unlock the dashboard for today, recording intent and mood.

        Raises:
            ValidationError: If intent is blank/too long or mood is outside 1-5
        """
        initiation = ProtocolInitiation(intent=intent, mood=mood)
        now = self.now()
        day_id = current_day_id(now)

        self._state.protocol_start_time = now
        self._state.daily_intents[day_id] = initiation.intent
        self._state.daily_moods[day_id] = initiation.mood

        logger.info("Protocol initiated", extra={"day_id": day_id, "mood": initiation.mood})
        await self._persist()
        return now

    # ── Task completion ──────────────────────────────────────────────────────

    def _rejection_reason(self, task_id: str, *, currently_complete: bool) -> str | None:
        if task_id in self.locked_task_ids():
            return "locked"
        if self._state.enforce_pomodoro and not currently_complete:
            active = self._active_pomodoro
            if active is None or active.task_id != task_id:
                return "pomodoro_required"
        return None

    async def _flip(self, task_id: str, completions: dict[str, bool]) -> bool:
        currently_complete = completions.get(task_id, False)
        reason = self._rejection_reason(task_id, currently_complete=currently_complete)
        if reason is not None:
            logger.info("Toggle rejected", extra={"task_id": task_id, "reason": reason})
            return False

        completions[task_id] = not currently_complete
        logger.info("Task toggled", extra={"task_id": task_id, "complete": not currently_complete})
        await self._persist()
        return True

    async def toggle_task(self, task_id: str) -> bool:
        """Flip completion of a built-in task.

        Returns:
            True if the state changed, False if the toggle was rejected
        """
        if not is_builtin_task(task_id):
            logger.warning("Toggle ignored for unknown built-in task", extra={"task_id": task_id})
            return False
        return await self._flip(task_id, self._state.tasks)

    async def toggle_custom_task(self, task_id: str) -> bool:
        """Flip completion of a custom task.

        Returns:
            True if the state changed, False if the toggle was rejected
        """
        if not any(task.id == task_id for task in self._state.custom_tasks):
            logger.warning("Toggle ignored for unknown custom task", extra={"task_id": task_id})
            return False
        return await self._flip(task_id, self._state.custom_task_completions)

    async def toggle(self, task_id: str) -> bool:
        """Flip completion of any catalog entry."""
        entry = self.get_task(task_id)
        if entry is None:
            logger.warning("Toggle ignored for unknown task", extra={"task_id": task_id})
            return False
        if entry.kind == TaskKind.CUSTOM:
            return await self.toggle_custom_task(task_id)
        return await self.toggle_task(task_id)

    # ── Custom tasks ─────────────────────────────────────────────────────────

    async def add_custom_task(self, task: CustomTaskCreate) -> CustomTask:
        """Append a custom task at the end of the unlock order."""
        custom_task = CustomTask(
            id=f"{Constants.CUSTOM_TASK_ID_PREFIX}{uuid.uuid4().hex[:12]}",
            label=task.label,
            category=task.category,
            duration=task.duration or f"{task.pomodoro_minutes}m",
            description=task.description,
            pomodoro_minutes=task.pomodoro_minutes,
        )
        self._state.custom_tasks.append(custom_task)

        logger.info("Custom task added", extra={"task_id": custom_task.id, "label": custom_task.label})
        await self._persist()
        return custom_task

    async def remove_custom_task(self, task_id: str) -> bool:
        """Delete a custom task together with its completion entry.

        Returns:
            True if a task was removed
        """
        remaining = [task for task in self._state.custom_tasks if task.id != task_id]
        if len(remaining) == len(self._state.custom_tasks):
            logger.warning("Remove ignored for unknown custom task", extra={"task_id": task_id})
            return False

        self._state.custom_tasks = remaining
        self._state.custom_task_completions.pop(task_id, None)

        logger.info("Custom task removed", extra={"task_id": task_id})
        await self._persist()
        return True

    # ── Enforcement flags ────────────────────────────────────────────────────

    async def toggle_enforce_task_order(self) -> bool:
        self._state.enforce_task_order = not self._state.enforce_task_order
        logger.info("Task order enforcement set to %s", self._state.enforce_task_order)
        await self._persist()
        return self._state.enforce_task_order

    async def toggle_enforce_pomodoro(self) -> bool:
        self._state.enforce_pomodoro = not self._state.enforce_pomodoro
        logger.info("Pomodoro enforcement set to %s", self._state.enforce_pomodoro)
        await self._persist()
        return self._state.enforce_pomodoro

    # ── Pomodoro slot ────────────────────────────────────────────────────────

    async def start_pomodoro(self, task_id: str, end_time: datetime, total_duration: timedelta) -> ActivePomodoro:
        """Occupy the single Pomodoro slot, abandoning any running countdown."""
        previous = self._active_pomodoro
        if previous is not None and previous.task_id != task_id:
            logger.info("Pomodoro abandoned without credit", extra={"task_id": previous.task_id})

        self._active_pomodoro = ActivePomodoro(task_id=task_id, end_time=end_time, total_duration=total_duration)
        logger.info("Pomodoro started", extra={"task_id": task_id, "end_time": end_time.isoformat()})
        return self._active_pomodoro

    async def stop_pomodoro(self) -> None:
        """Clear the Pomodoro slot without completing its task."""
        if self._active_pomodoro is not None:
            logger.info("Pomodoro stopped", extra={"task_id": self._active_pomodoro.task_id})
        self._active_pomodoro = None

    async def complete_pomodoro(self, task_id: str) -> bool:
        """Handle expiry of the countdown bound to ``task_id``.

        Completion is requested while the slot is still bound (so Pomodoro
        enforcement accepts it) and only then is the slot cleared.

        Returns:
            True if the task transitioned to complete
        """
        active = self._active_pomodoro
        if active is None or active.task_id != task_id:
            logger.info("Pomodoro expiry ignored, slot not bound to task", extra={"task_id": task_id})
            return False

        completed = False
        if not self.is_task_complete(task_id):
            completed = await self.toggle(task_id)

        # Only clear the slot we completed; another countdown may have started meanwhile
        if self._active_pomodoro is active:
            self._active_pomodoro = None
        logger.info("Pomodoro finished", extra={"task_id": task_id, "completed": completed})
        return completed

    # ── Failure signal ───────────────────────────────────────────────────────

    def _clear_failure_flag(self) -> None:
        self._failure_active = False
        # Timers share one delay, so they fire in the order they were armed
        if self._failure_reset_handles:
            self._failure_reset_handles.pop(0)
        logger.debug("Failure flag cleared")

    async def trigger_failure(self) -> FailureEvent:
        """Append a failure event and raise the failure flag for a fixed window.

        Every trigger appends another event and arms its own timer. Timers are
        never cancelled, so the flag drops when the earliest pending one fires.
        """
        now = self.now()
        event = FailureEvent(timestamp=now, discipline_day=current_day_id(now))
        self._state.failure_history.append(event)
        self._failure_active = True

        loop = asyncio.get_running_loop()
        self._failure_reset_handles.append(loop.call_later(self._failure_active_seconds, self._clear_failure_flag))

        logger.warning(
            "Failure logged",
            extra={"day_id": event.discipline_day, "failure_count": len(self.failures_for_day(event.discipline_day))},
        )
        await self._persist()
        return event

    # ── Weight log ───────────────────────────────────────────────────────────

    async def log_weight(self, *, value: float, unit: WeightUnit | str = WeightUnit.KG) -> WeightEntry:
        """Append a weight measurement.

        Raises:
            ValidationError: If the value is not in (0, 500]
        """
        measurement = WeightLogCreate(value=value, unit=unit)
        entry = WeightEntry(timestamp=self.now(), value=measurement.value, unit=measurement.unit)
        self._state.weight_log.append(entry)

        logger.info("Weight logged", extra={"value": entry.value, "unit": str(entry.unit)})
        await self._persist()
        return entry
