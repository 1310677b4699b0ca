"""Tests for the state store: reset transition, toggles, locks, and progress."""

from datetime import datetime, timedelta

import pytest
from pydantic import ValidationError

from src.core.kv_store import InMemoryKeyValueStore
from src.domain.create_models import CustomTaskCreate
from src.domain.day import DayRecord, FailureEvent
from src.domain.state import PersistedState
from src.domain.task import BUILTIN_TASK_IDS, BuiltinTaskId, TaskCategory
from src.services.state_store import StateStore
from tests.unit.mocks import FakeClock, complete_builtins


# ── Reset transition ─────────────────────────────────────────────────────────


@pytest.mark.unit
async def test_reset_after_complete_day_increments_streak(store_in_day: StateStore) -> None:
    """Test closing a fully complete day archives it and extends the streak."""
    await complete_builtins(store_in_day)

    await store_in_day.perform_reset("2026-02-10")

    record = store_in_day.day_history["2026-02-09"]
    assert record.complete is True
    assert record.tasks_completed == 8
    assert record.total_tasks == 8
    assert store_in_day.streak == 4
    assert store_in_day.last_reset_day_id == "2026-02-10"
    assert not any(store_in_day.is_task_complete(task_id) for task_id in BUILTIN_TASK_IDS)


@pytest.mark.unit
async def test_reset_after_incomplete_day_zeroes_streak(store_in_day: StateStore) -> None:
    """Test closing a partially complete day archives it and breaks the streak."""
    await complete_builtins(store_in_day, count=6)

    await store_in_day.perform_reset("2026-02-10")

    record = store_in_day.day_history["2026-02-09"]
    assert record.complete is False
    assert record.tasks_completed == 6
    assert record.total_tasks == 8
    assert store_in_day.streak == 0
    assert store_in_day.completed_count() == 0


@pytest.mark.unit
async def test_reset_is_idempotent(store_in_day: StateStore, channel: InMemoryKeyValueStore) -> None:
    """Test a second reset for the same day changes nothing and writes nothing."""
    await complete_builtins(store_in_day)
    await store_in_day.perform_reset("2026-02-10")
    writes = channel.write_count
    before = store_in_day.persisted_state()

    await store_in_day.perform_reset("2026-02-10")

    assert channel.write_count == writes
    assert store_in_day.persisted_state() == before
    assert list(store_in_day.day_history) == ["2026-02-09"]
    assert store_in_day.streak == 4


@pytest.mark.unit
async def test_first_ever_reset_archives_nothing(store: StateStore) -> None:
    """Test the first reset has no prior day to archive and starts the streak at 0."""
    await store.toggle_task(BuiltinTaskId.MOBILITY_BLOCK_1)

    await store.perform_reset("2026-02-09")

    assert store.day_history == {}
    assert store.streak == 0
    assert store.last_reset_day_id == "2026-02-09"
    assert store.completed_count() == 0


@pytest.mark.unit
async def test_first_ever_reset_with_everything_done_keeps_streak_zero(store: StateStore) -> None:
    """Test completion before the first reset cannot earn a streak."""
    await complete_builtins(store)

    await store.perform_reset("2026-02-09")

    assert store.streak == 0


@pytest.mark.unit
async def test_reset_archives_intent_mood_and_failures(store_in_day: StateStore, clock: FakeClock) -> None:
    """Test the archive carries the closing day's intent, mood, and failure count."""
    await store_in_day.initiate_protocol(intent="Ship the release", mood=4)
    await store_in_day.trigger_failure()
    await store_in_day.trigger_failure()

    await store_in_day.perform_reset("2026-02-10")

    record = store_in_day.day_history["2026-02-09"]
    assert record.intent == "Ship the release"
    assert record.mood == 4
    assert record.failure_count == 2
    # Failure history and intents are kept across resets
    assert len(store_in_day.failure_history) == 2
    assert store_in_day.intent_for("2026-02-09") == "Ship the release"


@pytest.mark.unit
async def test_reset_clears_protocol_and_pomodoro(store_in_day: StateStore, clock: FakeClock) -> None:
    """Test the reset restores the lockout and empties the Pomodoro slot."""
    await store_in_day.initiate_protocol(intent="Focus", mood=3)
    await store_in_day.start_pomodoro(
        BuiltinTaskId.DEEP_WORK_1, clock() + timedelta(minutes=60), timedelta(minutes=60)
    )

    await store_in_day.perform_reset("2026-02-10")

    assert store_in_day.protocol_start_time is None
    assert store_in_day.active_pomodoro is None


@pytest.mark.unit
async def test_reset_keeps_existing_archive(channel: InMemoryKeyValueStore, clock: FakeClock) -> None:
    """Test re-closing an already archived day never overwrites its record."""
    original = DayRecord(discipline_day="2026-02-09", complete=True, tasks_completed=8, total_tasks=8)
    store = StateStore(
        channel=channel,
        clock=clock,
        state=PersistedState(last_reset_day_id="2026-02-09", day_history={"2026-02-09": original}),
    )

    await store.perform_reset("2026-02-10")

    assert store.day_history["2026-02-09"] == original


@pytest.mark.unit
async def test_reset_with_custom_task_incomplete_is_not_complete(store_in_day: StateStore) -> None:
    """Test an incomplete custom task makes the closing day incomplete."""
    await store_in_day.add_custom_task(CustomTaskCreate(label="cold shower"))
    await complete_builtins(store_in_day)

    await store_in_day.perform_reset("2026-02-10")

    record = store_in_day.day_history["2026-02-09"]
    assert record.complete is False
    assert record.tasks_completed == 8
    assert record.total_tasks == 9
    assert store_in_day.streak == 0


@pytest.mark.unit
async def test_reset_clears_custom_completions_but_keeps_tasks(store_in_day: StateStore) -> None:
    """Test custom tasks survive a reset while their completions are cleared."""
    custom = await store_in_day.add_custom_task(CustomTaskCreate(label="journal"))
    await complete_builtins(store_in_day)
    assert await store_in_day.toggle_custom_task(custom.id)

    await store_in_day.perform_reset("2026-02-10")

    assert store_in_day.day_history["2026-02-09"].complete is True
    assert store_in_day.streak == 4
    assert [task.id for task in store_in_day.custom_tasks] == [custom.id]
    assert store_in_day.is_task_complete(custom.id) is False


# ── Toggles and progress ─────────────────────────────────────────────────────


@pytest.mark.unit
async def test_toggle_flips_completion(store_in_day: StateStore) -> None:
    """Test toggling twice returns a task to incomplete."""
    assert await store_in_day.toggle_task(BuiltinTaskId.DEEP_WORK_1)
    assert store_in_day.is_task_complete(BuiltinTaskId.DEEP_WORK_1)

    assert await store_in_day.toggle_task(BuiltinTaskId.DEEP_WORK_1)
    assert not store_in_day.is_task_complete(BuiltinTaskId.DEEP_WORK_1)


@pytest.mark.unit
async def test_toggle_unknown_task_is_rejected(store_in_day: StateStore) -> None:
    """Test unknown IDs are ignored without touching the state."""
    before = store_in_day.persisted_state()

    assert await store_in_day.toggle_task("meditation") is False
    assert await store_in_day.toggle_custom_task("custom_missing") is False
    assert await store_in_day.toggle("nope") is False
    assert store_in_day.persisted_state() == before


@pytest.mark.unit
@pytest.mark.parametrize(
    ("completed", "expected"),
    [(0, 0), (1, 13), (2, 25), (3, 38), (4, 50), (5, 63), (7, 88), (8, 100)],
)
async def test_progress_percent_rounds_half_up(store_in_day: StateStore, completed: int, expected: int) -> None:
    """Test progress is rounded half-up over the whole catalog."""
    await complete_builtins(store_in_day, count=completed)

    assert store_in_day.progress_percent() == expected


@pytest.mark.unit
async def test_progress_includes_custom_tasks(store_in_day: StateStore) -> None:
    """Test custom tasks count toward the progress denominator."""
    await store_in_day.add_custom_task(CustomTaskCreate(label="stretch"))
    await store_in_day.add_custom_task(CustomTaskCreate(label="walk"))
    await complete_builtins(store_in_day, count=5)

    # 5 / 10
    assert store_in_day.progress_percent() == 50
    assert store_in_day.is_day_complete() is False


# ── Order enforcement ────────────────────────────────────────────────────────


@pytest.mark.unit
async def test_locked_set_empty_without_enforcement(store_in_day: StateStore) -> None:
    """Test nothing is locked while order enforcement is off."""
    assert store_in_day.locked_task_ids() == frozenset()


@pytest.mark.unit
async def test_locked_set_is_everything_after_first_incomplete(store_in_day: StateStore) -> None:
    """Test the locked set once mobility blocks I-III are done."""
    await complete_builtins(store_in_day, count=3)
    await store_in_day.toggle_enforce_task_order()

    assert store_in_day.locked_task_ids() == frozenset(
        {
            BuiltinTaskId.DEEP_WORK_2,
            BuiltinTaskId.DEEP_WORK_3,
            BuiltinTaskId.DEEP_WORK_4,
            BuiltinTaskId.READING_20_PAGES,
        }
    )


@pytest.mark.unit
async def test_locked_set_spans_custom_tasks(store_in_day: StateStore) -> None:
    """Test custom tasks are locked behind incomplete built-ins."""
    custom = await store_in_day.add_custom_task(CustomTaskCreate(label="extra"))
    await store_in_day.toggle_enforce_task_order()

    assert custom.id in store_in_day.locked_task_ids()

    await complete_builtins(store_in_day)
    assert store_in_day.locked_task_ids() == frozenset()


@pytest.mark.unit
async def test_locked_task_cannot_be_toggled(store_in_day: StateStore) -> None:
    """Test toggling a locked task is rejected without a state change."""
    await store_in_day.toggle_enforce_task_order()

    assert await store_in_day.toggle_task(BuiltinTaskId.DEEP_WORK_2) is False
    assert store_in_day.is_task_complete(BuiltinTaskId.DEEP_WORK_2) is False


@pytest.mark.unit
async def test_completed_task_before_gap_can_be_unticked(store_in_day: StateStore) -> None:
    """Test a completed task before the first incomplete one stays toggleable."""
    await complete_builtins(store_in_day, count=2)
    await store_in_day.toggle_enforce_task_order()

    assert await store_in_day.toggle_task(BuiltinTaskId.MOBILITY_BLOCK_2)
    assert store_in_day.is_task_complete(BuiltinTaskId.MOBILITY_BLOCK_2) is False


@pytest.mark.unit
async def test_enforcement_flags_toggle(store_in_day: StateStore) -> None:
    """Test enforcement toggles return the new value."""
    assert await store_in_day.toggle_enforce_task_order() is True
    assert await store_in_day.toggle_enforce_task_order() is False
    assert await store_in_day.toggle_enforce_pomodoro() is True
    assert store_in_day.enforce_pomodoro is True


# ── Pomodoro enforcement ─────────────────────────────────────────────────────


@pytest.mark.unit
async def test_pomodoro_enforcement_rejects_manual_completion(store_in_day: StateStore) -> None:
    """Test manual completion is rejected while Pomodoro enforcement is on."""
    await store_in_day.toggle_enforce_pomodoro()

    assert await store_in_day.toggle_task(BuiltinTaskId.MOBILITY_BLOCK_1) is False
    assert store_in_day.is_task_complete(BuiltinTaskId.MOBILITY_BLOCK_1) is False


@pytest.mark.unit
async def test_pomodoro_enforcement_accepts_bound_completion(store_in_day: StateStore, clock: FakeClock) -> None:
    """Test completion is accepted while the slot is bound to the task."""
    await store_in_day.toggle_enforce_pomodoro()
    await store_in_day.start_pomodoro(
        BuiltinTaskId.MOBILITY_BLOCK_1, clock() + timedelta(minutes=15), timedelta(minutes=15)
    )

    assert await store_in_day.complete_pomodoro(BuiltinTaskId.MOBILITY_BLOCK_1) is True
    assert store_in_day.is_task_complete(BuiltinTaskId.MOBILITY_BLOCK_1)
    assert store_in_day.active_pomodoro is None


@pytest.mark.unit
async def test_pomodoro_enforcement_allows_unticking(store_in_day: StateStore) -> None:
    """Test a completed task can still be unticked manually under Pomodoro enforcement."""
    await store_in_day.toggle_task(BuiltinTaskId.MOBILITY_BLOCK_1)
    await store_in_day.toggle_enforce_pomodoro()

    assert await store_in_day.toggle_task(BuiltinTaskId.MOBILITY_BLOCK_1) is True
    assert store_in_day.is_task_complete(BuiltinTaskId.MOBILITY_BLOCK_1) is False


@pytest.mark.unit
async def test_complete_pomodoro_for_unbound_task_is_ignored(store_in_day: StateStore, clock: FakeClock) -> None:
    """Test an expiry for a task the slot is not bound to does nothing."""
    await store_in_day.start_pomodoro(BuiltinTaskId.DEEP_WORK_1, clock() + timedelta(minutes=1), timedelta(minutes=1))

    assert await store_in_day.complete_pomodoro(BuiltinTaskId.DEEP_WORK_2) is False
    assert store_in_day.active_pomodoro is not None
    assert store_in_day.is_task_complete(BuiltinTaskId.DEEP_WORK_2) is False


@pytest.mark.unit
async def test_complete_pomodoro_does_not_untick_completed_task(store_in_day: StateStore, clock: FakeClock) -> None:
    """Test expiry on an already complete task keeps it complete."""
    await store_in_day.toggle_task(BuiltinTaskId.DEEP_WORK_1)
    await store_in_day.start_pomodoro(BuiltinTaskId.DEEP_WORK_1, clock() + timedelta(minutes=1), timedelta(minutes=1))

    assert await store_in_day.complete_pomodoro(BuiltinTaskId.DEEP_WORK_1) is False
    assert store_in_day.is_task_complete(BuiltinTaskId.DEEP_WORK_1) is True
    assert store_in_day.active_pomodoro is None


# ── Protocol, custom tasks, weight ───────────────────────────────────────────


@pytest.mark.unit
async def test_initiate_protocol_records_intent_and_mood(store_in_day: StateStore, clock: FakeClock) -> None:
    """Test initiating the protocol lifts the lockout for today."""
    started = await store_in_day.initiate_protocol(intent="  Write chapter 3  ", mood=5)

    assert started == clock()
    assert store_in_day.protocol_start_time == clock()
    assert store_in_day.intent_for("2026-02-09") == "Write chapter 3"
    assert store_in_day.mood_for("2026-02-09") == 5


@pytest.mark.unit
@pytest.mark.parametrize(("intent", "mood"), [("", 3), ("   ", 3), ("ok", 0), ("ok", 6), ("x" * 281, 3)])
async def test_initiate_protocol_rejects_invalid_input(store_in_day: StateStore, intent: str, mood: int) -> None:
    """Test blank or oversized intents and out-of-range moods are rejected."""
    with pytest.raises(ValidationError):
        await store_in_day.initiate_protocol(intent=intent, mood=mood)

    assert store_in_day.protocol_start_time is None


@pytest.mark.unit
async def test_add_custom_task_appends_to_catalog(store_in_day: StateStore) -> None:
    """Test custom tasks are appended after the built-ins in creation order."""
    first = await store_in_day.add_custom_task(CustomTaskCreate(label="cold shower", pomodoro_minutes=5))
    second = await store_in_day.add_custom_task(
        CustomTaskCreate(label="Spanish", category=TaskCategory.INTELLECTUAL)
    )

    assert first.id.startswith("custom_")
    assert first.id != second.id
    assert first.label == "COLD SHOWER"
    assert first.duration == "5m"
    assert second.category == TaskCategory.INTELLECTUAL
    assert [entry.id for entry in store_in_day.catalog()] == [*BUILTIN_TASK_IDS, first.id, second.id]
    assert store_in_day.total_count() == 10


@pytest.mark.unit
async def test_remove_custom_task_drops_completion(store_in_day: StateStore) -> None:
    """Test removing a custom task deletes its completion entry."""
    custom = await store_in_day.add_custom_task(CustomTaskCreate(label="walk"))
    await store_in_day.toggle(custom.id)

    assert await store_in_day.remove_custom_task(custom.id) is True
    assert store_in_day.get_task(custom.id) is None
    assert custom.id not in store_in_day.persisted_state().custom_task_completions
    assert await store_in_day.remove_custom_task(custom.id) is False


@pytest.mark.unit
async def test_builtin_tasks_cannot_be_removed(store_in_day: StateStore) -> None:
    """Test remove_custom_task ignores built-in IDs."""
    assert await store_in_day.remove_custom_task(BuiltinTaskId.DEEP_WORK_1) is False
    assert store_in_day.get_task(BuiltinTaskId.DEEP_WORK_1) is not None


@pytest.mark.unit
async def test_log_weight_appends_entry(store_in_day: StateStore, clock: FakeClock) -> None:
    """Test weight entries are timestamped with the store clock."""
    entry = await store_in_day.log_weight(value=82.4)
    await store_in_day.log_weight(value=180, unit="lbs")

    assert entry.timestamp == clock()
    assert [(e.value, str(e.unit)) for e in store_in_day.weight_log] == [(82.4, "kg"), (180.0, "lbs")]


@pytest.mark.unit
@pytest.mark.parametrize("value", [0, -1, 501])
async def test_log_weight_rejects_out_of_range(store_in_day: StateStore, value: float) -> None:
    """Test weights outside (0, 500] are rejected."""
    with pytest.raises(ValidationError):
        await store_in_day.log_weight(value=value)

    assert store_in_day.weight_log == []


# ── Snapshot ─────────────────────────────────────────────────────────────────


@pytest.mark.unit
async def test_snapshot_is_a_copy(store_in_day: StateStore) -> None:
    """Test mutating a snapshot does not leak into the store."""
    snapshot = store_in_day.snapshot()
    snapshot.tasks[BuiltinTaskId.DEEP_WORK_1] = True
    snapshot.failure_history.append(FailureEvent(timestamp=datetime(2026, 2, 9, 11, 0), discipline_day="2026-02-09"))

    assert store_in_day.is_task_complete(BuiltinTaskId.DEEP_WORK_1) is False
    assert store_in_day.failure_history == []


@pytest.mark.unit
async def test_snapshot_includes_ephemeral_state(store_in_day: StateStore, clock: FakeClock) -> None:
    """Test the snapshot exposes the Pomodoro slot and failure flag."""
    active = await store_in_day.start_pomodoro(
        BuiltinTaskId.DEEP_WORK_1, clock() + timedelta(minutes=60), timedelta(minutes=60)
    )

    snapshot = store_in_day.snapshot()

    assert snapshot.active_pomodoro == active
    assert snapshot.is_failure_active is False
    assert snapshot.streak == 3
