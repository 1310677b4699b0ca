"""Persisted and observable shapes of the state store."""

from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.core.config import Constants
from src.domain.day import ActivePomodoro, DayRecord, FailureEvent, WeightEntry
from src.domain.task import BUILTIN_TASK_IDS, CustomTask, initial_task_state


MoodValue = Annotated[int, Field(ge=Constants.MOOD_NOT_SET, le=Constants.MOOD_MAX)]


class PersistedState(BaseModel):
    """Everything written to the key-value channel.

    Ephemeral fields (failure flag, active Pomodoro) are deliberately absent so
    they can never reach persistence.
    """

    model_config = ConfigDict(extra="ignore")

    tasks: dict[str, bool] = Field(default_factory=initial_task_state)
    custom_tasks: list[CustomTask] = Field(default_factory=list)
    custom_task_completions: dict[str, bool] = Field(default_factory=dict)
    streak: int = Field(default=0, ge=0)
    last_reset_day_id: str = Field(default="", description="Sentinel '' means no prior day")
    protocol_start_time: datetime | None = Field(default=None, description="None = lockout active")
    failure_history: list[FailureEvent] = Field(default_factory=list)
    daily_intents: dict[str, str] = Field(default_factory=dict)
    daily_moods: dict[str, MoodValue] = Field(default_factory=dict)
    weight_log: list[WeightEntry] = Field(default_factory=list)
    day_history: dict[str, DayRecord] = Field(default_factory=dict)
    enforce_task_order: bool = False
    enforce_pomodoro: bool = False

    @field_validator("tasks")
    @classmethod
    def normalize_builtin_tasks(cls, v: dict[str, bool]) -> dict[str, bool]:
        """Keep exactly the built-in IDs, defaulting missing ones to incomplete."""
        return {task_id: bool(v.get(task_id, False)) for task_id in BUILTIN_TASK_IDS}


class StoreSnapshot(PersistedState):
    """Complete, consistent view of the store at one instant."""

    is_failure_active: bool = False
    active_pomodoro: ActivePomodoro | None = None
