"""Discipline day records: failures, archived days, weight and Pomodoro entries."""

from datetime import datetime, timedelta
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class FailureEvent(BaseModel):
    """A single logged failure. Append-only, never mutated."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(..., description="Local instant the failure was logged")
    discipline_day: str = Field(..., description="Discipline day the failure belongs to")


class DayRecord(BaseModel):
    """Snapshot of a closed discipline day, written exactly once at its boundary."""

    model_config = ConfigDict(frozen=True)

    discipline_day: str = Field(..., description="Discipline day ID (YYYY-MM-DD)")
    complete: bool = Field(..., description="Whether every task was completed")
    tasks_completed: int = Field(..., ge=0, description="Number of tasks completed")
    total_tasks: int = Field(..., ge=0, description="Number of tasks in the catalog that day")
    failure_count: int = Field(default=0, ge=0, description="Failures logged that day")
    intent: str = Field(default="", description="Intent statement for that day")
    mood: int = Field(default=0, ge=0, le=5, description="Energy level 1-5 (0 = not set)")


class WeightUnit(StrEnum):
    """Unit of a weight entry (stored per entry)."""

    KG = "kg"
    LBS = "lbs"


class WeightEntry(BaseModel):
    """Biometric weight entry."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(..., description="Local instant the weight was logged")
    value: float = Field(..., description="Measured weight")
    unit: WeightUnit = Field(..., description="Unit of the value")


class ActivePomodoro(BaseModel):
    """Running Pomodoro countdown. Ephemeral, never persisted."""

    model_config = ConfigDict(frozen=True)

    task_id: str = Field(..., description="Task the countdown is bound to")
    end_time: datetime = Field(..., description="Local instant the countdown expires")
    total_duration: timedelta = Field(..., description="Full length of the countdown")

    def remaining(self, now: datetime) -> timedelta:
        """Time left before expiry, floored at zero."""
        return max(self.end_time - now, timedelta(0))

    def is_expired(self, now: datetime) -> bool:
        """Check whether the countdown has reached its end time."""
        return now >= self.end_time
