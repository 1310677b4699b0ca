"""Pydantic models validating user input before it reaches the store."""

from pydantic import BaseModel, Field, field_validator, model_validator

from src.core.config import Constants
from src.domain.day import WeightUnit
from src.domain.task import TaskCategory


class ProtocolInitiation(BaseModel):
    """Intent and mood captured when the day's protocol is initiated."""

    intent: str = Field(..., description="Intent statement for the day")
    mood: int = Field(
        ...,
        ge=Constants.MOOD_MIN,
        le=Constants.MOOD_MAX,
        description="Energy level 1 (depleted) to 5 (peak)",
    )

    @field_validator("intent")
    @classmethod
    def validate_intent(cls, v: str) -> str:
        """Strip the intent and enforce non-empty, bounded length."""
        v = v.strip()
        if not v:
            msg = "Intent statement is required"
            raise ValueError(msg)
        if len(v) > Constants.INTENT_MAX_LENGTH:
            msg = f"Intent statement must be at most {Constants.INTENT_MAX_LENGTH} characters"
            raise ValueError(msg)
        return v


class CustomTaskCreate(BaseModel):
    """Pydantic model for creating a custom task."""

    label: str = Field(..., description="Task name (stored upper-cased)")
    category: TaskCategory = Field(default=TaskCategory.COGNITIVE, description="Effort category")
    description: str = Field(default="", description="What the task consists of")
    pomodoro_minutes: int = Field(
        default=30,
        ge=Constants.POMODORO_MIN_MINUTES,
        le=Constants.POMODORO_MAX_MINUTES,
        description="Default Pomodoro duration in minutes",
    )
    duration: str | None = Field(default=None, description="Duration label (defaults to '<minutes>m')")

    @field_validator("label")
    @classmethod
    def validate_label(cls, v: str) -> str:
        """Require a non-blank label and normalize it."""
        v = v.strip()
        if not v:
            msg = "Task name is required"
            raise ValueError(msg)
        return v.upper()

    @field_validator("description")
    @classmethod
    def strip_description(cls, v: str) -> str:
        """Strip surrounding whitespace from the description."""
        return v.strip()

    @model_validator(mode="after")
    def default_duration(self) -> "CustomTaskCreate":
        """Derive the duration label from the Pomodoro length when not given."""
        if not self.duration:
            self.duration = f"{self.pomodoro_minutes}m"
        return self


class WeightLogCreate(BaseModel):
    """Pydantic model for logging a weight measurement."""

    value: float = Field(..., gt=0, le=Constants.WEIGHT_MAX_VALUE, description="Measured weight")
    unit: WeightUnit = Field(default=WeightUnit.KG, description="Unit of the value")
