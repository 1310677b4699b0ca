"""Configuration management for grindos."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Persistence Configuration
    state_db_path: str = Field(default="./grindos.db", description="SQLite file backing the key-value channel")
    storage_key: str = Field(
        default="grindos-state-v2",
        description="Versioned key of the persisted snapshot (schema version lives in the key)",
    )

    # Failure Signal Configuration
    failure_active_seconds: float = Field(
        default=10.0, description="How long the failure flag stays active after a trigger (seconds)"
    )

    # Pomodoro Configuration
    pomodoro_tick_seconds: float = Field(
        default=0.5, description="Polling interval of a running Pomodoro countdown (seconds)"
    )

    # Review Configuration
    review_window_days: int = Field(default=14, description="Number of discipline days shown in the review")

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")
    environment: str = Field(default="development", description="Deployment environment name")


# Application Constants
class Constants:
    """Application-wide constants."""

    # Discipline Day
    RESET_HOUR: int = 4  # 04:00 local time
    NO_PRIOR_DAY: str = ""  # Sentinel for "never reset"

    # Protocol Initiation
    MOOD_MIN: int = 1
    MOOD_MAX: int = 5
    MOOD_NOT_SET: int = 0
    INTENT_MAX_LENGTH: int = 280

    # Custom Tasks
    POMODORO_MIN_MINUTES: int = 1
    POMODORO_MAX_MINUTES: int = 480
    CUSTOM_TASK_ID_PREFIX: str = "custom_"

    # Weight Log
    WEIGHT_MAX_VALUE: float = 500.0

    # Scheduler
    RESET_JOB_ID: str = "discipline_day_reset"


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
