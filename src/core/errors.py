"""Error types and structured error payloads."""

from enum import Enum

from pydantic import BaseModel


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"


class ErrorCode:
    """Error codes for specific error conditions."""

    # Task errors
    ERR_TASK_NOT_FOUND = "ERR_TASK_NOT_FOUND"
    ERR_TASK_LOCKED = "ERR_TASK_LOCKED"
    ERR_POMODORO_REQUIRED = "ERR_POMODORO_REQUIRED"

    # Input errors
    ERR_INVALID_DAY_ID = "ERR_INVALID_DAY_ID"


class ErrorResponse(BaseModel):
    """Structured error response with user-friendly messaging."""

    code: str
    message: str
    suggestion: str
    severity: ErrorSeverity


class KeyValueStoreError(Exception):
    """Raised when the persistence channel cannot read or write a key."""