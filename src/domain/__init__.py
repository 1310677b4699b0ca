"""Domain models and DTOs."""

from src.domain.create_models import CustomTaskCreate, ProtocolInitiation, WeightLogCreate
from src.domain.day import ActivePomodoro, DayRecord, FailureEvent, WeightEntry, WeightUnit
from src.domain.state import PersistedState, StoreSnapshot
from src.domain.task import (
    BUILTIN_TASK_IDS,
    TASK_DEFINITIONS,
    BuiltinTaskId,
    CatalogEntry,
    CustomTask,
    TaskCategory,
    TaskDefinition,
    TaskKind,
)


__all__ = [
    "BUILTIN_TASK_IDS",
    "TASK_DEFINITIONS",
    "ActivePomodoro",
    "BuiltinTaskId",
    "CatalogEntry",
    "CustomTask",
    "CustomTaskCreate",
    "DayRecord",
    "FailureEvent",
    "PersistedState",
    "ProtocolInitiation",
    "StoreSnapshot",
    "TaskCategory",
    "TaskDefinition",
    "TaskKind",
    "WeightEntry",
    "WeightLogCreate",
    "WeightUnit",
]
