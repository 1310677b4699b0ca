"""Task domain models and the built-in catalog.

Built-in and custom tasks share one capability surface and are discriminated by
``kind``. Catalog order (built-ins in fixed order, then custom tasks in creation
order) defines the sequential unlock order.
"""

from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field


class TaskCategory(StrEnum):
    """Kind of effort a task represents."""

    PHYSICAL = "physical"
    COGNITIVE = "cognitive"
    INTELLECTUAL = "intellectual"


class TaskKind(StrEnum):
    """Discriminator between catalog variants."""

    BUILTIN = "builtin"
    CUSTOM = "custom"


class BuiltinTaskId(StrEnum):
    """Identifiers of the fixed built-in tasks, in catalog order."""

    MOBILITY_BLOCK_1 = "mobilityBlock1"
    MOBILITY_BLOCK_2 = "mobilityBlock2"
    MOBILITY_BLOCK_3 = "mobilityBlock3"
    DEEP_WORK_1 = "deepWork1"
    DEEP_WORK_2 = "deepWork2"
    DEEP_WORK_3 = "deepWork3"
    DEEP_WORK_4 = "deepWork4"
    READING_20_PAGES = "reading20Pages"


class TaskDefinition(BaseModel):
    """Built-in task definition (static, immutable at runtime)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["builtin"] = "builtin"
    id: str = Field(..., description="Stable built-in task ID")
    label: str = Field(..., description="Display label")
    category: TaskCategory = Field(..., description="Effort category")
    duration: str = Field(..., description="Nominal duration label (e.g., '15m')")
    description: str = Field(default="", description="What the task consists of")
    pomodoro_minutes: int = Field(..., description="Default Pomodoro duration in minutes")


class CustomTask(BaseModel):
    """User-created task appended after the built-ins."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["custom"] = "custom"
    id: str = Field(..., description="Generated unique ID (custom_<hex>)")
    label: str = Field(..., description="Display label")
    category: TaskCategory = Field(..., description="Effort category")
    duration: str = Field(..., description="Nominal duration label")
    description: str = Field(default="", description="What the task consists of")
    pomodoro_minutes: int = Field(..., description="Default Pomodoro duration in minutes")


CatalogEntry = Annotated[TaskDefinition | CustomTask, Field(discriminator="kind")]


def _mobility(task_id: BuiltinTaskId, numeral: str, description: str) -> TaskDefinition:
    return TaskDefinition(
        id=task_id.value,
        label=f"MOBILITY BLOCK {numeral}",
        category=TaskCategory.PHYSICAL,
        duration="15m",
        description=description,
        pomodoro_minutes=15,
    )


def _deep_work(task_id: BuiltinTaskId, numeral: str) -> TaskDefinition:
    return TaskDefinition(
        id=task_id.value,
        label=f"DEEP WORK SESSION {numeral}",
        category=TaskCategory.COGNITIVE,
        duration="60m",
        description="High-priority singular focus block",
        pomodoro_minutes=60,
    )


TASK_DEFINITIONS: tuple[TaskDefinition, ...] = (
    _mobility(BuiltinTaskId.MOBILITY_BLOCK_1, "I", "Joints, hip flexors, thoracic spine"),
    _mobility(BuiltinTaskId.MOBILITY_BLOCK_2, "II", "Hamstrings, shoulders, active stretching"),
    _mobility(BuiltinTaskId.MOBILITY_BLOCK_3, "III", "Full body flow integration"),
    _deep_work(BuiltinTaskId.DEEP_WORK_1, "I"),
    _deep_work(BuiltinTaskId.DEEP_WORK_2, "II"),
    _deep_work(BuiltinTaskId.DEEP_WORK_3, "III"),
    _deep_work(BuiltinTaskId.DEEP_WORK_4, "IV"),
    TaskDefinition(
        id=BuiltinTaskId.READING_20_PAGES.value,
        label="READ 20 PAGES",
        category=TaskCategory.INTELLECTUAL,
        duration="—",
        description="Non-fiction or technical material only",
        pomodoro_minutes=30,
    ),
)

BUILTIN_TASK_IDS: tuple[str, ...] = tuple(task.id for task in TASK_DEFINITIONS)


def initial_task_state() -> dict[str, bool]:
    """Return a fresh all-incomplete completion map for the built-ins."""
    return dict.fromkeys(BUILTIN_TASK_IDS, False)


def is_builtin_task(task_id: str) -> bool:
    """Check whether an ID names a built-in task."""
    return task_id in BUILTIN_TASK_IDS
