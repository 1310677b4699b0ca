"""JSON API over the state store."""

import logging
from datetime import date, datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from src.core.clock import current_day_id
from src.core.config import Constants
from src.core.errors import ErrorCode, ErrorResponse, ErrorSeverity
from src.domain.create_models import CustomTaskCreate, ProtocolInitiation, WeightLogCreate
from src.domain.day import ActivePomodoro, FailureEvent, WeightEntry
from src.domain.state import StoreSnapshot
from src.domain.task import CatalogEntry, CustomTask
from src.services import export_service, history_service
from src.services.pomodoro_service import PomodoroRunner
from src.services.state_store import StateStore


logger = logging.getLogger(__name__)

router = APIRouter(tags=["grindos"])


class DashboardView(BaseModel):
    """Snapshot plus the derived values a dashboard renders."""

    current_day_id: str
    catalog: list[CatalogEntry]
    locked_task_ids: list[str]
    progress_percent: int
    is_day_complete: bool
    pomodoro_remaining_seconds: float | None
    state: StoreSnapshot


class PomodoroStart(BaseModel):
    """Optional override of the countdown length."""

    minutes: float | None = Field(
        default=None,
        gt=0,
        le=Constants.POMODORO_MAX_MINUTES,
        description="Countdown length (defaults to the task's Pomodoro minutes)",
    )


def get_store(request: Request) -> StateStore:
    return request.app.state.store


def get_pomodoro_runner(request: Request) -> PomodoroRunner:
    return request.app.state.pomodoro_runner


def _seconds(value: timedelta | None) -> float | None:
    return value.total_seconds() if value is not None else None


def _error(status_code: int, code: str, message: str, suggestion: str) -> HTTPException:
    payload = ErrorResponse(code=code, message=message, suggestion=suggestion, severity=ErrorSeverity.LOW)
    return HTTPException(status_code=status_code, detail=payload.model_dump(mode="json"))


def _dashboard(store: StateStore, runner: PomodoroRunner) -> DashboardView:
    locked = store.locked_task_ids()
    catalog = store.catalog()
    return DashboardView(
        current_day_id=current_day_id(store.now()),
        catalog=catalog,
        locked_task_ids=[entry.id for entry in catalog if entry.id in locked],
        progress_percent=store.progress_percent(),
        is_day_complete=store.is_day_complete(),
        pomodoro_remaining_seconds=_seconds(runner.remaining()),
        state=store.snapshot(),
    )


def _validate_day_id(day_id: str) -> str:
    try:
        date.fromisoformat(day_id)
    except ValueError as e:
        raise _error(
            422,
            ErrorCode.ERR_INVALID_DAY_ID,
            f"Invalid discipline day: {day_id}",
            "Use the YYYY-MM-DD format.",
        ) from e
    return day_id


@router.get("/state")
async def get_state(
    store: StateStore = Depends(get_store),
    runner: PomodoroRunner = Depends(get_pomodoro_runner),
) -> DashboardView:
    """Current dashboard state."""
    return _dashboard(store, runner)


@router.post("/protocol")
async def initiate_protocol(
    initiation: ProtocolInitiation,
    store: StateStore = Depends(get_store),
    runner: PomodoroRunner = Depends(get_pomodoro_runner),
) -> DashboardView:
    """Initiate today's protocol with intent and mood."""
    await store.initiate_protocol(intent=initiation.intent, mood=initiation.mood)
    return _dashboard(store, runner)


@router.post("/tasks/{task_id}/toggle")
async def toggle_task(
    task_id: str,
    store: StateStore = Depends(get_store),
    runner: PomodoroRunner = Depends(get_pomodoro_runner),
) -> DashboardView:
    """Flip completion of a task, honoring order and Pomodoro enforcement."""
    if store.get_task(task_id) is None:
        raise _error(
            status.HTTP_404_NOT_FOUND,
            ErrorCode.ERR_TASK_NOT_FOUND,
            f"Task {task_id} not found",
            "List tasks via GET /state.",
        )

    if not await store.toggle(task_id):
        if task_id in store.locked_task_ids():
            raise _error(
                status.HTTP_409_CONFLICT,
                ErrorCode.ERR_TASK_LOCKED,
                f"Task {task_id} is locked",
                "Complete the earlier tasks first or disable task order enforcement.",
            )
        raise _error(
            status.HTTP_409_CONFLICT,
            ErrorCode.ERR_POMODORO_REQUIRED,
            f"Task {task_id} can only be completed by its Pomodoro",
            "Start the task's Pomodoro and let it run to the end.",
        )
    return _dashboard(store, runner)


@router.post("/custom-tasks", status_code=status.HTTP_201_CREATED)
async def add_custom_task(task: CustomTaskCreate, store: StateStore = Depends(get_store)) -> CustomTask:
    """Append a custom task."""
    return await store.add_custom_task(task)


@router.delete("/custom-tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_custom_task(task_id: str, store: StateStore = Depends(get_store)) -> Response:
    """Delete a custom task and its completion."""
    if not await store.remove_custom_task(task_id):
        raise _error(
            status.HTTP_404_NOT_FOUND,
            ErrorCode.ERR_TASK_NOT_FOUND,
            f"Custom task {task_id} not found",
            "Built-in tasks cannot be removed.",
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/settings/enforce-task-order/toggle")
async def toggle_enforce_task_order(store: StateStore = Depends(get_store)) -> dict[str, bool]:
    return {"enforce_task_order": await store.toggle_enforce_task_order()}


@router.post("/settings/enforce-pomodoro/toggle")
async def toggle_enforce_pomodoro(store: StateStore = Depends(get_store)) -> dict[str, bool]:
    return {"enforce_pomodoro": await store.toggle_enforce_pomodoro()}


@router.post("/failures", status_code=status.HTTP_201_CREATED)
async def trigger_failure(store: StateStore = Depends(get_store)) -> FailureEvent:
    """Log a failure. Confirmation is the caller's responsibility."""
    return await store.trigger_failure()


@router.post("/weight", status_code=status.HTTP_201_CREATED)
async def log_weight(measurement: WeightLogCreate, store: StateStore = Depends(get_store)) -> WeightEntry:
    return await store.log_weight(value=measurement.value, unit=measurement.unit)


@router.post("/pomodoro/{task_id}/start")
async def start_pomodoro(
    task_id: str,
    body: PomodoroStart | None = None,
    runner: PomodoroRunner = Depends(get_pomodoro_runner),
) -> ActivePomodoro:
    """Start the countdown for a task, replacing any running one."""
    try:
        return await runner.start(task_id, minutes=body.minutes if body else None)
    except KeyError as e:
        raise _error(
            status.HTTP_404_NOT_FOUND,
            ErrorCode.ERR_TASK_NOT_FOUND,
            f"Task {task_id} not found",
            "List tasks via GET /state.",
        ) from e


@router.post("/pomodoro/stop", status_code=status.HTTP_204_NO_CONTENT)
async def stop_pomodoro(runner: PomodoroRunner = Depends(get_pomodoro_runner)) -> Response:
    await runner.stop()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/history/{day_id}")
async def get_day(day_id: str, store: StateStore = Depends(get_store)) -> history_service.DaySummary:
    """Archived record of a closed day, or the live record of the open day."""
    return history_service.get_day_summary(store, _validate_day_id(day_id))


@router.get("/review")
async def get_review(
    days: int | None = Query(default=None, ge=1, le=366),
    store: StateStore = Depends(get_store),
) -> history_service.ReviewSummary:
    return history_service.get_review(store, days=days)


@router.get("/export", response_class=PlainTextResponse)
async def export_report(store: StateStore = Depends(get_store)) -> PlainTextResponse:
    """Plain-text report for the current discipline day."""
    now: datetime = store.now()
    content = export_service.generate_daily_report(store.snapshot(), now)
    filename = export_service.report_filename(current_day_id(now))
    return PlainTextResponse(
        content=content,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
