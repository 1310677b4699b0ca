"""grindos - discipline day accountability engine."""

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from src.core.config import settings
from src.core.kv_store import KeyValueStore, SQLiteKeyValueStore
from src.core.logging import configure_logfire, instrument_fastapi
from src.core.scheduler import ResetScheduler
from src.interface.api_router import router as api_router
from src.services.pomodoro_service import PomodoroRunner
from src.services.state_store import StateStore


logger = logging.getLogger(__name__)


def create_app(
    *,
    channel: KeyValueStore | None = None,
    clock: Callable[[], datetime] | None = None,
) -> FastAPI:
    """Build the application.

    Args:
        channel: Persistence channel (defaults to SQLite at ``settings.state_db_path``)
        clock: Source of local wall-clock time shared by store and scheduler

    Returns:
        FastAPI application whose lifespan owns the store, scheduler, and Pomodoro runner
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Application lifespan context manager."""
        # Startup
        configure_logfire()

        sqlite_channel: SQLiteKeyValueStore | None = None
        if channel is None:
            sqlite_channel = SQLiteKeyValueStore(settings.state_db_path)
            await sqlite_channel.connect()
            logger.info("Database initialized")

        store = await StateStore.load(channel or sqlite_channel, clock=clock)
        reset_scheduler = ResetScheduler(store)
        pomodoro_runner = PomodoroRunner(store)

        app.state.store = store
        app.state.reset_scheduler = reset_scheduler
        app.state.pomodoro_runner = pomodoro_runner

        await reset_scheduler.start()
        yield
        # Shutdown
        reset_scheduler.shutdown()
        await pomodoro_runner.stop()
        if sqlite_channel is not None:
            await sqlite_channel.close()

    app = FastAPI(
        title="grindos",
        description="Discipline day accountability engine",
        version="0.2.0",
        lifespan=lifespan,
    )

    # Instrument FastAPI with Logfire
    instrument_fastapi(app)

    # Register routers
    app.include_router(api_router)

    @app.get("/health")
    async def health_check() -> JSONResponse:
        """Health check endpoint."""
        return JSONResponse(content={"status": "healthy"}, status_code=200)

    @app.get("/health/scheduler")
    async def scheduler_health_check() -> JSONResponse:
        """Reset scheduler health with the next boundary."""
        reset_scheduler: ResetScheduler = app.state.reset_scheduler
        next_run = reset_scheduler.next_run_time()
        running = reset_scheduler.is_running and next_run is not None
        return JSONResponse(
            content={
                "status": "healthy" if running else "degraded",
                "last_reset_day_id": app.state.store.last_reset_day_id,
                "next_reset": next_run.isoformat() if next_run else None,
            },
            status_code=200 if running else 503,
        )

    return app


app = create_app()
