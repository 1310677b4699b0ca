from src.services import (
    export_service,
    history_service,
    pomodoro_service,
    state_store,
)


__all__ = [
    "export_service",
    "history_service",
    "pomodoro_service",
    "state_store",
]
