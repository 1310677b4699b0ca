"""Pytest configuration and fixtures for unit tests."""

import pytest

from src.core.kv_store import InMemoryKeyValueStore
from src.domain.state import PersistedState
from src.services.state_store import StateStore
from tests.unit.mocks import FakeClock


@pytest.fixture
def store_in_day(channel: InMemoryKeyValueStore, clock: FakeClock) -> StateStore:
    """Store already inside discipline day 2026-02-09 with a streak of 3."""
    return StateStore(
        channel=channel,
        clock=clock,
        state=PersistedState(streak=3, last_reset_day_id="2026-02-09"),
    )
