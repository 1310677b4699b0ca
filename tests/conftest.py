"""Pytest configuration and shared fixtures."""

from datetime import datetime

import pytest

from src.core.kv_store import InMemoryKeyValueStore
from src.services.state_store import StateStore
from tests.unit.mocks import FakeClock


# 10:00 on 2026-02-09, inside the "2026-02-09" discipline day
DAY_START = datetime(2026, 2, 9, 10, 0)


@pytest.fixture
def clock() -> FakeClock:
    """Fake local clock starting mid-morning of 2026-02-09."""
    return FakeClock(DAY_START)


@pytest.fixture
def channel() -> InMemoryKeyValueStore:
    """Fresh in-memory persistence channel for each test."""
    return InMemoryKeyValueStore()


@pytest.fixture
def store(channel: InMemoryKeyValueStore, clock: FakeClock) -> StateStore:
    """First-ever-run store on the fake clock."""
    return StateStore(channel=channel, clock=clock)
