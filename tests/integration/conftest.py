"""Pytest configuration and fixtures for integration tests."""

from collections.abc import Generator
from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from src.core.kv_store import InMemoryKeyValueStore
from src.main import create_app
from tests.unit.mocks import FakeClock


@pytest.fixture
def api_clock() -> FakeClock:
    """Fake clock at 10:00 of the real current date.

    The reset scheduler arms a real boundary job, which must lie in the future.
    """
    return FakeClock(datetime.now().replace(hour=10, minute=0, second=0, microsecond=0))


@pytest.fixture
def api_channel() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def client(api_channel: InMemoryKeyValueStore, api_clock: FakeClock) -> Generator[TestClient, None, None]:
    """Test client running the full application lifespan."""
    with TestClient(create_app(channel=api_channel, clock=api_clock)) as test_client:
        yield test_client
