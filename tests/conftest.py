"""Pytest configuration and fixtures."""

import os
from datetime import datetime
from typing import AsyncGenerator

import pytest
from httpx import AsyncClient, ASGITransport

from api.routes import get_repositories
from db.memory import InMemoryStore
from main import app


# Set test environment
os.environ.setdefault("STORAGE_BACKEND", "memory")

# Fixed "now" used by every use case under test
FIXED_NOW = datetime(2026, 3, 10, 6, 0)


class FixedClock:
    """Callable clock returning a settable instant."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def store() -> InMemoryStore:
    """Provide an empty in-memory storage backend."""
    return InMemoryStore()


@pytest.fixture
async def test_client(store: InMemoryStore) -> AsyncGenerator[AsyncClient, None]:
    """Provide test HTTP client backed by the in-memory store."""
    app.dependency_overrides[get_repositories] = store.repositories
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
