"""Integration-test fixtures.

These tests need PostgreSQL with migrations applied and Redis
(alembic upgrade head); they are skipped unless INTEGRATION=1.

All integration tests share a single event-loop so that the module-level
SQLAlchemy async engine pool and Redis pool (both created at import time)
remain valid across the entire test session.
"""

import os

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.main import app


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if os.environ.get("INTEGRATION") == "1":
        return
    skip = pytest.mark.skip(reason="needs PostgreSQL + Redis; set INTEGRATION=1")
    for item in items:
        if "integration" in item.nodeid:
            item.add_marker(skip)


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncClient:  # type: ignore[override]
    """Session-scoped client so the engine pool outlives single tests."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

