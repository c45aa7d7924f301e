"""
Shared fixtures.

Settings are read at import time, so the environment is pinned before any
ticketflow module is imported.
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("PIPELINE_SCHEDULE_ENABLED", "false")

import pytest

from ticketflow.infrastructure.database import (
    close_database,
    create_tables,
    get_session_factory,
    init_database,
)
from tests.fakes import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
async def session_factory():
    """Fresh in-memory SQLite database with every table created."""
    init_database("sqlite+aiosqlite://")
    await create_tables()
    yield get_session_factory()
    await close_database()
