"""Shared fixtures for blogwatcher tests."""

import pytest

from blogwatcher.config import ServerConfig
from blogwatcher.storage.database import Database


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def in_memory_db():
    """Create an in-memory database handle for testing."""
    db = await Database.open(":memory:")
    yield db
    await db.close()


@pytest.fixture
def test_config(tmp_path):
    """Scan settings pointing at a temporary database file."""
    return ServerConfig(db_path=tmp_path / "blogwatcher.db")
