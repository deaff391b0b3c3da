"""Fixtures for end-to-end scan tests against a temporary database."""

import pytest

from blogwatcher import config as config_module
from blogwatcher.storage import database as database_module


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    """Point the process config and default handle at a fresh database."""
    path = tmp_path / "blogwatcher.db"
    monkeypatch.setenv("BLOGWATCHER_DB_PATH", str(path))
    monkeypatch.setattr(config_module, "_config", None)
    monkeypatch.setattr(database_module, "_db_connection", None)
    return path


@pytest.fixture
async def seeded_db(db_path):
    """Default database handle with two tracked blogs."""
    db = await database_module.get_database()
    await db.add_blog(
        name="Feed Blog",
        url="https://feed.example.com",
        feed_url="https://feed.example.com/rss.xml",
    )
    await db.add_blog(
        name="Scraped Blog",
        url="https://scraped.example.com",
        scrape_selector="article.post",
    )
    yield db
    await database_module.close_database()


