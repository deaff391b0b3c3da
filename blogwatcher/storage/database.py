"""Database storage for blogwatcher.

This module provides async SQLite operations for the blogs and articles the
scanner reads and writes. A Database wraps exactly one aiosqlite connection,
and a connection serializes its own statements, so each handle is a single
writer. Callers that scan concurrently must open one handle per worker;
SQLite resolves contention between handles (WAL journal plus busy timeout).

Database location: ~/.blogwatcher/blogwatcher.db (or BLOGWATCHER_DB_PATH env var)
"""

import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence, Set, Union

import aiosqlite

from blogwatcher.config import get_config
from blogwatcher.errors import StorageError, StorageSetupError
from blogwatcher.models.schemas import Article, Blog

# Stays under SQLite's default host parameter limit
DEFAULT_URL_CHUNK_SIZE = 900

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS blogs (
        id INTEGER PRIMARY KEY,
        name TEXT NOT NULL UNIQUE,
        url TEXT NOT NULL UNIQUE,
        feed_url TEXT,
        scrape_selector TEXT,
        last_scanned TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS articles (
        id INTEGER PRIMARY KEY,
        blog_id INTEGER NOT NULL,
        title TEXT NOT NULL,
        url TEXT NOT NULL UNIQUE,
        thumbnail_url TEXT,
        published_date TIMESTAMP,
        discovered_date TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        is_read BOOLEAN DEFAULT FALSE,
        FOREIGN KEY (blog_id) REFERENCES blogs(id) ON DELETE CASCADE
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_articles_blog_id ON articles(blog_id)",
    "CREATE INDEX IF NOT EXISTS idx_articles_is_read ON articles(is_read)",
]


def chunked(items: Sequence[str], size: int) -> Iterator[Sequence[str]]:
    """Yield consecutive slices of at most size items."""
    if size < 1:
        raise ValueError(f"chunk size must be positive, got {size}")
    for start in range(0, len(items), size):
        yield items[start:start + size]


def _to_iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _from_iso(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _row_to_blog(row: aiosqlite.Row) -> Blog:
    return Blog(
        id=row["id"],
        name=row["name"],
        url=row["url"],
        feed_url=row["feed_url"],
        scrape_selector=row["scrape_selector"],
        last_scanned=_from_iso(row["last_scanned"]),
    )


class Database:
    """One storage handle over the blogwatcher SQLite database."""

    def __init__(self, connection: aiosqlite.Connection, path: Union[str, Path]):
        self._conn = connection
        self.path = path

    @classmethod
    async def open(
        cls,
        path: Union[str, Path],
        busy_timeout: float = 5.0,
    ) -> "Database":
        """Open a new handle, creating the schema if needed.

        Args:
            path: Database file path, or ":memory:"
            busy_timeout: Seconds to wait on a lock held by another handle

        Returns:
            Open Database handle

        Raises:
            StorageSetupError: If the connection or schema setup fails
        """
        conn = None
        try:
            if str(path) != ":memory:":
                Path(path).parent.mkdir(parents=True, exist_ok=True)

            conn = await aiosqlite.connect(str(path), timeout=busy_timeout)
            conn.row_factory = aiosqlite.Row
            await conn.execute("PRAGMA journal_mode=WAL")
            await conn.execute("PRAGMA foreign_keys=ON")
            db = cls(conn, path)
            await db.init_schema()
            return db
        except (sqlite3.Error, OSError) as e:
            if conn is not None:
                await conn.close()
            raise StorageSetupError(f"failed to open database at {path}: {e}") from e

    async def init_schema(self) -> None:
        """Create tables and indexes if they don't exist."""
        for statement in SCHEMA:
            await self._conn.execute(statement)
        await self._conn.commit()

    async def close(self) -> None:
        await self._conn.close()

    async def __aenter__(self) -> "Database":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def add_blog(
        self,
        name: str,
        url: str,
        feed_url: Optional[str] = None,
        scrape_selector: Optional[str] = None,
    ) -> Blog:
        """Add a new blog to the database.

        Raises:
            StorageError: If blog with same name or URL already exists, or the
                insert fails
        """
        try:
            cursor = await self._conn.execute(
                """
                INSERT INTO blogs (name, url, feed_url, scrape_selector)
                VALUES (?, ?, ?, ?)
                """,
                (name, url, feed_url, scrape_selector),
            )
            await self._conn.commit()
        except aiosqlite.IntegrityError as e:
            await self._conn.rollback()
            raise StorageError(
                f"Blog with name '{name}' or URL '{url}' already exists"
            ) from e
        except sqlite3.Error as e:
            await self._conn.rollback()
            raise StorageError(f"failed to add blog '{name}': {e}") from e

        return Blog(
            id=cursor.lastrowid,
            name=name,
            url=url,
            feed_url=feed_url,
            scrape_selector=scrape_selector,
            last_scanned=None,
        )

    async def list_blogs(self) -> List[Blog]:
        """List all blogs ordered by name.

        Raises:
            StorageError: If the query fails
        """
        try:
            cursor = await self._conn.execute("SELECT * FROM blogs ORDER BY name")
            rows = await cursor.fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"failed to list blogs: {e}") from e

        return [_row_to_blog(row) for row in rows]

    async def get_blog_by_name(self, name: str) -> Optional[Blog]:
        """Get a blog by its name, or None if there is no such blog.

        Raises:
            StorageError: If the query fails
        """
        try:
            cursor = await self._conn.execute(
                "SELECT * FROM blogs WHERE name = ?", (name,)
            )
            row = await cursor.fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"failed to get blog '{name}': {e}") from e

        if row is None:
            return None

        return _row_to_blog(row)

    async def update_blog(self, blog: Blog) -> None:
        """Write every column of blog back to its row.

        Raises:
            StorageError: If the update fails
        """
        try:
            await self._conn.execute(
                """
                UPDATE blogs
                SET name = ?, url = ?, feed_url = ?, scrape_selector = ?, last_scanned = ?
                WHERE id = ?
                """,
                (
                    blog.name,
                    blog.url,
                    blog.feed_url,
                    blog.scrape_selector,
                    _to_iso(blog.last_scanned),
                    blog.id,
                ),
            )
            await self._conn.commit()
        except sqlite3.Error as e:
            await self._conn.rollback()
            raise StorageError(f"failed to update blog '{blog.name}': {e}") from e

    async def update_blog_last_scanned(self, blog_id: int, scanned_at: datetime) -> None:
        """Set the last_scanned timestamp for a blog.

        Raises:
            StorageError: If the update fails
        """
        try:
            await self._conn.execute(
                "UPDATE blogs SET last_scanned = ? WHERE id = ?",
                (scanned_at.isoformat(), blog_id),
            )
            await self._conn.commit()
        except sqlite3.Error as e:
            await self._conn.rollback()
            raise StorageError(f"failed to update last scanned time: {e}") from e

    async def get_existing_article_urls(
        self,
        urls: Iterable[str],
        chunk_size: int = DEFAULT_URL_CHUNK_SIZE,
    ) -> Set[str]:
        """Get the subset of urls already stored as articles.

        The lookup runs in chunks of at most chunk_size URLs per query.

        Args:
            urls: Candidate article URLs
            chunk_size: Maximum URLs bound into one query

        Returns:
            Set of URLs that already exist

        Raises:
            StorageError: If any chunk query fails
        """
        candidates = sorted(set(urls))
        existing: Set[str] = set()

        for chunk in chunked(candidates, chunk_size):
            existing |= await self._existing_in_chunk(chunk)

        return existing

    async def _existing_in_chunk(self, chunk: Sequence[str]) -> Set[str]:
        placeholders = ",".join("?" * len(chunk))
        try:
            cursor = await self._conn.execute(
                f"SELECT url FROM articles WHERE url IN ({placeholders})",
                list(chunk),
            )
            rows = await cursor.fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"failed to check existing articles: {e}") from e

        return {row["url"] for row in rows}

    async def add_articles_bulk(self, articles: List[Article]) -> int:
        """Insert articles in a single transaction.

        Either every article is inserted or none is.

        Args:
            articles: Articles to insert

        Returns:
            Number of articles inserted (0 for an empty list)

        Raises:
            StorageError: If the insert fails; the transaction is rolled back
        """
        if not articles:
            return 0

        rows = [
            (
                article.blog_id,
                article.title,
                article.url,
                article.thumbnail_url,
                _to_iso(article.published_date),
                _to_iso(article.discovered_date) or datetime.now().isoformat(),
                article.is_read,
            )
            for article in articles
        ]

        try:
            await self._conn.executemany(
                """
                INSERT INTO articles
                    (blog_id, title, url, thumbnail_url, published_date, discovered_date, is_read)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                rows,
            )
            await self._conn.commit()
        except sqlite3.Error as e:
            await self._conn.rollback()
            raise StorageError(f"failed to insert articles: {e}") from e

        return len(rows)

    async def list_articles(self, blog_id: Optional[int] = None) -> List[Article]:
        """List stored articles, newest discovery first.

        Args:
            blog_id: Optional blog id to filter by

        Raises:
            StorageError: If the query fails
        """
        query = "SELECT * FROM articles"
        params: List = []

        if blog_id is not None:
            query += " WHERE blog_id = ?"
            params.append(blog_id)

        query += " ORDER BY discovered_date DESC, id"

        try:
            cursor = await self._conn.execute(query, params)
            rows = await cursor.fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"failed to list articles: {e}") from e

        return [
            Article(
                id=row["id"],
                blog_id=row["blog_id"],
                title=row["title"],
                url=row["url"],
                thumbnail_url=row["thumbnail_url"],
                published_date=_from_iso(row["published_date"]),
                discovered_date=_from_iso(row["discovered_date"]),
                is_read=bool(row["is_read"]),
            )
            for row in rows
        ]


# Default handle shared by the CLI and MCP server
_db_connection: Optional[Database] = None


async def get_database() -> Database:
    """Get or open the process-wide default database handle.

    Returns:
        Active database handle
    """
    global _db_connection

    if _db_connection is None:
        config = get_config()
        _db_connection = await Database.open(config.db_path, config.busy_timeout)

    return _db_connection


async def close_database() -> None:
    """Close the default database handle."""
    global _db_connection

    if _db_connection is not None:
        await _db_connection.close()
        _db_connection = None
