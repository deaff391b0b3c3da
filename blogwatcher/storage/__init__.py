"""Storage layer for blogwatcher."""

from .database import (
    DEFAULT_URL_CHUNK_SIZE,
    Database,
    chunked,
    close_database,
    get_database,
)

__all__ = [
    "DEFAULT_URL_CHUNK_SIZE",
    "Database",
    "chunked",
    "close_database",
    "get_database",
]
