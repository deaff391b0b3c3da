"""Configuration for blogwatcher.

Settings are read from environment variables once and held in an immutable
ServerConfig that callers pass down to the scan operations.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


def _default_db_path() -> Path:
    return Path.home() / ".blogwatcher" / "blogwatcher.db"


def _get_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip()


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class ServerConfig:
    """Runtime settings for scanning and serving."""

    name: str = "blogwatcher"
    log_level: str = "INFO"
    db_path: Path = field(default_factory=_default_db_path)
    feed_timeout: float = 30.0
    scrape_timeout: float = 30.0
    thumbnail_timeout: float = 10.0
    scan_workers: int = 1
    url_chunk_size: int = 900
    busy_timeout: float = 5.0
    user_agent: str = "BlogWatcher/1.0"


def load_config() -> ServerConfig:
    """Build a ServerConfig from BLOGWATCHER_* environment variables.

    Returns:
        ServerConfig with defaults for anything unset or malformed
    """
    defaults = ServerConfig()
    db_path = os.getenv("BLOGWATCHER_DB_PATH")

    return ServerConfig(
        name=_get_str("BLOGWATCHER_NAME", defaults.name),
        log_level=_get_str("BLOGWATCHER_LOG_LEVEL", defaults.log_level).upper(),
        db_path=Path(db_path) if db_path else defaults.db_path,
        feed_timeout=_get_float("BLOGWATCHER_FEED_TIMEOUT", defaults.feed_timeout),
        scrape_timeout=_get_float("BLOGWATCHER_SCRAPE_TIMEOUT", defaults.scrape_timeout),
        thumbnail_timeout=_get_float(
            "BLOGWATCHER_THUMBNAIL_TIMEOUT", defaults.thumbnail_timeout
        ),
        scan_workers=max(1, _get_int("BLOGWATCHER_SCAN_WORKERS", defaults.scan_workers)),
        url_chunk_size=max(
            1, _get_int("BLOGWATCHER_URL_CHUNK_SIZE", defaults.url_chunk_size)
        ),
        busy_timeout=_get_float("BLOGWATCHER_BUSY_TIMEOUT", defaults.busy_timeout),
        user_agent=_get_str("BLOGWATCHER_USER_AGENT", defaults.user_agent),
    )


_config: Optional[ServerConfig] = None


def get_config() -> ServerConfig:
    """Return the process configuration, loading it on first use."""
    global _config

    if _config is None:
        _config = load_config()

    return _config
