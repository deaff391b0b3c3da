"""Data models for blogwatcher.

This module defines the core data structures for blogs, articles and scan
outcomes.
"""

from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass
class Blog:
    """Represents a tracked blog."""

    id: int
    name: str
    url: str
    feed_url: Optional[str] = None
    scrape_selector: Optional[str] = None
    last_scanned: Optional[datetime] = None


@dataclass
class Article:
    """Represents an article discovered on a blog."""

    id: Optional[int]
    blog_id: int
    title: str
    url: str
    thumbnail_url: Optional[str] = None
    published_date: Optional[datetime] = None
    discovered_date: Optional[datetime] = None
    is_read: bool = False


@dataclass
class ScanResult:
    """Outcome of scanning one blog.

    source is the acquisition tier that produced the articles: "feed",
    "scraper" or "none". error is empty when nothing went wrong.
    """

    blog_name: str
    new_articles: int = 0
    total_found: int = 0
    source: str = "none"
    error: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
