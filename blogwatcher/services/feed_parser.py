"""Feed parser service.

This module fetches RSS/Atom feeds and extracts article candidates, keeping
the per-entry media hints the thumbnail resolver works from.
"""

import logging
from calendar import timegm
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Optional

import feedparser
import httpx

from blogwatcher.errors import FeedFetchError, FeedParseError

logger = logging.getLogger(__name__)

USER_AGENT = "BlogWatcher/1.0 (RSS Feed Reader)"


@dataclass
class Enclosure:
    """An entry enclosure (attached file)."""

    url: str
    type: str = ""


@dataclass
class ParsedArticle:
    """Represents an article candidate from a feed or a scraped page.

    Scraped candidates carry no media hints.
    """

    title: str
    url: str
    published_date: Optional[datetime] = None
    media_content: List[Dict[str, str]] = field(default_factory=list)
    media_thumbnail: List[str] = field(default_factory=list)
    image_url: Optional[str] = None
    enclosures: List[Enclosure] = field(default_factory=list)


@dataclass
class FeedMetadata:
    """Channel-level information about a feed."""

    title: str = ""
    image_url: Optional[str] = None


@dataclass
class ParsedFeed:
    metadata: FeedMetadata
    articles: List[ParsedArticle]


async def parse_feed(
    feed_url: str,
    timeout: float = 30.0,
    user_agent: str = USER_AGENT,
) -> ParsedFeed:
    """Fetch an RSS/Atom feed and extract its articles.

    Entries without a title or link are skipped.

    Args:
        feed_url: URL of the feed to parse
        timeout: Request timeout in seconds
        user_agent: User-Agent header to send

    Returns:
        ParsedFeed with feed metadata and articles in feed order

    Raises:
        FeedFetchError: On transport errors or a non-2xx response
        FeedParseError: If the content is not a readable feed
    """
    logger.info(f"Parsing feed: {feed_url}")

    async with httpx.AsyncClient(
        follow_redirects=True,
        timeout=timeout,
        headers={"User-Agent": user_agent},
    ) as client:
        try:
            response = await client.get(feed_url)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise FeedFetchError(f"failed to fetch feed: {e}") from e

    if not response.is_success:
        raise FeedFetchError(f"failed to fetch feed: status {response.status_code}")

    return parse_feed_content(response.text)


def parse_feed_content(content: str) -> ParsedFeed:
    """Parse already-fetched feed content.

    Raises:
        FeedParseError: If the content is not a readable feed
    """
    feed = feedparser.parse(content)

    if feed.bozo and not feed.entries:
        raise FeedParseError(f"failed to parse feed: {feed.get('bozo_exception')}")

    articles = []
    for entry in feed.entries:
        title = (entry.get("title") or "").strip()
        url = _entry_link(entry)
        if not title or not url:
            continue

        articles.append(ParsedArticle(
            title=title,
            url=url,
            published_date=_parse_date(entry),
            media_content=[
                {key: str(value) for key, value in media.items()}
                for media in entry.get("media_content", [])
            ],
            media_thumbnail=[
                thumb["url"] for thumb in entry.get("media_thumbnail", [])
                if thumb.get("url")
            ],
            image_url=_image_href(entry.get("image")),
            enclosures=[
                Enclosure(url=enc.get("href", ""), type=enc.get("type", ""))
                for enc in entry.get("enclosures", [])
            ],
        ))

    metadata = FeedMetadata(
        title=(feed.feed.get("title") or "").strip(),
        image_url=_image_href(feed.feed.get("image")),
    )

    logger.info(f"Parsed {len(articles)} articles from feed")
    return ParsedFeed(metadata=metadata, articles=articles)


def _entry_link(entry: Dict[str, Any]) -> str:
    url = (entry.get("link") or "").strip()
    if url:
        return url

    # Fall back to the first alternate link
    for link in entry.get("links", []):
        if link.get("rel", "alternate") == "alternate" and link.get("href"):
            return link["href"].strip()

    return ""


def _image_href(image: Any) -> Optional[str]:
    if not image:
        return None
    href = image.get("href") or image.get("url")
    return href.strip() if href else None


def _parse_date(entry: Dict[str, Any]) -> Optional[datetime]:
    """Pick the published date of a feed entry, falling back to updated.

    Args:
        entry: Feed entry dict

    Returns:
        Timezone-aware datetime, or None if the entry carries no usable date
    """
    for field_name in ["published", "updated"]:
        parsed = entry.get(f"{field_name}_parsed")
        if parsed:
            try:
                return datetime.fromtimestamp(timegm(parsed), tz=timezone.utc)
            except (ValueError, TypeError, OverflowError):
                pass

        date_str = entry.get(field_name)
        if not date_str:
            continue

        # RFC 2822 (common in RSS)
        try:
            return parsedate_to_datetime(date_str)
        except (ValueError, TypeError):
            pass

        # ISO 8601 (Atom)
        try:
            return datetime.fromisoformat(date_str.replace("Z", "+00:00"))
        except (ValueError, AttributeError):
            pass

    return None
