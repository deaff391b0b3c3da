"""Feed discovery service.

This module discovers RSS/Atom feed URLs from a blog homepage. Discovery
never raises: any failure means the blog simply has no feed.
"""

import logging
from typing import Optional
from urllib.parse import urljoin

import feedparser
import httpx
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

USER_AGENT = "BlogWatcher/1.0 (RSS Feed Discovery)"

# Feed MIME types to look for in <link> tags, in priority order
FEED_MIME_TYPES = [
    "application/rss+xml",
    "application/atom+xml",
    "application/feed+json",
    "application/xml",
    "text/xml",
]

# Common feed paths to probe
COMMON_FEED_PATHS = [
    "/feed",
    "/feed/",
    "/rss",
    "/rss/",
    "/feed.xml",
    "/rss.xml",
    "/atom.xml",
    "/index.xml",
]


async def discover_feed_url(
    url: str,
    timeout: float = 30.0,
    user_agent: str = USER_AGENT,
) -> Optional[str]:
    """Discover the RSS/Atom feed URL for a blog.

    1. Fetches the homepage HTML
    2. Looks for <link rel="alternate"> with feed MIME types, by priority
    3. If not found, probes common feed paths, validating each as a feed

    Args:
        url: Homepage URL of the blog
        timeout: Timeout in seconds for each request
        user_agent: User-Agent header to send

    Returns:
        Feed URL if found, None otherwise
    """
    logger.info(f"Discovering feed URL for: {url}")

    # Normalize URL
    if not url.startswith(("http://", "https://")):
        url = "https://" + url

    async with httpx.AsyncClient(
        follow_redirects=True,
        timeout=timeout,
        headers={"User-Agent": user_agent},
    ) as client:
        try:
            response = await client.get(url)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning(f"Failed to fetch homepage: {e}")
            return None

        if not response.is_success:
            logger.warning(f"Failed to fetch homepage: status {response.status_code}")
            return None

        feed_url = _find_feed_link(response.text, url)
        if feed_url:
            logger.info(f"Found feed via link tag: {feed_url}")
            return feed_url

        for path in COMMON_FEED_PATHS:
            try:
                candidate = urljoin(url, path)
            except ValueError:
                continue
            if await _validate_feed(client, candidate):
                logger.info(f"Found feed via path probing: {candidate}")
                return candidate

    logger.info(f"No feed found for: {url}")
    return None


def _find_feed_link(html: str, base_url: str) -> Optional[str]:
    """Find the highest-priority feed <link rel="alternate"> in a page.

    Args:
        html: Page HTML
        base_url: URL the page was fetched from, for relative hrefs

    Returns:
        Absolute feed URL, or None if the page advertises no feed
    """
    soup = BeautifulSoup(html, "lxml")
    links = soup.find_all("link", rel=lambda x: x and "alternate" in x)

    for mime in FEED_MIME_TYPES:
        for link in links:
            if (link.get("type") or "").strip().lower() != mime:
                continue
            href = (link.get("href") or "").strip()
            if not href:
                continue
            try:
                return urljoin(base_url, href)
            except ValueError:
                continue

    return None


async def _validate_feed(client: httpx.AsyncClient, feed_url: str) -> bool:
    """Validate that a URL returns a feed with entries or a title.

    Args:
        client: HTTP client
        feed_url: URL to validate

    Returns:
        True if the URL returns a valid feed
    """
    try:
        response = await client.get(feed_url)
    except (httpx.HTTPError, httpx.InvalidURL):
        return False

    if response.status_code != 200:
        return False

    feed = feedparser.parse(response.text)

    if feed.bozo and not feed.entries:
        return False

    return bool(feed.entries or (feed.feed.get("title") or "").strip())
