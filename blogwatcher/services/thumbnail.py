"""Thumbnail resolution service.

Resolves a preview image for an article through a fixed fallback chain:

1. media:content image
2. media:thumbnail
3. item image, then the feed's channel image
4. first enclosure with an image/* MIME type
5. og:image of the article page

Earlier tiers short-circuit later ones. Resolution never raises.
"""

import logging
from typing import Optional
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup

from blogwatcher.services.feed_parser import FeedMetadata, ParsedArticle

logger = logging.getLogger(__name__)

USER_AGENT = "BlogWatcher/1.0 (Thumbnail Fetcher)"

OPEN_GRAPH_IMAGE_PROPERTIES = ("og:image", "og:image:url", "og:image:secure_url")


async def resolve_thumbnail(
    article: ParsedArticle,
    metadata: Optional[FeedMetadata] = None,
    timeout: float = 10.0,
    user_agent: str = USER_AGENT,
) -> Optional[str]:
    """Resolve the best available thumbnail URL for an article.

    Args:
        article: Article candidate with any media hints from its feed
        metadata: Metadata of the feed the article came from, if any
        timeout: Timeout in seconds for the article page fetch
        user_agent: User-Agent header to send

    Returns:
        Thumbnail URL, or None if no tier produced one
    """
    thumbnail_url = extract_from_feed(article, metadata)
    if thumbnail_url:
        return thumbnail_url

    return await extract_from_open_graph(article.url, timeout, user_agent)


def extract_from_feed(
    article: ParsedArticle,
    metadata: Optional[FeedMetadata] = None,
) -> Optional[str]:
    """Pick a thumbnail from structured feed data (tiers 1-4)."""
    for media in article.media_content:
        if media.get("url") and _is_image_media(media):
            return media["url"]

    for url in article.media_thumbnail:
        if url:
            return url

    if article.image_url:
        return article.image_url

    if metadata is not None and metadata.image_url:
        return metadata.image_url

    for enclosure in article.enclosures:
        if enclosure.url and is_image_mime_type(enclosure.type):
            return enclosure.url

    return None


async def extract_from_open_graph(
    article_url: str,
    timeout: float = 10.0,
    user_agent: str = USER_AGENT,
) -> Optional[str]:
    """Fetch an article page and return its og:image as an absolute URL.

    Any failure returns None; the thumbnail is optional.
    """
    try:
        async with httpx.AsyncClient(
            follow_redirects=True,
            timeout=timeout,
            headers={"User-Agent": user_agent},
        ) as client:
            response = await client.get(article_url)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.debug(f"No Open Graph image for {article_url}: {e}")
        return None

    if not response.is_success:
        logger.debug(f"No Open Graph image for {article_url}: status {response.status_code}")
        return None

    soup = BeautifulSoup(response.text, "lxml")
    for meta in soup.find_all("meta"):
        key = (meta.get("property") or meta.get("name") or "").strip().lower()
        if key not in OPEN_GRAPH_IMAGE_PROPERTIES:
            continue
        content = (meta.get("content") or "").strip()
        if content:
            try:
                return urljoin(str(response.url), content)
            except ValueError:
                return None

    return None


def is_image_mime_type(mime_type: Optional[str]) -> bool:
    return bool(mime_type) and mime_type.strip().lower().startswith("image/")


def _is_image_media(media: dict) -> bool:
    # Video and audio media:content entries are not thumbnails
    medium = (media.get("medium") or "").strip().lower()
    if medium and medium != "image":
        return False
    mime_type = media.get("type")
    return not mime_type or is_image_mime_type(mime_type)
