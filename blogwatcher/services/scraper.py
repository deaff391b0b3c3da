"""HTML scraper service.

This module scrapes blog pages to extract article links using CSS selectors.
It is the fallback tier for blogs whose feed yields nothing.
"""

import logging
from typing import List, Optional
from urllib.parse import urljoin, urlparse

import httpx
from bs4 import BeautifulSoup
from bs4.element import Tag
from soupsieve import SelectorSyntaxError

from blogwatcher.errors import ScrapeFetchError, ScrapeParseError
from blogwatcher.services.feed_parser import ParsedArticle

logger = logging.getLogger(__name__)

USER_AGENT = "BlogWatcher/1.0 (Blog Scraper)"


async def scrape_blog(
    url: str,
    css_selector: str,
    timeout: float = 30.0,
    user_agent: str = USER_AGENT,
) -> List[ParsedArticle]:
    """Scrape a blog page for article links using a CSS selector.

    Args:
        url: URL of the page to scrape
        css_selector: CSS selector matching links or elements containing links
        timeout: Request timeout in seconds
        user_agent: User-Agent header to send

    Returns:
        List of ParsedArticle objects (without dates or media hints)

    Raises:
        ScrapeFetchError: On transport errors or a non-2xx response
        ScrapeParseError: If the URL or the selector is invalid
    """
    logger.info(f"Scraping blog: {url} with selector: {css_selector}")

    try:
        scheme = urlparse(url).scheme
    except ValueError as e:
        raise ScrapeParseError(f"invalid blog url: {url}") from e
    if not scheme:
        raise ScrapeParseError(f"invalid blog url: {url}")

    async with httpx.AsyncClient(
        follow_redirects=True,
        timeout=timeout,
        headers={"User-Agent": user_agent},
    ) as client:
        try:
            response = await client.get(url)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise ScrapeFetchError(f"failed to fetch page: {e}") from e

    if not response.is_success:
        raise ScrapeFetchError(f"failed to fetch page: status {response.status_code}")

    articles = extract_articles(response.text, url, css_selector)
    logger.info(f"Scraped {len(articles)} articles from page")
    return articles


def extract_articles(html: str, base_url: str, css_selector: str) -> List[ParsedArticle]:
    """Extract article links from page HTML.

    The first match of each resolved URL wins.

    Raises:
        ScrapeParseError: If the selector is invalid
    """
    soup = BeautifulSoup(html, "lxml")

    try:
        elements = soup.select(css_selector)
    except (SelectorSyntaxError, ValueError) as e:
        raise ScrapeParseError(f"failed to parse page: invalid selector: {e}") from e

    if not elements:
        logger.warning(f"No elements found matching selector: {css_selector}")
        return []

    articles = []
    seen_urls = set()

    for element in elements:
        # The link is either the element itself or its first <a>
        link = element if element.name == "a" else element.find("a")
        if link is None:
            continue

        absolute_url = _resolve_href(base_url, link.get("href"))
        if not absolute_url or absolute_url in seen_urls:
            continue
        seen_urls.add(absolute_url)

        title = _extract_title(link, element)
        if not title:
            continue

        articles.append(ParsedArticle(title=title, url=absolute_url))

    return articles


def _resolve_href(base_url: str, href: Optional[str]) -> Optional[str]:
    href = (href or "").strip()
    if not href or href.startswith("#") or href.lower().startswith("javascript:"):
        return None
    try:
        return urljoin(base_url, href)
    except ValueError:
        return None


def _extract_title(link: Tag, container: Tag) -> str:
    """Title from link text, then its title attribute, then the container text."""
    title = link.get_text(" ", strip=True)
    if title:
        return title

    title = (link.get("title") or "").strip()
    if title:
        return title

    if container is not link:
        return container.get_text(" ", strip=True)

    return ""
