"""Services for blogwatcher."""

from .dedup import dedupe_articles, filter_new_articles
from .feed_discovery import discover_feed_url
from .feed_parser import FeedMetadata, ParsedArticle, ParsedFeed, parse_feed
from .scanner import scan_all_blogs, scan_blog, scan_blog_by_name
from .scraper import scrape_blog
from .thumbnail import resolve_thumbnail

__all__ = [
    "dedupe_articles",
    "filter_new_articles",
    "discover_feed_url",
    "FeedMetadata",
    "ParsedArticle",
    "ParsedFeed",
    "parse_feed",
    "scan_all_blogs",
    "scan_blog",
    "scan_blog_by_name",
    "scrape_blog",
    "resolve_thumbnail",
]
