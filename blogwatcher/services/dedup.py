"""Article deduplication.

Two passes per scan: first within the acquired batch, then against the
articles already in storage.
"""

from typing import List, Sequence

from blogwatcher.services.feed_parser import ParsedArticle
from blogwatcher.storage.database import DEFAULT_URL_CHUNK_SIZE, Database


def dedupe_articles(articles: Sequence[ParsedArticle]) -> List[ParsedArticle]:
    """Keep the first occurrence of each URL, preserving order."""
    seen = set()
    unique = []
    for article in articles:
        if article.url in seen:
            continue
        seen.add(article.url)
        unique.append(article)
    return unique


async def filter_new_articles(
    db: Database,
    articles: Sequence[ParsedArticle],
    chunk_size: int = DEFAULT_URL_CHUNK_SIZE,
) -> List[ParsedArticle]:
    """Drop articles whose URL is already stored.

    Raises:
        StorageError: If the existence check fails
    """
    if not articles:
        return []

    existing = await db.get_existing_article_urls(
        {article.url for article in articles}, chunk_size=chunk_size
    )
    return [article for article in articles if article.url not in existing]
