"""Blog scanning orchestration.

Runs the per-blog pipeline (acquire, dedupe, enrich, persist, mark scanned)
and fans it out over blogs with a bounded pool of workers. Within one blog
every request runs one after another.
"""

import asyncio
import logging
from datetime import datetime
from typing import List, Optional, Sequence

from blogwatcher.config import ServerConfig, get_config
from blogwatcher.errors import FeedError, ScrapeError, StorageError
from blogwatcher.models.schemas import Article, Blog, ScanResult
from blogwatcher.services.dedup import dedupe_articles, filter_new_articles
from blogwatcher.services.feed_discovery import discover_feed_url
from blogwatcher.services.feed_parser import FeedMetadata, ParsedArticle, parse_feed
from blogwatcher.services.scraper import scrape_blog
from blogwatcher.services.thumbnail import resolve_thumbnail
from blogwatcher.storage.database import Database

logger = logging.getLogger(__name__)

SOURCE_FEED = "feed"
SOURCE_SCRAPER = "scraper"
SOURCE_NONE = "none"


async def scan_blog(
    db: Database,
    blog: Blog,
    config: Optional[ServerConfig] = None,
) -> ScanResult:
    """Scan one blog for new articles and store them.

    Tier and storage failures are reported on the result, never raised, and
    the blog's last_scanned time is updated whatever happened.

    Args:
        db: Storage handle owned by the caller's worker
        blog: Blog to scan; feed_url is filled in when discovered
        config: Scan settings (defaults to the process config)

    Returns:
        ScanResult for the blog
    """
    config = config or get_config()
    logger.info(f"Scanning blog: {blog.name}")

    articles: List[ParsedArticle] = []
    metadata: Optional[FeedMetadata] = None
    source = SOURCE_NONE
    error = ""
    storage_errors: List[str] = []

    feed_url = blog.feed_url
    if not feed_url:
        discovered = await discover_feed_url(
            blog.url, timeout=config.feed_timeout, user_agent=config.user_agent
        )
        if discovered:
            feed_url = discovered
            blog.feed_url = discovered
            try:
                await db.update_blog(blog)
            except StorageError as e:
                logger.error(f"Failed to save feed URL for {blog.name}: {e}")
                storage_errors.append(str(e))

    if feed_url:
        try:
            feed = await parse_feed(
                feed_url, timeout=config.feed_timeout, user_agent=config.user_agent
            )
        except FeedError as e:
            logger.warning(f"Feed failed for {blog.name}: {e}")
            error = str(e)
        else:
            articles = feed.articles
            metadata = feed.metadata
            source = SOURCE_FEED

    if not articles and blog.scrape_selector:
        try:
            articles = await scrape_blog(
                blog.url,
                blog.scrape_selector,
                timeout=config.scrape_timeout,
                user_agent=config.user_agent,
            )
        except ScrapeError as e:
            logger.warning(f"Scraper failed for {blog.name}: {e}")
            error = f"RSS: {error}; Scraper: {e}" if error else str(e)
        else:
            metadata = None
            source = SOURCE_SCRAPER
            error = ""

    unique = dedupe_articles(articles)

    try:
        fresh = await filter_new_articles(db, unique, chunk_size=config.url_chunk_size)
    except StorageError as e:
        logger.error(f"Failed to check existing articles for {blog.name}: {e}")
        storage_errors.append(str(e))
        fresh = unique

    discovered_at = datetime.now()
    new_articles = []
    for candidate in fresh:
        thumbnail_url = await resolve_thumbnail(
            candidate,
            metadata,
            timeout=config.thumbnail_timeout,
            user_agent=config.user_agent,
        )
        new_articles.append(Article(
            id=None,
            blog_id=blog.id,
            title=candidate.title,
            url=candidate.url,
            thumbnail_url=thumbnail_url,
            published_date=candidate.published_date,
            discovered_date=discovered_at,
            is_read=False,
        ))

    new_count = 0
    if new_articles:
        try:
            new_count = await db.add_articles_bulk(new_articles)
        except StorageError as e:
            logger.error(f"Failed to store articles for {blog.name}: {e}")
            storage_errors.append(str(e))

    try:
        await db.update_blog_last_scanned(blog.id, datetime.now())
    except StorageError as e:
        logger.error(f"Failed to update last scanned time for {blog.name}: {e}")
        storage_errors.append(str(e))

    result = ScanResult(
        blog_name=blog.name,
        new_articles=new_count,
        total_found=len(unique),
        source=source,
        error="; ".join(filter(None, [error, *storage_errors])),
    )
    logger.info(
        f"Scanned {blog.name}: {result.new_articles} new of {result.total_found} "
        f"found via {result.source}"
    )
    return result


async def scan_all_blogs(
    db: Database,
    blogs: Optional[Sequence[Blog]] = None,
    workers: Optional[int] = None,
    config: Optional[ServerConfig] = None,
) -> List[ScanResult]:
    """Scan many blogs, sequentially or with a pool of workers.

    With more than one worker, each worker opens its own handle on db's
    database and results keep the input order of blogs.

    Args:
        db: Storage handle, used directly for sequential scans
        blogs: Blogs to scan (defaults to every stored blog)
        workers: Number of workers (defaults to config.scan_workers)
        config: Scan settings (defaults to the process config)

    Returns:
        One ScanResult per blog, in input order

    Raises:
        StorageSetupError: If any worker cannot open its storage handle
        StorageError: If listing the stored blogs fails
    """
    config = config or get_config()
    if workers is None:
        workers = config.scan_workers
    if blogs is None:
        blogs = await db.list_blogs()

    if workers <= 1:
        return [await scan_blog(db, blog, config) for blog in blogs]

    logger.info(f"Scanning {len(blogs)} blogs with {workers} workers")

    queue: asyncio.Queue = asyncio.Queue()
    for index, blog in enumerate(blogs):
        queue.put_nowait((index, blog))

    results: List[Optional[ScanResult]] = [None] * len(blogs)

    async def worker() -> None:
        worker_db = await Database.open(db.path, config.busy_timeout)
        try:
            while True:
                try:
                    index, blog = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                results[index] = await scan_blog(worker_db, blog, config)
        finally:
            await worker_db.close()

    tasks = [asyncio.create_task(worker()) for _ in range(workers)]
    try:
        await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    return results


async def scan_blog_by_name(
    db: Database,
    name: str,
    config: Optional[ServerConfig] = None,
) -> Optional[ScanResult]:
    """Scan the blog with the given name.

    Returns:
        ScanResult, or None if no blog has that name

    Raises:
        StorageError: If looking up the blog fails
    """
    blog = await db.get_blog_by_name(name)
    if blog is None:
        return None

    return await scan_blog(db, blog, config)
