"""Blog scanning MCP tools.

NOTE: Never use Optional parameters in MCP tools - they break MCP clients.
Use empty string "" for optional strings and 0 for optional integers.
"""

import logging
from typing import Any, Dict

from mcp.server.fastmcp import Context

from blogwatcher.config import get_config
from blogwatcher.errors import StorageError
from blogwatcher.services.scanner import scan_all_blogs, scan_blog_by_name
from blogwatcher.storage.database import get_database

logger = logging.getLogger(__name__)


async def scan_blogs(
    blog_name: str = "",
    workers: int = 0,
    ctx: Context = None,
) -> Dict[str, Any]:
    """Fetch new articles from tracked blogs and add them to the database.

    Scans all configured blogs or a specific blog. For each blog, discovers
    and fetches its RSS/Atom feed (or scrapes HTML if configured and the feed
    yields nothing), skips articles whose URL is already stored, resolves a
    thumbnail for each new article, and stores them.

    Args:
        blog_name: Scan only this blog (empty string scans all blogs)
        workers: Number of parallel workers for a full scan (0 uses the configured default)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - blogs_scanned: number of blogs processed
        - total_new_articles: total new articles added across all blogs
        - results: list of per-blog results with blog_name, new_articles,
          total_found, source (feed, scraper or none) and error
        - error: string if success is False
    """
    logger.info(f"scan_blogs called: blog_name={blog_name}, workers={workers}")

    config = get_config()
    db = await get_database()

    try:
        if blog_name:
            result = await scan_blog_by_name(db, blog_name, config)
            if result is None:
                return {
                    "success": False,
                    "error": f"Blog '{blog_name}' not found",
                }
            results = [result]
        else:
            results = await scan_all_blogs(
                db, workers=workers if workers > 0 else None, config=config
            )
    except StorageError as e:
        logger.error(f"Scan failed: {e}")
        return {
            "success": False,
            "error": str(e),
        }

    return {
        "success": True,
        "blogs_scanned": len(results),
        "total_new_articles": sum(r.new_articles for r in results),
        "results": [r.to_dict() for r in results],
    }


# List of scan tools for registration
scan_tools = [
    scan_blogs,
]
