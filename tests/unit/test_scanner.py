"""Unit tests for blog scan orchestration.

Network-facing services are replaced with mocks at the scanner module
boundary; storage is a real SQLite database.
"""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from blogwatcher.errors import (
    FeedFetchError,
    ScrapeFetchError,
    StorageError,
    StorageSetupError,
)
from blogwatcher.models.schemas import Article, Blog, ScanResult
from blogwatcher.services.feed_parser import FeedMetadata, ParsedArticle, ParsedFeed
from blogwatcher.services.scanner import scan_all_blogs, scan_blog, scan_blog_by_name
from blogwatcher.storage.database import Database
from tests.helpers import patch_http

SCANNER = "blogwatcher.services.scanner"

pytestmark = pytest.mark.anyio


def feed_of(*urls: str, image_url=None) -> ParsedFeed:
    return ParsedFeed(
        metadata=FeedMetadata(title="Feed", image_url=image_url),
        articles=[ParsedArticle(title=f"Title {u}", url=u) for u in urls],
    )


def mock_pipeline(discover=None, feed=None, scrape=None, thumbnail=None):
    """Patch the network services the scanner calls.

    Each argument is a return value, or an exception to raise.
    """

    def as_mock(value):
        if isinstance(value, Exception):
            return AsyncMock(side_effect=value)
        return AsyncMock(return_value=value)

    return (
        patch(f"{SCANNER}.discover_feed_url", as_mock(discover)),
        patch(f"{SCANNER}.parse_feed", as_mock(feed if feed is not None else feed_of())),
        patch(f"{SCANNER}.scrape_blog", as_mock(scrape if scrape is not None else [])),
        patch(f"{SCANNER}.resolve_thumbnail", as_mock(thumbnail)),
    )


class Pipeline:
    """Context manager applying mock_pipeline patches and exposing the mocks."""

    def __init__(self, **kwargs):
        self._patchers = mock_pipeline(**kwargs)

    def __enter__(self):
        self.discover, self.feed, self.scrape, self.thumbnail = [
            p.__enter__() for p in self._patchers
        ]
        return self

    def __exit__(self, *exc):
        for p in reversed(self._patchers):
            p.__exit__(*exc)


class TestScanBlog:
    """Tests for scanning a single blog."""

    async def test_no_feed_and_no_selector(self, in_memory_db, test_config):
        blog = await in_memory_db.add_blog(name="Quiet Blog", url="https://quiet.example.com")

        with Pipeline(discover=None) as mocks:
            result = await scan_blog(in_memory_db, blog, test_config)

        assert result == ScanResult(
            blog_name="Quiet Blog", new_articles=0, total_found=0, source="none", error=""
        )
        mocks.feed.assert_not_awaited()
        mocks.scrape.assert_not_awaited()
        stored = await in_memory_db.get_blog_by_name("Quiet Blog")
        assert stored.last_scanned is not None

    async def test_discovered_feed_url_is_saved(self, in_memory_db, test_config):
        blog = await in_memory_db.add_blog(name="Test Blog", url="https://example.com")

        with Pipeline(
            discover="https://example.com/feed.xml",
            feed=feed_of("https://example.com/1"),
        ) as mocks:
            result = await scan_blog(in_memory_db, blog, test_config)

        assert result.source == "feed"
        assert result.new_articles == 1
        mocks.feed.assert_awaited_once()
        assert mocks.feed.await_args.args[0] == "https://example.com/feed.xml"
        stored = await in_memory_db.get_blog_by_name("Test Blog")
        assert stored.feed_url == "https://example.com/feed.xml"

        with Pipeline(discover="https://elsewhere.example.com/feed") as mocks:
            await scan_blog(in_memory_db, stored, test_config)

        mocks.discover.assert_not_awaited()

    async def test_feed_failure_scrape_success(self, in_memory_db, test_config):
        """Test that a scrape success discards the feed error."""
        blog = await in_memory_db.add_blog(
            name="Test Blog",
            url="https://example.com",
            feed_url="https://example.com/feed.xml",
            scrape_selector="a.post",
        )

        with Pipeline(
            feed=FeedFetchError("failed to fetch feed: status 500"),
            scrape=[ParsedArticle(title="Scraped", url="https://example.com/s1")],
        ) as mocks:
            result = await scan_blog(in_memory_db, blog, test_config)

        assert result.source == "scraper"
        assert result.error == ""
        assert result.new_articles == 1
        # Scraped articles have no feed metadata
        assert mocks.thumbnail.await_args.args[1] is None

    async def test_both_tiers_fail(self, in_memory_db, test_config):
        blog = await in_memory_db.add_blog(
            name="Test Blog",
            url="https://example.com",
            feed_url="https://example.com/feed.xml",
            scrape_selector="a.post",
        )

        with Pipeline(
            feed=FeedFetchError("failed to fetch feed: status 500"),
            scrape=ScrapeFetchError("failed to fetch page: status 404"),
        ):
            result = await scan_blog(in_memory_db, blog, test_config)

        assert result.source == "none"
        assert result.new_articles == 0
        assert result.error == (
            "RSS: failed to fetch feed: status 500; Scraper: failed to fetch page: status 404"
        )
        stored = await in_memory_db.get_blog_by_name("Test Blog")
        assert stored.last_scanned is not None

    async def test_feed_failure_without_selector(self, in_memory_db, test_config):
        blog = await in_memory_db.add_blog(
            name="Test Blog",
            url="https://example.com",
            feed_url="https://example.com/feed.xml",
        )

        with Pipeline(feed=FeedFetchError("failed to fetch feed: status 500")):
            result = await scan_blog(in_memory_db, blog, test_config)

        assert result.source == "none"
        assert result.error == "failed to fetch feed: status 500"

    async def test_empty_feed_falls_back_to_scraper(self, in_memory_db, test_config):
        blog = await in_memory_db.add_blog(
            name="Test Blog",
            url="https://example.com",
            feed_url="https://example.com/feed.xml",
            scrape_selector="a.post",
        )

        with Pipeline(
            feed=feed_of(),
            scrape=[ParsedArticle(title="Scraped", url="https://example.com/s1")],
        ):
            result = await scan_blog(in_memory_db, blog, test_config)

        assert result.source == "scraper"
        assert result.total_found == 1

    async def test_feed_articles_are_deduplicated_and_enriched(self, in_memory_db, test_config):
        blog = await in_memory_db.add_blog(
            name="Test Blog",
            url="https://example.com",
            feed_url="https://example.com/feed.xml",
            scrape_selector="a.post",
        )
        await in_memory_db.add_articles_bulk([
            Article(id=None, blog_id=blog.id, title="Old", url="https://example.com/old"),
        ])
        feed = feed_of(
            "https://example.com/1",
            "https://example.com/1",
            "https://example.com/old",
            "https://example.com/2",
            image_url="https://example.com/logo.png",
        )

        with Pipeline(feed=feed) as mocks:
            mocks.thumbnail.side_effect = lambda article, metadata, **kwargs: (
                f"{article.url}.jpg"
            )
            result = await scan_blog(in_memory_db, blog, test_config)

        assert result == ScanResult(
            blog_name="Test Blog", new_articles=2, total_found=3, source="feed", error=""
        )
        mocks.scrape.assert_not_awaited()
        assert [call.args[0].url for call in mocks.thumbnail.await_args_list] == [
            "https://example.com/1",
            "https://example.com/2",
        ]
        assert mocks.thumbnail.await_args.args[1] is feed.metadata
        assert mocks.thumbnail.await_args.kwargs["timeout"] == test_config.thumbnail_timeout

        stored = {
            a.url: a for a in await in_memory_db.list_articles(blog.id)
            if a.url != "https://example.com/old"
        }
        assert stored["https://example.com/1"].thumbnail_url == "https://example.com/1.jpg"
        assert len({a.discovered_date for a in stored.values()}) == 1

    async def test_rescan_adds_nothing(self, in_memory_db, test_config):
        blog = await in_memory_db.add_blog(
            name="Test Blog",
            url="https://example.com",
            feed_url="https://example.com/feed.xml",
        )
        feed = feed_of("https://example.com/1", "https://example.com/2")

        with Pipeline(feed=feed):
            first = await scan_blog(in_memory_db, blog, test_config)
        with Pipeline(feed=feed) as mocks:
            second = await scan_blog(in_memory_db, blog, test_config)

        assert first.new_articles == 2
        assert second.new_articles == 0
        assert second.total_found == 2
        mocks.thumbnail.assert_not_awaited()
        assert len(await in_memory_db.list_articles(blog.id)) == 2

    async def test_insert_failure_is_reported(self, in_memory_db, test_config):
        blog = await in_memory_db.add_blog(
            name="Test Blog",
            url="https://example.com",
            feed_url="https://example.com/feed.xml",
        )

        with Pipeline(feed=feed_of("https://example.com/1")):
            with patch.object(
                in_memory_db,
                "add_articles_bulk",
                AsyncMock(side_effect=StorageError("failed to insert articles: disk full")),
            ):
                result = await scan_blog(in_memory_db, blog, test_config)

        assert result.new_articles == 0
        assert result.total_found == 1
        assert result.source == "feed"
        assert result.error == "failed to insert articles: disk full"
        stored = await in_memory_db.get_blog_by_name("Test Blog")
        assert stored.last_scanned is not None

    async def test_existence_check_failure_still_inserts(self, in_memory_db, test_config):
        blog = await in_memory_db.add_blog(
            name="Test Blog",
            url="https://example.com",
            feed_url="https://example.com/feed.xml",
        )

        with Pipeline(feed=feed_of("https://example.com/1")):
            with patch.object(
                in_memory_db,
                "get_existing_article_urls",
                AsyncMock(side_effect=StorageError("failed to check existing articles: locked")),
            ):
                result = await scan_blog(in_memory_db, blog, test_config)

        assert result.new_articles == 1
        assert result.error == "failed to check existing articles: locked"

    async def test_feed_error_and_storage_error_are_joined(self, in_memory_db, test_config):
        blog = await in_memory_db.add_blog(
            name="Test Blog",
            url="https://example.com",
            feed_url="https://example.com/feed.xml",
        )

        with Pipeline(feed=FeedFetchError("failed to fetch feed: status 500")):
            with patch.object(
                in_memory_db,
                "update_blog_last_scanned",
                AsyncMock(side_effect=StorageError("failed to update last scanned time: locked")),
            ):
                result = await scan_blog(in_memory_db, blog, test_config)

        assert result.error == (
            "failed to fetch feed: status 500; failed to update last scanned time: locked"
        )


class TestScanBlogByName:
    async def test_not_found(self, in_memory_db, test_config):
        with Pipeline() as mocks:
            result = await scan_blog_by_name(in_memory_db, "Missing", test_config)

        assert result is None
        mocks.discover.assert_not_awaited()

    async def test_found(self, in_memory_db, test_config):
        await in_memory_db.add_blog(
            name="Test Blog",
            url="https://example.com",
            feed_url="https://example.com/feed.xml",
        )

        with Pipeline(feed=feed_of("https://example.com/1")):
            result = await scan_blog_by_name(in_memory_db, "Test Blog", test_config)

        assert result.blog_name == "Test Blog"
        assert result.new_articles == 1


BLOG_COUNT = 7


async def seed_blogs(db: Database) -> list:
    blogs = []
    for i in range(BLOG_COUNT):
        blogs.append(await db.add_blog(
            name=f"Blog {i}",
            url=f"https://blog{i}.example.com",
            feed_url=f"https://blog{i}.example.com/feed",
        ))
    return blogs


async def fake_parse_feed(feed_url, timeout=30.0, user_agent=""):
    """Feed with index+1 posts; later blogs answer first, blog 3 is down."""
    index = int(feed_url.split("//blog")[1].split(".")[0])
    await asyncio.sleep(0.01 * (BLOG_COUNT - index))
    if index == 3:
        raise FeedFetchError("failed to fetch feed: status 500")
    urls = [f"https://blog{index}.example.com/post/{n}" for n in range(index + 1)]
    return feed_of(*urls, urls[0])


class TestScanAllBlogs:
    """Tests for scanning many blogs."""

    async def test_sequential_keeps_input_order(self, in_memory_db, test_config):
        blogs = list(reversed(await seed_blogs(in_memory_db)))

        with patch(f"{SCANNER}.parse_feed", fake_parse_feed), \
                patch(f"{SCANNER}.resolve_thumbnail", AsyncMock(return_value=None)):
            results = await scan_all_blogs(in_memory_db, blogs, workers=1, config=test_config)

        assert [r.blog_name for r in results] == [b.name for b in blogs]

    async def test_defaults_to_stored_blogs(self, in_memory_db, test_config):
        await seed_blogs(in_memory_db)

        with patch(f"{SCANNER}.parse_feed", fake_parse_feed), \
                patch(f"{SCANNER}.resolve_thumbnail", AsyncMock(return_value=None)):
            results = await scan_all_blogs(in_memory_db, config=test_config)

        assert [r.blog_name for r in results] == [f"Blog {i}" for i in range(BLOG_COUNT)]

    async def test_workers_match_individual_scans(self, tmp_path, test_config):
        """Test that 3 workers over 7 blogs equal scanning each blog in order."""
        pool_db = await Database.open(tmp_path / "pool.db")
        reference_db = await Database.open(tmp_path / "reference.db")
        try:
            pool_blogs = list(reversed(await seed_blogs(pool_db)))
            reference_blogs = list(reversed(await seed_blogs(reference_db)))

            with patch(f"{SCANNER}.parse_feed", fake_parse_feed), \
                    patch(f"{SCANNER}.resolve_thumbnail", AsyncMock(return_value=None)):
                results = await scan_all_blogs(
                    pool_db, pool_blogs, workers=3, config=test_config
                )
                expected = [
                    await scan_blog(reference_db, blog, test_config)
                    for blog in reference_blogs
                ]

            assert len(results) == BLOG_COUNT
            assert results == expected
            assert results[BLOG_COUNT - 1 - 3].error == "failed to fetch feed: status 500"

            stored = await pool_db.list_articles()
            assert len(stored) == sum(r.new_articles for r in results)
            assert sum(r.new_articles for r in results) == sum(
                r.new_articles for r in expected
            )
        finally:
            await pool_db.close()
            await reference_db.close()

    async def test_worker_setup_failure_is_fatal(self, in_memory_db, test_config):
        blogs = await seed_blogs(in_memory_db)

        with patch.object(
            Database, "open", AsyncMock(side_effect=StorageSetupError("cannot open"))
        ), patch(f"{SCANNER}.parse_feed", fake_parse_feed):
            with pytest.raises(StorageSetupError, match="cannot open"):
                await scan_all_blogs(in_memory_db, blogs, workers=3, config=test_config)

    async def test_malformed_article_url_does_not_abort_batch(self, in_memory_db, test_config):
        """Test that an article link httpx cannot request leaves other blogs intact."""
        bad = await in_memory_db.add_blog(
            name="Bad", url="https://bad.example.com", feed_url="https://bad.example.com/feed"
        )
        good = await in_memory_db.add_blog(
            name="Good", url="https://good.example.com", feed_url="https://good.example.com/feed"
        )
        bad_feed = (
            '<rss version="2.0"><channel><title>Bad</title>'
            "<item><title>Broken</title><link>http://[::1/post</link></item>"
            "</channel></rss>"
        )
        good_feed = (
            '<rss version="2.0"><channel><title>Good</title>'
            "<item><title>Fine</title><link>https://good.example.com/post</link></item>"
            "</channel></rss>"
        )

        with patch_http({
            "https://bad.example.com/feed": bad_feed,
            "https://good.example.com/feed": good_feed,
        }):
            results = await scan_all_blogs(
                in_memory_db, [bad, good], workers=1, config=test_config
            )

        assert [r.blog_name for r in results] == ["Bad", "Good"]
        assert results[0].error == ""
        assert results[0].new_articles == 1
        assert results[1].error == ""
        assert results[1].new_articles == 1

        stored = await in_memory_db.list_articles(blog_id=bad.id)
        assert stored[0].url == "http://[::1/post"
        assert stored[0].thumbnail_url is None
