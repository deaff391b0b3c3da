"""Exception types for blogwatcher.

Tier errors (feed, scrape) and storage errors raised during a single blog's
scan are recorded on its ScanResult. Only StorageSetupError escapes a batch
scan.
"""


class BlogWatcherError(Exception):
    """Base class for all blogwatcher errors."""


class FeedError(BlogWatcherError):
    """Base class for feed tier failures."""


class FeedFetchError(FeedError):
    """The feed could not be fetched (transport error or non-2xx status)."""


class FeedParseError(FeedError):
    """The feed was fetched but its content could not be parsed."""


class ScrapeError(BlogWatcherError):
    """Base class for scraper tier failures."""


class ScrapeFetchError(ScrapeError):
    """The page could not be fetched (transport error or non-2xx status)."""


class ScrapeParseError(ScrapeError):
    """The page or the selector could not be parsed."""


class StorageError(BlogWatcherError):
    """A storage read or write failed."""


class StorageSetupError(StorageError):
    """A storage handle could not be opened."""
