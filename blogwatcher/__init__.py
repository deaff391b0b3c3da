"""blogwatcher - tracks blogs and ingests their new articles."""

__version__ = "0.1.0"
