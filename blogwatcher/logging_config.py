"""Logging setup for blogwatcher.

Logs go to stderr so the MCP stdio transport keeps stdout to itself.
"""

import logging
import sys

from blogwatcher.config import ServerConfig

logger = logging.getLogger("blogwatcher")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(config: ServerConfig) -> logging.Logger:
    """Configure the blogwatcher logger from config.

    Calling it again only updates the level.

    Args:
        config: Server configuration

    Returns:
        The package logger
    """
    level = getattr(logging, config.log_level.upper(), logging.INFO)
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))

    return logger
