"""Shared test helpers for mocking HTTP in the service modules."""

from typing import Dict, Union
from unittest.mock import AsyncMock, patch

import httpx

Route = Union[str, tuple, httpx.Response, Exception]


def make_response(url: str, status_code: int = 200, text: str = "") -> httpx.Response:
    """Build a real httpx.Response as if fetched from url."""
    return httpx.Response(status_code, text=text, request=httpx.Request("GET", url))


def mock_client(get) -> AsyncMock:
    """Build an AsyncClient stand-in whose get is the given coroutine function."""
    client = AsyncMock()
    client.get = get
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=None)
    return client


def patch_http(routes: Dict[str, Route], default_status: int = 404):
    """Patch httpx.AsyncClient to serve routes by URL.

    A route is body text (200), a (status, text) tuple, a ready Response, or
    an exception to raise. Unknown URLs get default_status.
    """
    requested = []

    async def get(url, **kwargs):
        requested.append(url)
        route = routes.get(url)
        if route is None:
            return make_response(url, default_status)
        if isinstance(route, Exception):
            raise route
        if isinstance(route, httpx.Response):
            return route
        if isinstance(route, tuple):
            status, text = route
            return make_response(url, status, text)
        return make_response(url, 200, route)

    patcher = patch("httpx.AsyncClient", return_value=mock_client(get))
    patcher.requested = requested
    return patcher


RSS_FEED = """<?xml version="1.0"?>
<rss version="2.0">
    <channel>
        <title>Test Blog</title>
        <item><title>Post 1</title><link>https://example.com/post1</link></item>
    </channel>
</rss>
"""
