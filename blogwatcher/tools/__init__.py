"""MCP tools for blogwatcher."""

from .scan_tools import scan_tools

__all__ = ["scan_tools"]
