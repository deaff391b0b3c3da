"""Data models for blogwatcher."""

from .schemas import Blog, Article, ScanResult

__all__ = ["Blog", "Article", "ScanResult"]
