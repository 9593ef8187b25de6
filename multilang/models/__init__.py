"""Data models for the locale directory."""

from multilang.models.player import CacheEntry, LocalizedPlayer

__all__ = ["CacheEntry", "LocalizedPlayer"]
