"""Utilities for the welfare administration service."""

from .result_cache import ResultCache, cache_key
from .page_store import PageSessionStore

__all__ = [
    "ResultCache",
    "cache_key",
    "PageSessionStore",
]
