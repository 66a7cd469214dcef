"""Caching layer for link resolution."""

from tunebridge.application.cache.memory_index import InMemoryCacheIndex
from tunebridge.application.cache.resolution_cache import (
    DEFAULT_FRESHNESS,
    CacheStats,
    ResolutionCache,
)

__all__ = [
    "DEFAULT_FRESHNESS",
    "CacheStats",
    "InMemoryCacheIndex",
    "ResolutionCache",
]
