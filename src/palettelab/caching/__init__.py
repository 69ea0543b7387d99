"""Caching systems for lookup table reuse across frames and jobs."""

from .lut_cache import (
    CacheStats,
    LutCache,
    LutCacheEntry,
    get_lut_cache,
    reset_lut_cache,
)

__all__ = [
    "CacheStats",
    "LutCache",
    "LutCacheEntry",
    "get_lut_cache",
    "reset_lut_cache",
]
