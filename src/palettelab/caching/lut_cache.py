"""Process-wide lookup table cache with single-flight builds."""

import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Hashable
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Any, Optional

logger = logging.getLogger(__name__)


@dataclass
class CacheStats:
    """Statistics for lookup table cache performance."""

    hits: int = 0
    misses: int = 0
    builds: int = 0
    build_failures: int = 0
    waits: int = 0
    evictions: int = 0
    entries: int = 0
    memory_bytes: int = 0

    @property
    def total_accesses(self) -> int:
        return self.hits + self.misses + self.waits

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate (waits on an in-flight build count as hits)."""
        if self.total_accesses == 0:
            return 0.0
        return (self.hits + self.waits) / self.total_accesses


@dataclass
class LutCacheEntry:
    """Single entry in the lookup table cache."""

    key: Hashable
    value: Any
    size_bytes: int
    build_seconds: float
    created_at: float = field(default_factory=time.time)
    last_accessed: float = field(default_factory=time.time)
    access_count: int = 0

    def update_access(self) -> None:
        self.last_accessed = time.time()
        self.access_count += 1


class LutCache:
    """In-memory LRU cache where each key is built at most once at a time.

    The first caller for a missing key runs the builder outside the lock and
    publishes the result through a Future. Concurrent callers for the same
    key wait on that Future instead of building again. A failed build is
    delivered to every waiter and is not cached.
    """

    def __init__(self, max_entries: int = 32, enabled: bool = True):
        if max_entries < 1:
            raise ValueError(f"max_entries must be at least 1, got {max_entries}")
        self.enabled = enabled
        self.max_entries = max_entries

        self._entries: OrderedDict[Hashable, LutCacheEntry] = OrderedDict()
        self._inflight: dict[Hashable, Future] = {}
        self._lock = threading.Lock()
        self._stats = CacheStats()

    def get_or_build(
        self,
        key: Hashable,
        builder: Callable[[], Any],
        size_of: Callable[[Any], int] = lambda value: getattr(value, "nbytes", 0),
    ) -> Any:
        """Return the cached value for ``key``, building it once if missing."""
        if not self.enabled:
            with self._lock:
                self._stats.misses += 1
                self._stats.builds += 1
            return builder()

        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                self._entries.move_to_end(key)
                entry.update_access()
                self._stats.hits += 1
                return entry.value

            pending = self._inflight.get(key)
            if pending is None:
                pending = Future()
                self._inflight[key] = pending
                owner = True
                self._stats.misses += 1
            else:
                owner = False
                self._stats.waits += 1

        if not owner:
            logger.debug(f"Waiting for in-flight lookup table build: {key}")
            return pending.result()

        start = time.perf_counter()
        try:
            value = builder()
        except BaseException as e:
            with self._lock:
                self._inflight.pop(key, None)
                self._stats.build_failures += 1
            pending.set_exception(e)
            raise

        elapsed = time.perf_counter() - start
        with self._lock:
            self._store(LutCacheEntry(key, value, size_of(value), elapsed))
            self._inflight.pop(key, None)
            self._stats.builds += 1
        pending.set_result(value)

        logger.info(f"💾 Built lookup table {key} in {elapsed:.2f}s")
        return value

    def _store(self, entry: LutCacheEntry) -> None:
        # Caller holds the lock
        self._entries[entry.key] = entry
        self._entries.move_to_end(entry.key)
        while len(self._entries) > self.max_entries:
            evicted_key, _ = self._entries.popitem(last=False)
            self._stats.evictions += 1
            logger.debug(f"Evicted lookup table {evicted_key}")

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._entries

    def keys(self) -> list[Hashable]:
        with self._lock:
            return list(self._entries.keys())

    def clear(self) -> None:
        """Drop all cached tables. In-flight builds still complete for their waiters."""
        with self._lock:
            self._entries.clear()
            self._stats = CacheStats()

    def get_stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                hits=self._stats.hits,
                misses=self._stats.misses,
                builds=self._stats.builds,
                build_failures=self._stats.build_failures,
                waits=self._stats.waits,
                evictions=self._stats.evictions,
                entries=len(self._entries),
                memory_bytes=sum(e.size_bytes for e in self._entries.values()),
            )


# Global lookup table cache instance
_lut_cache_instance: Optional[LutCache] = None
_lut_cache_lock = threading.Lock()


def get_lut_cache() -> LutCache:
    """Get the global lookup table cache instance."""
    global _lut_cache_instance

    if _lut_cache_instance is None:
        with _lut_cache_lock:
            if _lut_cache_instance is None:
                from ..config import LUT_CACHE

                _lut_cache_instance = LutCache(
                    max_entries=LUT_CACHE.get("max_entries", 32),
                    enabled=LUT_CACHE.get("enabled", True),
                )

    return _lut_cache_instance


def reset_lut_cache() -> None:
    """Reset the global lookup table cache instance (mainly for testing)."""
    global _lut_cache_instance

    with _lut_cache_lock:
        if _lut_cache_instance:
            _lut_cache_instance.clear()
        _lut_cache_instance = None
