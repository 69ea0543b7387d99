"""Tests for the single-flight lookup table cache."""

import threading
import time

import numpy as np
import pytest

from palettelab.caching import LutCache, get_lut_cache, reset_lut_cache
from palettelab.remap import LutParams, get_or_build_lut
from palettelab.registry import Algorithm, Flavor


class SlowBuilder:
    """Builder that counts calls and holds until released."""

    def __init__(self, value=None, error: Exception | None = None):
        self.calls = 0
        self.started = threading.Event()
        self.release = threading.Event()
        self.value = value if value is not None else np.zeros(8, dtype=np.uint8)
        self.error = error
        self._lock = threading.Lock()

    def __call__(self):
        with self._lock:
            self.calls += 1
        self.started.set()
        self.release.wait(timeout=5)
        if self.error is not None:
            raise self.error
        return self.value


def _call_concurrently(cache: LutCache, key, builder, count: int):
    results, errors = [], []

    def worker():
        try:
            results.append(cache.get_or_build(key, builder))
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=worker) for _ in range(count)]
    for thread in threads:
        thread.start()
    return threads, results, errors


class TestSingleFlight:
    """Concurrent requests for one key share a single build."""

    def test_one_build_for_concurrent_requests(self):
        cache = LutCache()
        builder = SlowBuilder()

        threads, results, errors = _call_concurrently(cache, "key", builder, 8)
        assert builder.started.wait(timeout=5)
        time.sleep(0.05)
        builder.release.set()
        for thread in threads:
            thread.join(timeout=5)

        assert errors == []
        assert builder.calls == 1
        assert len(results) == 8
        assert all(result is builder.value for result in results)

        stats = cache.get_stats()
        assert stats.builds == 1
        assert stats.misses == 1
        assert stats.hits + stats.waits == 7

    def test_failed_build_reaches_every_waiter_and_is_not_cached(self):
        cache = LutCache()
        builder = SlowBuilder(error=RuntimeError("boom"))

        threads, results, errors = _call_concurrently(cache, "key", builder, 4)
        assert builder.started.wait(timeout=5)
        time.sleep(0.05)
        builder.release.set()
        for thread in threads:
            thread.join(timeout=5)

        assert results == []
        assert len(errors) == 4
        assert all(isinstance(e, RuntimeError) for e in errors)
        assert "key" not in cache
        assert cache.get_stats().build_failures == 1

        retry = SlowBuilder()
        retry.release.set()
        assert cache.get_or_build("key", retry) is retry.value
        assert retry.calls == 1

    def test_distinct_keys_build_independently(self):
        cache = LutCache()
        first = SlowBuilder()
        second = SlowBuilder()
        second.release.set()

        thread = threading.Thread(target=cache.get_or_build, args=("a", first))
        thread.start()
        assert first.started.wait(timeout=5)

        # "b" completes while "a" is still building
        assert cache.get_or_build("b", second) is second.value

        first.release.set()
        thread.join(timeout=5)
        assert set(cache.keys()) == {"a", "b"}


class TestEvictionAndStats:
    """LRU eviction and statistics."""

    def test_lru_eviction(self):
        cache = LutCache(max_entries=2)
        cache.get_or_build("a", lambda: np.zeros(4))
        cache.get_or_build("b", lambda: np.zeros(4))
        cache.get_or_build("a", lambda: np.zeros(4))
        cache.get_or_build("c", lambda: np.zeros(4))

        assert set(cache.keys()) == {"a", "c"}
        assert cache.get_stats().evictions == 1

    def test_memory_accounting(self):
        cache = LutCache()
        cache.get_or_build("a", lambda: np.zeros(100, dtype=np.uint8))
        assert cache.get_stats().memory_bytes == 100

    def test_disabled_cache_always_builds(self):
        cache = LutCache(enabled=False)
        calls = []
        cache.get_or_build("a", lambda: calls.append(1) or 1)
        cache.get_or_build("a", lambda: calls.append(1) or 1)
        assert len(calls) == 2
        assert cache.keys() == []

    def test_invalid_max_entries(self):
        with pytest.raises(ValueError):
            LutCache(max_entries=0)


class TestGlobalCache:
    """Global instance management."""

    def test_singleton_and_reset(self):
        first = get_lut_cache()
        assert get_lut_cache() is first
        reset_lut_cache()
        assert get_lut_cache() is not first

    def test_concurrent_get_or_build_lut_returns_same_instance(self):
        results = []

        def worker():
            results.append(get_or_build_lut(Flavor.MOCHA, Algorithm.NEAREST_NEIGHBOR, LutParams(bits=4)))

        threads = [threading.Thread(target=worker) for _ in range(6)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert len(results) == 6
        assert all(result is results[0] for result in results)
        assert get_lut_cache().get_stats().builds == 1
