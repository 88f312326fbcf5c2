"""Tests for InferenceCache (LRU + TTL)."""

from __future__ import annotations

import pytest

from statecraft.cache import InferenceCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestInferenceCache:

    def test_get_put(self):
        cache = InferenceCache()
        assert cache.get("k") is None
        assert cache.get("k", "fallback") == "fallback"
        cache.put("k", {"v": 1})
        assert cache.get("k") == {"v": 1}
        assert "k" in cache
        assert len(cache) == 1

    def test_lru_eviction(self):
        cache = InferenceCache(maxsize=2)
        cache.put("a", 1)
        cache.put("b", 2)
        cache.get("a")  # a becomes most recent
        cache.put("c", 3)
        assert "a" in cache
        assert "b" not in cache
        assert "c" in cache

    def test_put_existing_refreshes(self):
        cache = InferenceCache(maxsize=2)
        cache.put("a", 1)
        cache.put("b", 2)
        cache.put("a", 10)
        cache.put("c", 3)
        assert cache.get("a") == 10
        assert "b" not in cache

    def test_ttl_expiry(self):
        clock = FakeClock()
        cache = InferenceCache(ttl=10, clock=clock)
        cache.put("k", "v")
        clock.now = 9.9
        assert cache.get("k") == "v"
        clock.now = 10.0
        assert "k" not in cache
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_invalidate_and_clear(self):
        cache = InferenceCache()
        cache.put("a", 1)
        cache.put("b", 2)
        assert cache.invalidate("a") is True
        assert cache.invalidate("a") is False
        cache.clear()
        assert len(cache) == 0

    def test_cached_none_is_a_hit(self):
        cache = InferenceCache()
        cache.put("k", None)
        assert "k" in cache
        assert cache.get("k", "fallback") is None

    @pytest.mark.parametrize("kwargs", [{"maxsize": 0}, {"ttl": 0}, {"ttl": -1}])
    def test_invalid_arguments(self, kwargs):
        with pytest.raises(ValueError):
            InferenceCache(**kwargs)

    def test_instances_are_independent(self):
        first, second = InferenceCache(), InferenceCache()
        first.put("k", 1)
        assert "k" not in second
