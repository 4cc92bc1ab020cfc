"""Unit tests for the capacity-bounded response cache."""

from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from dexter.llm.cache import CachePolicy, ResponseCache


@pytest.mark.unit
class TestResponseCache:
    def test_rejects_non_positive_capacity(self) -> None:
        with pytest.raises(ValueError, match="capacity"):
            ResponseCache(0)

    def test_get_returns_none_on_miss_and_counts(self) -> None:
        cache = ResponseCache(2)
        assert cache.get("missing") is None
        cache.put("k", "v")
        assert cache.get("k") == "v"
        assert cache.snapshot() == {"capacity": 2, "size": 1, "hits": 1, "misses": 1}

    def test_full_cache_evicts_oldest_insert_not_least_recently_read(self) -> None:
        cache = ResponseCache(2)
        cache.put("a", "1")
        cache.put("b", "2")
        assert cache.get("a") == "1"
        cache.put("c", "3")
        assert "a" not in cache
        assert "b" in cache
        assert "c" in cache

    def test_overwriting_existing_key_does_not_evict(self) -> None:
        cache = ResponseCache(2)
        cache.put("a", "1")
        cache.put("b", "2")
        cache.put("a", "updated")
        assert len(cache) == 2
        assert cache.get("a") == "updated"
        assert cache.get("b") == "2"

    def test_clear_empties_entries(self) -> None:
        cache = ResponseCache(4)
        cache.put("a", "1")
        cache.clear()
        assert len(cache) == 0

    @given(
        capacity=st.integers(min_value=1, max_value=8),
        keys=st.lists(st.text(min_size=1, max_size=4), max_size=40),
    )
    def test_size_never_exceeds_capacity(self, capacity: int, keys: list[str]) -> None:
        cache = ResponseCache(capacity)
        for key in keys:
            cache.put(key, key.upper())
            assert len(cache) <= capacity
        if keys:
            assert cache.get(keys[-1]) == keys[-1].upper()


@pytest.mark.unit
def test_only_normal_policy_uses_cache() -> None:
    assert CachePolicy.NORMAL.uses_cache
    assert not CachePolicy.BYPASS.uses_cache
