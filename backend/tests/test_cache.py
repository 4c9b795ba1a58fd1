from __future__ import annotations

import pytest

from mangareader.core.cache import ViewCache


class Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_repeat_view_within_ttl_not_counted():
    clock = Clock()
    cache = ViewCache(ttl_seconds=60, clock=clock)

    assert cache.should_count("c1-1.2.3.4-ua") is True
    clock.now = 59
    assert cache.should_count("c1-1.2.3.4-ua") is False
    assert cache.should_count("c1-1.2.3.4-other") is True


def test_view_counted_again_after_ttl():
    clock = Clock()
    cache = ViewCache(ttl_seconds=60, clock=clock)

    cache.should_count("k")
    clock.now = 61
    assert "k" not in cache
    assert cache.should_count("k") is True
    clock.now = 100
    assert cache.should_count("k") is False


def test_least_recently_used_entry_evicted():
    cache = ViewCache(max_entries=2, clock=Clock())

    cache.should_count("a")
    cache.should_count("b")
    cache.should_count("a")  # refreshes a
    cache.should_count("c")

    assert len(cache) == 2
    assert "a" in cache
    assert "b" not in cache
    assert cache.should_count("b") is True


def test_clear_and_validation():
    cache = ViewCache(clock=Clock())
    cache.should_count("a")
    cache.clear()
    assert len(cache) == 0
    with pytest.raises(ValueError):
        ViewCache(max_entries=0)
