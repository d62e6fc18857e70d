from __future__ import annotations

from core.event_cache import BoundedEventCache


def test_seen_reports_repeat_ids():
    cache = BoundedEventCache(maxsize=10)

    assert cache.seen("Ev1") is False
    assert cache.seen("Ev1") is True
    assert "Ev1" in cache


def test_oldest_ids_are_evicted():
    cache = BoundedEventCache(maxsize=3)
    for event_id in ("a", "b", "c", "d"):
        cache.seen(event_id)

    assert len(cache) == 3
    assert "a" not in cache
    assert cache.maxsize == 3


def test_repeat_refreshes_recency():
    cache = BoundedEventCache(maxsize=2)
    cache.seen("a")
    cache.seen("b")
    cache.seen("a")
    cache.seen("c")

    assert "a" in cache
    assert "b" not in cache


def test_clear():
    cache = BoundedEventCache()
    cache.seen("a")
    cache.clear()

    assert len(cache) == 0
    assert cache.maxsize == 1000
