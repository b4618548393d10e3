"""Tests for the local TTL cache."""

from datetime import UTC, datetime

from design_context.core.store.cache import TTLCache
from design_context.models.context import ContextKey
from tests.unit.fakes import FakeClock


def _cache(ttl: float = 300) -> tuple[TTLCache, FakeClock]:
    clock = FakeClock(datetime(2026, 1, 1, tzinfo=UTC))
    return TTLCache(ttl, clock=clock.mono), clock


def test_get_returns_copy_until_expiry() -> None:
    cache, clock = _cache()
    cache.set("k", {"nodes": [1]})
    clock.advance(299)
    assert cache.get("k") == {"nodes": [1]}
    clock.advance(1)
    assert cache.get("k") is None
    assert cache.stats()["size"] == 0


def test_cached_documents_are_isolated_from_callers() -> None:
    cache, _ = _cache()
    original = {"nodes": [1]}
    cache.set("k", original)
    original["nodes"].append(2)
    fetched = cache.get("k")
    assert fetched == {"nodes": [1]}
    fetched["nodes"].append(3)  # type: ignore[index]
    assert cache.get("k") == {"nodes": [1]}


def test_set_refreshes_ttl() -> None:
    cache, clock = _cache(10)
    cache.set("k", {"v": 1})
    clock.advance(8)
    cache.set("k", {"v": 2})
    clock.advance(8)
    assert cache.get("k") == {"v": 2}


def test_evict_and_clear() -> None:
    cache, _ = _cache()
    cache.set("a", {})
    cache.set("b", {})
    assert cache.evict("a") is True
    assert cache.evict("a") is False
    cache.clear()
    assert cache.stats() == {"size": 0, "keys": [], "ttl": 300}


def test_purge_expired_counts_removed_entries() -> None:
    cache, clock = _cache(10)
    cache.set("old", {})
    clock.advance(5)
    cache.set("new", {})
    clock.advance(5)
    assert cache.purge_expired() == 1
    assert cache.stats()["keys"] == ["new"]


def test_set_sweeps_expired_entries_once_per_ttl() -> None:
    cache, clock = _cache(10)
    cache.set("old", {})
    clock.advance(10)
    cache.set("new", {})
    assert cache.evict("old") is False
    assert cache.evict("new") is True


def test_context_keys_differing_only_in_scope_are_separate_entries() -> None:
    cache, _ = _cache()
    cache.set(ContextKey("a-b"), {"scope": "file"})
    cache.set(ContextKey("a", "b"), {"scope": "node"})
    cache.evict(ContextKey("a", "b"))
    assert cache.get(ContextKey("a-b")) == {"scope": "file"}
