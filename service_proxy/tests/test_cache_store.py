"""
Unit tests for the in-memory response cache.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from service_proxy.app.caching.cache_store import CacheEntry, CacheStore, make_cache_key
from service_proxy.app.domain.content import Payload


def _entry(store: CacheStore, value="ok", status_code=200) -> CacheEntry:
    return store.new_entry(Payload.from_json({"value": value}), status_code, [("content-type", "application/json")])


class TestMakeCacheKey:
    """Test cases for make_cache_key."""

    def test_same_triple_same_key(self):
        """Test that identical requests share a key."""
        assert make_cache_key("GET", "http://a.test/x") == make_cache_key("get", "http://a.test/x", b"")

    def test_parts_are_distinguished(self):
        """Test that method, URL and body each change the key."""
        base = make_cache_key("GET", "http://a.test/x")

        assert make_cache_key("POST", "http://a.test/x") != base
        assert make_cache_key("GET", "http://a.test/y") != base
        assert make_cache_key("GET", "http://a.test/x", b"body") != base

    def test_key_is_prefixed_digest(self):
        """Test the key format."""
        key = make_cache_key("GET", "http://a.test/x")

        assert key.startswith("proxy:")
        assert len(key) == len("proxy:") + 64


class TestCacheStore:
    """Test cases for CacheStore."""

    @pytest.fixture
    def evictions(self):
        """Collected (key, reason) eviction callbacks."""
        return []

    @pytest.fixture
    def store(self, clock, evictions):
        """Create CacheStore with a fake clock."""
        return CacheStore(
            ttl_seconds=300,
            max_entries=100,
            clock=clock,
            on_evict=lambda key, reason: evictions.append((key, reason)),
        )

    def test_lookup_miss(self, store):
        """Test lookup of an absent key."""
        assert store.lookup("proxy:missing") is None
        assert store.misses == 1

    def test_insert_then_lookup(self, store):
        """Test that an inserted entry is returned while fresh."""
        entry = _entry(store)
        store.insert("k", entry)

        found = store.lookup("k")

        assert found is not None
        assert found.payload == entry.payload
        assert found.status_code == 200
        assert found.headers == [("content-type", "application/json")]
        assert store.hits == 1

    def test_entry_fresh_just_before_ttl(self, store, clock):
        """Test that an entry younger than the TTL is served."""
        store.insert("k", _entry(store))
        clock.advance(299.999)

        assert store.lookup("k") is not None

    def test_entry_expires_at_ttl(self, store, clock, evictions):
        """Test that an entry whose age reaches the TTL is absent and removed."""
        store.insert("k", _entry(store))
        clock.advance(300)

        assert store.lookup("k") is None
        assert "k" not in store
        assert store.expirations == 1
        assert evictions == [("k", "expired")]

    def test_capacity_evicts_oldest_inserted(self, store, evictions):
        """Test that the 101st insert evicts the first-inserted key."""
        for i in range(101):
            store.insert(f"k{i}", _entry(store, i))

        assert len(store) == 100
        assert "k0" not in store
        assert "k1" in store
        assert "k100" in store
        assert evictions == [("k0", "capacity")]

    def test_lookup_does_not_refresh_position(self, store):
        """Test that eviction follows insertion order, not access order."""
        for i in range(100):
            store.insert(f"k{i}", _entry(store, i))
        store.lookup("k0")

        store.insert("k100", _entry(store, 100))

        assert "k0" not in store

    def test_overwrite_replaces_and_moves_to_newest(self, store):
        """Test that overwriting a key replaces it and counts as a fresh insertion."""
        for i in range(100):
            store.insert(f"k{i}", _entry(store, i))

        store.insert("k0", _entry(store, "new"))
        store.insert("k100", _entry(store, 100))

        assert len(store) == 100
        assert "k1" not in store
        assert store.lookup("k0").payload.value == {"value": "new"}

    def test_overwrite_restarts_ttl(self, store, clock):
        """Test that a re-inserted entry gets a new creation time."""
        store.insert("k", _entry(store, "old"))
        clock.advance(200)
        store.insert("k", _entry(store, "new"))
        clock.advance(200)

        assert store.lookup("k").payload.value == {"value": "new"}

    def test_stored_value_is_detached(self, store):
        """Test that mutating the inserted value does not alter the cached copy."""
        body = {"items": [1, 2]}
        headers = [("content-type", "application/json")]
        store.insert("k", store.new_entry(Payload.from_json(body), 200, headers))

        body["items"].append(3)
        headers.append(("x-late", "1"))

        found = store.lookup("k")
        assert found.payload.value == {"items": [1, 2]}
        assert ("x-late", "1") not in found.headers

    def test_returned_entry_is_detached(self, store):
        """Test that mutating a looked-up value does not alter the cached copy."""
        store.insert("k", store.new_entry(Payload.from_json({"items": [1]}), 200, []))

        first = store.lookup("k")
        first.payload.value["items"].append(2)
        first.headers.append(("x-late", "1"))

        second = store.lookup("k")
        assert second.payload.value == {"items": [1]}
        assert second.headers == []

    def test_invalidate(self, store, evictions):
        """Test explicit removal of a key."""
        store.insert("k", _entry(store))

        assert store.invalidate("k") is True
        assert store.invalidate("k") is False
        assert "k" not in store
        assert evictions == []

    def test_clear(self, store):
        """Test that clear drops entries and resets counters."""
        store.insert("a", _entry(store))
        store.insert("b", _entry(store))
        store.lookup("a")

        assert store.clear() == 2
        assert len(store) == 0
        assert store.hits == 0

    def test_get_stats(self, store):
        """Test cache statistics."""
        store.insert("a", _entry(store))
        store.lookup("a")
        store.lookup("b")

        stats = store.get_stats()

        assert stats["size"] == 1
        assert stats["max_entries"] == 100
        assert stats["ttl_seconds"] == 300
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == "50.0%"

    def test_rejects_non_positive_capacity(self, clock):
        """Test that a store must hold at least one entry."""
        with pytest.raises(ValueError):
            CacheStore(max_entries=0, clock=clock)

    def test_concurrent_inserts_respect_capacity(self, store):
        """Test that concurrent writers never push the store over capacity."""
        barrier = threading.Barrier(8)

        def writer(worker: int):
            barrier.wait()
            for i in range(50):
                store.insert(f"w{worker}-{i}", _entry(store, i))
                assert len(store) <= 100

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(writer, range(8)))

        assert len(store) == 100
        assert store.evictions == 300
