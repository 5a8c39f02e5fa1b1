"""
In-memory response cache for relayed GET requests.
"""

import copy
import hashlib
import json
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from shared.logging import get_logger
from ..domain.content import Payload, PayloadKind

DEFAULT_TTL_SECONDS = 300
DEFAULT_MAX_ENTRIES = 100


def make_cache_key(method: str, url: str, body: bytes = b"") -> str:
    """Derive the cache key for a (method, url, body) triple."""
    # JSON list encoding keeps the parts unambiguous before hashing
    key_string = json.dumps([method.upper(), url, (body or b"").hex()])
    return f"proxy:{hashlib.sha256(key_string.encode('utf-8')).hexdigest()}"


@dataclass(frozen=True)
class CacheEntry:
    """Cached upstream response."""

    payload: Payload
    status_code: int
    headers: List[Tuple[str, str]]
    created_at: float = field(default_factory=time.time)

    def age(self, now: float) -> float:
        return now - self.created_at


class CacheStore:
    """Bounded TTL cache with insertion-order eviction."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.time,
        on_evict: Optional[Callable[[str, str], None]] = None,
    ):
        """
        Args:
            ttl_seconds: Maximum age of an entry before it is treated as absent
            max_entries: Maximum number of entries held at once
            clock: Time source in seconds, injectable for tests
            on_evict: Optional callback ``(key, reason)`` for expirations and evictions
        """
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")

        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self.clock = clock
        self.on_evict = on_evict
        self.logger = get_logger("proxy.cache_store")

        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()

        self.hits = 0
        self.misses = 0
        self.evictions = 0
        self.expirations = 0

    def new_entry(self, payload: Payload, status_code: int, headers: List[Tuple[str, str]]) -> CacheEntry:
        """Build an entry stamped with the store's clock."""
        return CacheEntry(
            payload=payload,
            status_code=status_code,
            headers=headers,
            created_at=self.clock(),
        )

    def lookup(self, key: str) -> Optional[CacheEntry]:
        """Return a fresh entry for ``key``; stale entries are dropped."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None

            if entry.age(self.clock()) >= self.ttl_seconds:
                self._remove(key, "expired")
                self.expirations += 1
                self.misses += 1
                self.logger.debug("Cache entry expired", key=key[:22])
                return None

            self.hits += 1

        # Callers get their own copy; the stored entry is never shared
        return _detach_entry(entry)

    def insert(self, key: str, entry: CacheEntry) -> None:
        """Insert or overwrite ``key``, then evict oldest-inserted entries over the limit."""
        stored = _detach_entry(entry)

        with self._lock:
            # An overwrite counts as a fresh insertion
            self._entries.pop(key, None)
            self._entries[key] = stored

            while len(self._entries) > self.max_entries:
                evicted_key = next(iter(self._entries))
                self._remove(evicted_key, "capacity")
                self.evictions += 1
                self.logger.debug("Cache entry evicted", key=evicted_key[:22])

    def invalidate(self, key: str) -> bool:
        """Remove ``key`` if present."""
        with self._lock:
            if key not in self._entries:
                return False
            self._remove(key, "invalidated")
            return True

    def clear(self) -> int:
        """Drop every entry and reset counters."""
        with self._lock:
            size_before = len(self._entries)
            self._entries.clear()
            self.hits = 0
            self.misses = 0
            self.evictions = 0
            self.expirations = 0
        self.logger.info("Cache cleared", removed=size_before)
        return size_before

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            total = self.hits + self.misses
            hit_rate = (self.hits / total * 100) if total > 0 else 0

            return {
                'size': len(self._entries),
                'max_entries': self.max_entries,
                'ttl_seconds': self.ttl_seconds,
                'hits': self.hits,
                'misses': self.misses,
                'evictions': self.evictions,
                'expirations': self.expirations,
                'hit_rate': f"{hit_rate:.1f}%",
            }

    def _remove(self, key: str, reason: str) -> None:
        # Caller holds the lock
        del self._entries[key]
        if self.on_evict is not None and reason != "invalidated":
            self.on_evict(key, reason)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries


def _detach_entry(entry: CacheEntry) -> CacheEntry:
    return CacheEntry(
        payload=_detach_payload(entry.payload),
        status_code=entry.status_code,
        headers=list(entry.headers),
        created_at=entry.created_at,
    )


def _detach_payload(payload: Payload) -> Payload:
    if payload.kind is PayloadKind.JSON:
        return Payload.from_json(copy.deepcopy(payload.value))
    if payload.kind is PayloadKind.BINARY:
        return Payload.from_bytes(payload.value)
    return payload
