"""
Proxy caching package.

Holds successful GET responses in process memory for a bounded time and
count. Nothing is persisted; the cache is lost on restart.
"""

from .cache_store import CacheEntry, CacheStore, make_cache_key

__all__ = ["CacheEntry", "CacheStore", "make_cache_key"]
