"""Client-side cache layer.

Provides:
- TTLCache: capacity-bounded cache with per-entry expiry and fail-open
  snapshot persistence
- RemoteFetchCache: read-through cache that coalesces concurrent fetches
- QueryCache: short-lived cache of query results with order-independent keys
- CacheKeys and cached(): key builders and async memoization
"""

from crmcache.cache.backends import (
    FileSnapshotStore,
    RedisSnapshotStore,
    SessionSnapshotStore,
    SnapshotStore,
    create_snapshot_store,
)
from crmcache.cache.entry import CacheEntry, CacheOptions, CacheStats, EntryStats, StorageType
from crmcache.cache.keys import CacheKeys
from crmcache.cache.memoize import cached
from crmcache.cache.patterns import GlobPattern
from crmcache.cache.query import QueryCache
from crmcache.cache.remote import RemoteFetchCache
from crmcache.cache.runtime import CacheRuntime
from crmcache.cache.ttl import TTLCache

__all__ = [
    # Core cache
    "TTLCache",
    "CacheEntry",
    "CacheOptions",
    "CacheStats",
    "EntryStats",
    "StorageType",
    # Persistence
    "SnapshotStore",
    "SessionSnapshotStore",
    "FileSnapshotStore",
    "RedisSnapshotStore",
    "create_snapshot_store",
    # Specialized caches
    "RemoteFetchCache",
    "QueryCache",
    "CacheRuntime",
    # Utilities
    "CacheKeys",
    "GlobPattern",
    "cached",
]
