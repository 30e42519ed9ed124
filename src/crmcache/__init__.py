"""crmcache

Client-side caching for the CRM: TTL cache, request-coalescing remote-fetch
cache and query-result cache.
"""

from crmcache.cache import (
    CacheKeys,
    CacheOptions,
    CacheRuntime,
    QueryCache,
    RemoteFetchCache,
    StorageType,
    TTLCache,
    cached,
)
from crmcache.errors import (
    CacheError,
    InvalidPatternError,
    PersistenceError,
    SnapshotCorruptError,
)

__all__ = [
    "TTLCache",
    "RemoteFetchCache",
    "QueryCache",
    "CacheRuntime",
    "CacheOptions",
    "StorageType",
    "CacheKeys",
    "cached",
    "CacheError",
    "PersistenceError",
    "SnapshotCorruptError",
    "InvalidPatternError",
]

__version__ = "0.1.0"
