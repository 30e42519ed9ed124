"""Generic TTL cache with capacity-bound eviction and snapshot persistence.

Every entry carries its own ttl. Expiry is lazy: an expired entry is removed
when a read touches it or when the periodic sweep runs, never eagerly.

Capacity is bounded by ``max_size``. Admitting a new key into a full cache
first evicts the single oldest-inserted entry. Reads do not refresh
insertion order, and overwriting an existing key keeps its position.

Persistence is fail-open. Every mutation rewrites the full snapshot in the
configured store; load and save failures are logged as warnings and the
cache carries on in memory. Use ``batch()`` to coalesce bulk mutations into
a single write.

Example:
    cache = TTLCache(CacheOptions(ttl=60_000, max_size=500))
    async with cache:  # runs the periodic sweep
        cache.set("customer:42", {"name": "Acme"})
        cache.get("customer:42")
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

from crmcache.cache.backends import (
    SnapshotStore,
    create_snapshot_store,
    decode_snapshot,
    encode_snapshot,
)
from crmcache.cache.entry import CacheEntry, CacheOptions, CacheStats, EntryStats, StorageType
from crmcache.config import Settings, settings
from crmcache.observability.logging import LogContext

logger = logging.getLogger(__name__)


def _now_ms() -> float:
    return time.time() * 1000


class TTLCache:
    """Capacity-bounded key/value cache with per-entry expiry.

    Not thread-safe: all access is expected on one event loop.
    """

    def __init__(
        self,
        options: CacheOptions | None = None,
        *,
        store: SnapshotStore | None = None,
        clock: Callable[[], float] | None = None,
        sweep_interval: float | None = None,
        name: str | None = None,
        config: Settings | None = None,
    ) -> None:
        """Create a cache and load any stored snapshot.

        Args:
            options: ttl (ms), max_size, storage type and storage key
            store: Snapshot store to use instead of the one the storage
                type selects
            clock: Returns the current time in epoch milliseconds
            sweep_interval: Seconds between periodic sweeps
            name: Label used in log records (defaults to the storage key)
            config: Settings for the default options, the store factory and
                the sweep interval
        """
        self.config = config or settings
        self.options = options or CacheOptions(
            ttl=self.config.default_ttl_ms,
            max_size=self.config.default_max_size,
            storage_key=self.config.storage_key,
        )
        self.default_ttl = self.options.ttl
        self.max_size = self.options.max_size
        self.storage = self.options.storage
        self.storage_key = self.options.storage_key
        self.name = name or self.storage_key

        if store is None and self.storage is not StorageType.MEMORY:
            store = create_snapshot_store(self.storage, self.config)
        self._store = store

        self._clock = clock or _now_ms
        self._sweep_interval = (
            sweep_interval if sweep_interval is not None else self.config.sweep_interval_seconds
        )
        self._entries: dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0
        self._batch_depth = 0
        self._dirty = False
        self._sweep_task: asyncio.Task[None] | None = None

        if store is not None:
            self._load(store)

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    @property
    def persistent(self) -> bool:
        return self._store is not None

    def _load(self, store: SnapshotStore) -> None:
        """Load the stored snapshot, starting empty on any failure."""
        try:
            payload = store.load(self.storage_key)
            if payload is None:
                return
            entries = decode_snapshot(payload)
        except Exception as e:
            logger.warning(
                "Failed to load cache from storage",
                extra={"cache": self.name, "storage_key": self.storage_key, "error": str(e)},
            )
            return

        for entry in entries:
            self._admit(entry)
        logger.debug(
            "Cache loaded from storage", extra={"cache": self.name, "count": len(self._entries)}
        )

    def _persist(self) -> None:
        if self._store is None:
            return
        if self._batch_depth:
            self._dirty = True
            return
        try:
            self._store.save(self.storage_key, encode_snapshot(self._entries.values()))
        except Exception as e:
            logger.warning(
                "Failed to save cache to storage",
                extra={"cache": self.name, "storage_key": self.storage_key, "error": str(e)},
            )

    @contextmanager
    def batch(self) -> Iterator[TTLCache]:
        """Defer persistence until the outermost batch exits.

        Mutations inside the block write one snapshot at the end instead of
        one per mutation. Batches nest.
        """
        self._batch_depth += 1
        try:
            yield self
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0 and self._dirty:
                self._dirty = False
                self._persist()

    # -------------------------------------------------------------------------
    # Entry operations
    # -------------------------------------------------------------------------

    def _admit(self, entry: CacheEntry) -> None:
        if entry.key not in self._entries and len(self._entries) >= self.max_size:
            oldest_key = next(iter(self._entries))
            del self._entries[oldest_key]
            logger.debug("Cache item evicted", extra={"cache": self.name, "key": oldest_key})
        self._entries[entry.key] = entry

    def _lookup(self, key: str) -> CacheEntry | None:
        """Return the live entry for key, dropping it if it has expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            self._persist()
            logger.debug("Cache item expired", extra={"cache": self.name, "key": key})
            return None
        return entry

    def set(self, key: str, data: Any, ttl: float | None = None) -> None:
        """Store data under key.

        Args:
            key: Cache key
            data: Value to cache (must be JSON serializable to persist)
            ttl: Lifetime in milliseconds (defaults to the cache ttl)
        """
        entry = CacheEntry(
            data=data,
            created_at=self._clock(),
            ttl=self.default_ttl if ttl is None else ttl,
            key=key,
        )
        self._admit(entry)
        self._persist()
        logger.debug("Cache item set", extra={"cache": self.name, "key": key, "ttl": entry.ttl})

    def get_entry(self, key: str) -> CacheEntry | None:
        """Look up the live entry for key, counting a hit or a miss."""
        entry = self._lookup(key)
        if entry is None:
            self._misses += 1
            logger.debug("Cache miss", extra={"cache": self.name, "key": key})
            return None
        self._hits += 1
        logger.debug("Cache hit", extra={"cache": self.name, "key": key})
        return entry

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached data for key, or default if absent or expired."""
        entry = self.get_entry(key)
        return default if entry is None else entry.data

    def has(self, key: str) -> bool:
        """Check for a live entry. Expired entries are removed as a side effect."""
        return self._lookup(key) is not None

    def delete(self, key: str) -> bool:
        """Remove key. Returns True if an entry was removed."""
        if self._entries.pop(key, None) is None:
            return False
        self._persist()
        logger.debug("Cache item deleted", extra={"cache": self.name, "key": key})
        return True

    def clear(self) -> None:
        """Remove every entry and persist the empty snapshot."""
        self._entries.clear()
        self._persist()
        logger.debug("Cache cleared", extra={"cache": self.name})

    def sweep(self) -> int:
        """Remove every expired entry. Returns the number removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]

        if expired:
            self._persist()
            logger.debug(
                "Cache cleanup completed", extra={"cache": self.name, "expired_count": len(expired)}
            )
        return len(expired)

    def keys(self) -> list[str]:
        """Snapshot of stored keys in insertion order, expired or not."""
        return list(self._entries)

    def get_stats(self) -> CacheStats:
        """Report size, capacity, hit counters and per-entry age and ttl."""
        now = self._clock()
        return CacheStats(
            size=len(self._entries),
            max_size=self.max_size,
            hits=self._hits,
            misses=self._misses,
            items=[
                EntryStats(key=key, age=entry.age(now), ttl=entry.ttl)
                for key, entry in self._entries.items()
            ],
        )

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.has(key)

    # -------------------------------------------------------------------------
    # Periodic sweep lifecycle
    # -------------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    async def start(self) -> None:
        """Start the periodic sweep task on the running loop."""
        if self.running:
            return
        self._sweep_task = asyncio.create_task(
            self._sweep_loop(), name=f"crmcache-sweep:{self.name}"
        )
        logger.debug(
            "Cache sweep started",
            extra={"cache": self.name, "interval_seconds": self._sweep_interval},
        )

    async def stop(self) -> None:
        """Cancel the periodic sweep task and wait for it to finish."""
        if self._sweep_task is None:
            return

        self._sweep_task.cancel()
        try:
            await self._sweep_task
        except asyncio.CancelledError:
            pass
        self._sweep_task = None
        logger.debug("Cache sweep stopped", extra={"cache": self.name})

    async def _sweep_loop(self) -> None:
        with LogContext(cache_scope=self.name):
            while True:
                await asyncio.sleep(self._sweep_interval)
                self.sweep()

    async def __aenter__(self) -> TTLCache:
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.stop()
