"""Remote-fetch cache with in-flight request coalescing.

Wraps a TTLCache for remote reads. A read is served from the cache, joins a
fetch already in flight for the same key, or starts a new fetch whose result
is cached for every later caller.

At most one fetch per key is in flight at any time. The pending check and
the pending registration run with no ``await`` between them, so on a single
event loop two back-to-back calls can never both start a fetch.

Example:
    api = RemoteFetchCache()
    async with api:
        customer = await api.get("customer:42", lambda: client.fetch_customer(42))
        api.invalidate_related("customer", "42")
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar, cast

from crmcache.cache.entry import CacheOptions, CacheStats
from crmcache.cache.keys import CacheKeys
from crmcache.cache.patterns import GlobPattern
from crmcache.cache.ttl import TTLCache
from crmcache.config import Settings, settings
from crmcache.observability.logging import LogContext

logger = logging.getLogger(__name__)

T = TypeVar("T")

Fetcher = Callable[[], Awaitable[T]]


def _retrieve_exception(task: asyncio.Future[Any]) -> None:
    # The failure reaches the waiters; mark it retrieved even if all were cancelled
    if not task.cancelled():
        task.exception()


def default_api_options(config: Settings | None = None) -> CacheOptions:
    """Cache options for remote reads: larger, longer-lived and persisted."""
    config = config or settings
    return CacheOptions(
        ttl=config.api_ttl_ms,
        max_size=config.api_max_size,
        storage=config.api_storage,
        storage_key=config.storage_key,
    )


class RemoteFetchCache:
    """Coalescing read-through cache for remote data."""

    def __init__(
        self,
        options: CacheOptions | None = None,
        *,
        cache: TTLCache | None = None,
        config: Settings | None = None,
    ) -> None:
        """Create the cache.

        Args:
            options: Options for the underlying TTLCache (defaults to the
                remote-read settings)
            cache: Pre-built TTLCache to wrap instead
            config: Settings used for defaults and the snapshot store
        """
        if cache is None:
            cache = TTLCache(options or default_api_options(config), name="api", config=config)
        self.cache = cache
        self._pending: dict[str, asyncio.Future[Any]] = {}

    async def get(
        self,
        key: str,
        fetch: Fetcher[T],
        *,
        ttl: float | None = None,
        force_refresh: bool = False,
    ) -> T:
        """Return the value for key, fetching it at most once concurrently.

        Args:
            key: Cache key
            fetch: Zero-argument callable returning an awaitable of the value
            ttl: Lifetime of the fetched value in milliseconds
            force_refresh: Skip the cached value and fetch again

        Raises:
            Exception: Whatever fetch raises; every caller waiting on the
                same fetch receives it and nothing is cached
        """
        if not force_refresh:
            entry = self.cache.get_entry(key)
            if entry is not None:
                return cast(T, entry.data)

        pending = self._pending.get(key)
        if pending is not None:
            logger.debug("Returning pending request", extra={"key": key})
            return cast(T, await asyncio.shield(pending))

        task = asyncio.ensure_future(self._settle(key, fetch(), ttl))
        task.add_done_callback(_retrieve_exception)
        self._pending[key] = task
        return cast(T, await asyncio.shield(task))

    async def _settle(self, key: str, request: Awaitable[T], ttl: float | None) -> T:
        try:
            with LogContext(cache_scope=self.cache.name):
                data = await request
                self.cache.set(key, data, ttl)
            return data
        finally:
            self._pending.pop(key, None)

    def pending_keys(self) -> list[str]:
        """Keys with a fetch currently in flight."""
        return list(self._pending)

    def invalidate(self, pattern: str | None = None) -> int:
        """Drop cached entries whose key matches a ``*`` glob.

        With no pattern the whole cache is cleared. Fetches already in
        flight are not affected.

        Returns:
            Number of entries removed

        Raises:
            InvalidPatternError: If the pattern cannot be compiled
        """
        if not pattern:
            removed = len(self.cache)
            self.cache.clear()
            logger.debug("Cache invalidated", extra={"pattern": "*", "removed": removed})
            return removed

        glob = GlobPattern.compile(pattern)
        removed = 0
        with self.cache.batch():
            for item in self.cache.get_stats().items:
                if glob.matches(item.key) and self.cache.delete(item.key):
                    removed += 1

        logger.debug("Cache invalidated", extra={"pattern": pattern, "removed": removed})
        return removed

    def invalidate_related(self, entity: str, entity_id: str | int | None = None) -> int:
        """Invalidate an entity, its listings and the aggregate views.

        Returns:
            Number of entries removed
        """
        with self.cache.batch():
            return sum(
                self.invalidate(pattern)
                for pattern in CacheKeys.related_patterns(entity, entity_id)
            )

    def get_stats(self) -> CacheStats:
        return self.cache.get_stats()

    async def start(self) -> None:
        await self.cache.start()

    async def stop(self) -> None:
        await self.cache.stop()

    async def __aenter__(self) -> RemoteFetchCache:
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.stop()
