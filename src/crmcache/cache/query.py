"""Query-result cache for search and list results.

Results are keyed by endpoint plus a parameter set serialized with sorted
field names. Entries are short-lived and kept in memory only, since query
results are specific to the running session.
"""

from __future__ import annotations

import logging
from typing import Any

from crmcache.cache.entry import CacheOptions, CacheStats, StorageType
from crmcache.cache.keys import CacheKeys
from crmcache.cache.ttl import TTLCache
from crmcache.config import Settings, settings

logger = logging.getLogger(__name__)


def default_query_options(config: Settings | None = None) -> CacheOptions:
    config = config or settings
    return CacheOptions(
        ttl=config.query_ttl_ms,
        max_size=config.query_max_size,
        storage=StorageType.MEMORY,
    )


class QueryCache:
    """Cache of materialized query results keyed by endpoint and params."""

    def __init__(
        self,
        options: CacheOptions | None = None,
        *,
        cache: TTLCache | None = None,
        config: Settings | None = None,
    ) -> None:
        if cache is None:
            cache = TTLCache(
                options or default_query_options(config), name="query", config=config
            )
        self.cache = cache

    @staticmethod
    def generate_key(endpoint: str, params: dict[str, Any]) -> str:
        return CacheKeys.query_key(endpoint, params)

    def get(self, endpoint: str, params: dict[str, Any], default: Any = None) -> Any:
        return self.cache.get(self.generate_key(endpoint, params), default)

    def set(
        self,
        endpoint: str,
        params: dict[str, Any],
        data: Any,
        ttl: float | None = None,
    ) -> None:
        self.cache.set(self.generate_key(endpoint, params), data, ttl)

    def invalidate_queries(self, endpoint: str) -> int:
        """Drop every cached result for an endpoint.

        Returns:
            Number of entries removed
        """
        prefix = f"{endpoint}:"
        removed = 0
        with self.cache.batch():
            for item in self.cache.get_stats().items:
                if item.key.startswith(prefix) and self.cache.delete(item.key):
                    removed += 1

        logger.debug("Queries invalidated", extra={"endpoint": endpoint, "removed": removed})
        return removed

    def clear(self) -> None:
        self.cache.clear()

    def get_stats(self) -> CacheStats:
        return self.cache.get_stats()

    async def start(self) -> None:
        await self.cache.start()

    async def stop(self) -> None:
        await self.cache.stop()

    async def __aenter__(self) -> QueryCache:
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.stop()
