"""Runtime wiring for the application's caches.

Builds the remote-fetch cache and the query cache from settings and owns
their sweep tasks. Create one runtime per application scope and pass its
caches to the code that needs them.
"""

from __future__ import annotations

import logging
from typing import Any

from crmcache.cache.query import QueryCache
from crmcache.cache.remote import RemoteFetchCache
from crmcache.config import Settings, settings

logger = logging.getLogger(__name__)


class CacheRuntime:
    """Owns one RemoteFetchCache and one QueryCache."""

    def __init__(self, config: Settings | None = None) -> None:
        self.config = config or settings
        self.api = RemoteFetchCache(config=self.config)
        self.queries = QueryCache(config=self.config)

    async def start(self) -> None:
        """Start the sweep tasks of both caches."""
        await self.api.start()
        await self.queries.start()
        logger.info(
            "Cache runtime started",
            extra={"api_storage": self.api.cache.storage.value},
        )

    async def stop(self) -> None:
        """Stop the sweep tasks of both caches."""
        await self.api.stop()
        await self.queries.stop()
        logger.info("Cache runtime stopped")

    async def __aenter__(self) -> CacheRuntime:
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.stop()
