"""Memoization of async functions through a RemoteFetchCache.

Example:
    @cached(api, lambda customer_id: CacheKeys.entity_key("customer", customer_id))
    async def load_customer(customer_id: str) -> dict:
        return await client.get(f"/customers/{customer_id}")

Concurrent calls with the same key share one underlying call, and repeat
calls inside the ttl are served from the cache.
"""

from __future__ import annotations

import functools
from collections.abc import Awaitable, Callable
from typing import Any, ParamSpec, Protocol, TypeVar

from crmcache.cache.remote import RemoteFetchCache

P = ParamSpec("P")
R = TypeVar("R")


class CachedFunction(Protocol[P, R]):
    """An async function wrapped by ``cached``."""

    __wrapped__: Callable[P, Awaitable[R]]

    def __call__(self, *args: P.args, **kwargs: P.kwargs) -> Awaitable[R]: ...

    def invalidate(self, *args: P.args, **kwargs: P.kwargs) -> bool: ...


def cached(
    cache: RemoteFetchCache,
    key_generator: Callable[..., str],
    ttl: float | None = None,
) -> Callable[[Callable[P, Awaitable[R]]], CachedFunction[P, R]]:
    """Decorate an async function so its results are cached by key.

    Args:
        cache: Remote-fetch cache to route calls through
        key_generator: Builds the cache key from the call's arguments
        ttl: Lifetime of each result in milliseconds (defaults to the
            cache ttl)
    """

    def decorator(fn: Callable[P, Awaitable[R]]) -> CachedFunction[P, R]:
        @functools.wraps(fn)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            key = key_generator(*args, **kwargs)
            return await cache.get(key, lambda: fn(*args, **kwargs), ttl=ttl)

        def invalidate(*args: Any, **kwargs: Any) -> bool:
            """Drop the cached result for one argument set."""
            return cache.cache.delete(key_generator(*args, **kwargs))

        wrapper.invalidate = invalidate  # type: ignore[attr-defined]
        return wrapper  # type: ignore[return-value]

    return decorator
