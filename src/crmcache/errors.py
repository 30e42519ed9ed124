"""Exception hierarchy for crmcache.

Persistence errors are raised by snapshot stores. The caches log and absorb
them; the snapshot CLI reports them and exits non-zero. Pattern errors reach
the caller of ``invalidate``.
"""

from __future__ import annotations


class CacheError(Exception):
    """Base class for all cache errors."""


class PersistenceError(CacheError):
    """A snapshot could not be read from or written to its backing store."""

    def __init__(self, message: str, storage_key: str | None = None) -> None:
        self.storage_key = storage_key
        super().__init__(message)


class SnapshotCorruptError(PersistenceError):
    """A stored snapshot exists but is not a valid entry map."""


class InvalidPatternError(CacheError, ValueError):
    """An invalidation pattern was rejected by the glob compiler."""

    def __init__(self, pattern: str, reason: str) -> None:
        self.pattern = pattern
        self.reason = reason
        super().__init__(f"Invalid cache pattern {pattern[:64]!r}: {reason}")
