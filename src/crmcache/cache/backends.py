"""Snapshot stores for persisted caches.

A snapshot store holds one serialized entry map per storage key and only
supports whole-snapshot reads and overwrites. Store I/O is synchronous so a
cache mutation never suspends the event loop.

Backends:
- SessionSnapshotStore: process-lifetime mapping, gone when the process exits
- FileSnapshotStore: one JSON file per storage key under a directory
- RedisSnapshotStore: one Redis string per storage key

Every backend raises PersistenceError on failure; the cache decides how to
degrade.
"""

from __future__ import annotations

import os
import tempfile
from abc import ABC, abstractmethod
from collections.abc import Iterable, MutableMapping
from pathlib import Path
from typing import Any, cast

import orjson
import redis

from crmcache.cache.entry import CacheEntry, StorageType
from crmcache.config import Settings, settings
from crmcache.errors import PersistenceError, SnapshotCorruptError

# Snapshots written by every session store in this process
_SESSION_SNAPSHOTS: dict[str, bytes] = {}


def encode_snapshot(entries: Iterable[CacheEntry]) -> bytes:
    """Serialize entries to ``{key: {data, createdAt, ttl, key}}`` JSON bytes.

    Raises:
        PersistenceError: If an entry's data is not JSON serializable
    """
    try:
        return orjson.dumps({entry.key: entry.to_dict() for entry in entries})
    except TypeError as e:
        raise PersistenceError(f"Cache snapshot is not serializable: {e}") from e


def decode_snapshot(payload: bytes | str) -> list[CacheEntry]:
    """Parse a snapshot into entries, preserving stored order.

    Raises:
        SnapshotCorruptError: If the payload is not a valid entry map
    """
    try:
        parsed = orjson.loads(payload)
    except orjson.JSONDecodeError as e:
        raise SnapshotCorruptError(f"Cache snapshot is not valid JSON: {e}") from e

    if not isinstance(parsed, dict):
        raise SnapshotCorruptError(
            f"Cache snapshot must be an object, got {type(parsed).__name__}"
        )

    entries: list[CacheEntry] = []
    for key, item in parsed.items():
        if not isinstance(item, dict):
            raise SnapshotCorruptError(f"Snapshot entry {key!r} is not an object")
        try:
            entry = CacheEntry.from_dict(item)
        except (KeyError, TypeError) as e:
            raise SnapshotCorruptError(f"Snapshot entry {key!r} is malformed: {e}") from e
        # Map key wins over the embedded key
        entry.key = key
        entries.append(entry)
    return entries


class SnapshotStore(ABC):
    """Abstract base class for snapshot backends."""

    @abstractmethod
    def load(self, storage_key: str) -> bytes | None:
        """Read the stored snapshot, or None if nothing is stored.

        Raises:
            PersistenceError: If the backend cannot be read
        """
        ...

    @abstractmethod
    def save(self, storage_key: str, payload: bytes) -> None:
        """Overwrite the stored snapshot.

        Raises:
            PersistenceError: If the backend cannot be written
        """
        ...

    @abstractmethod
    def remove(self, storage_key: str) -> None:
        """Delete the stored snapshot if present."""
        ...


class SessionSnapshotStore(SnapshotStore):
    """Snapshots that live as long as the current process.

    Stores share one process-wide mapping unless a mapping is injected, so a
    cache rebuilt later in the same process finds the previous snapshot.
    """

    def __init__(self, snapshots: MutableMapping[str, bytes] | None = None) -> None:
        self._snapshots = _SESSION_SNAPSHOTS if snapshots is None else snapshots

    def load(self, storage_key: str) -> bytes | None:
        return self._snapshots.get(storage_key)

    def save(self, storage_key: str, payload: bytes) -> None:
        self._snapshots[storage_key] = payload

    def remove(self, storage_key: str) -> None:
        self._snapshots.pop(storage_key, None)


class FileSnapshotStore(SnapshotStore):
    """Snapshots stored as JSON files.

    Layout:
        {directory}/{storage_key}.json

    Writes go to a temporary file in the same directory and are moved into
    place, so a crash mid-write never leaves a truncated snapshot.
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory).expanduser()

    def path_for(self, storage_key: str) -> Path:
        return self.directory / f"{storage_key}.json"

    def load(self, storage_key: str) -> bytes | None:
        path = self.path_for(storage_key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise PersistenceError(f"Failed to read {path}: {e}", storage_key) from e

    def save(self, storage_key: str, payload: bytes) -> None:
        path = self.path_for(storage_key)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{storage_key}.")
            try:
                with os.fdopen(fd, "wb") as fh:
                    fh.write(payload)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise PersistenceError(f"Failed to write {path}: {e}", storage_key) from e

    def remove(self, storage_key: str) -> None:
        path = self.path_for(storage_key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(f"Failed to remove {path}: {e}", storage_key) from e


class RedisSnapshotStore(SnapshotStore):
    """Snapshots stored as Redis strings.

    Key format: {prefix}:snapshot:{storage_key}

    Uses the blocking redis-py client; snapshot writes are full overwrites,
    so concurrent writers resolve as last-write-wins.
    """

    PREFIX = "crmcache"

    def __init__(self, client: Any | None = None, url: str = "redis://localhost:6379/0") -> None:
        self.client = client if client is not None else redis.Redis.from_url(url)

    def redis_key(self, storage_key: str) -> str:
        return f"{self.PREFIX}:snapshot:{storage_key}"

    def load(self, storage_key: str) -> bytes | None:
        try:
            return cast(bytes | None, self.client.get(self.redis_key(storage_key)))
        except redis.RedisError as e:
            raise PersistenceError(f"Failed to read snapshot: {e}", storage_key) from e

    def save(self, storage_key: str, payload: bytes) -> None:
        try:
            self.client.set(self.redis_key(storage_key), payload)
        except redis.RedisError as e:
            raise PersistenceError(f"Failed to write snapshot: {e}", storage_key) from e

    def remove(self, storage_key: str) -> None:
        try:
            self.client.delete(self.redis_key(storage_key))
        except redis.RedisError as e:
            raise PersistenceError(f"Failed to remove snapshot: {e}", storage_key) from e


def create_snapshot_store(
    storage: StorageType | str, config: Settings | None = None
) -> SnapshotStore | None:
    """Create the snapshot store for a storage type.

    Returns None for in-memory caches.
    """
    config = config or settings
    storage = StorageType(storage)
    if storage is StorageType.MEMORY:
        return None
    if storage is StorageType.SESSION:
        return SessionSnapshotStore()

    backend = config.durable_backend.lower()
    if backend == "file":
        return FileSnapshotStore(config.snapshot_dir)
    if backend == "redis":
        return RedisSnapshotStore(url=config.redis_url)

    raise ValueError("Unsupported durable_backend. Supported values: file, redis.")
