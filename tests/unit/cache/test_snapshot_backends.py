"""Tests for snapshot stores and snapshot encoding."""

from unittest.mock import MagicMock

import orjson
import pytest
import redis

from crmcache.cache.backends import (
    FileSnapshotStore,
    RedisSnapshotStore,
    SessionSnapshotStore,
    create_snapshot_store,
    decode_snapshot,
    encode_snapshot,
)
from crmcache.cache.entry import CacheEntry, StorageType
from crmcache.config import Settings
from crmcache.errors import PersistenceError, SnapshotCorruptError


class TestSnapshotEncoding:
    """Tests for encode_snapshot / decode_snapshot."""

    def test_encoded_shape(self) -> None:
        """Snapshot is a key-to-entry object with persisted field names."""
        entry = CacheEntry(data=[1, 2], created_at=1000.0, ttl=50.0, key="k")

        assert orjson.loads(encode_snapshot([entry])) == {
            "k": {"data": [1, 2], "createdAt": 1000.0, "ttl": 50.0, "key": "k"}
        }

    def test_unserializable_raises_persistence_error(self) -> None:
        """Data orjson cannot encode is reported as a persistence error."""
        entry = CacheEntry(data=object(), created_at=0, ttl=1, key="k")

        with pytest.raises(PersistenceError):
            encode_snapshot([entry])

    def test_decode_preserves_order(self) -> None:
        """Decoded entries keep stored order."""
        payload = b'{"b":{"data":1,"createdAt":1,"ttl":1,"key":"b"},"a":{"data":2,"createdAt":1,"ttl":1,"key":"a"}}'

        assert [e.key for e in decode_snapshot(payload)] == ["b", "a"]

    @pytest.mark.parametrize(
        "payload",
        [
            b"not json",
            b"[1, 2, 3]",
            b'{"a": 5}',
            b'{"a": {"data": 1, "ttl": 1, "key": "a"}}',
            b'{"a": {"data": 1, "createdAt": true, "ttl": 1, "key": "a"}}',
            b'{"a": {"data": 1, "createdAt": 1, "ttl": 1, "key": 3}}',
        ],
    )
    def test_decode_rejects_malformed(self, payload: bytes) -> None:
        """Malformed snapshots raise SnapshotCorruptError."""
        with pytest.raises(SnapshotCorruptError):
            decode_snapshot(payload)


class TestSessionSnapshotStore:
    """Tests for the process-lifetime store."""

    def test_round_trip(self, session_store) -> None:
        """Saved payloads load back and remove clears them."""
        session_store.save("k", b"{}")
        assert session_store.load("k") == b"{}"

        session_store.remove("k")
        assert session_store.load("k") is None

    def test_default_stores_share_snapshots(self) -> None:
        """Stores without an injected mapping see each other's writes."""
        first = SessionSnapshotStore()
        second = SessionSnapshotStore()
        try:
            first.save("shared-test-key", b"{}")
            assert second.load("shared-test-key") == b"{}"
        finally:
            first.remove("shared-test-key")


class TestFileSnapshotStore:
    """Tests for the file-backed store."""

    def test_missing_file_loads_none(self, file_store) -> None:
        """No file means no snapshot."""
        assert file_store.load("crm_cache") is None

    def test_save_creates_directory(self, file_store) -> None:
        """The snapshot directory is created on first save."""
        file_store.save("crm_cache", b'{"a":1}')

        assert file_store.path_for("crm_cache").read_bytes() == b'{"a":1}'
        assert file_store.load("crm_cache") == b'{"a":1}'

    def test_save_overwrites(self, file_store) -> None:
        """A second save replaces the file and leaves no temp files."""
        file_store.save("crm_cache", b"first")
        file_store.save("crm_cache", b"second")

        assert file_store.load("crm_cache") == b"second"
        assert [p.name for p in file_store.directory.iterdir()] == ["crm_cache.json"]

    def test_remove(self, file_store) -> None:
        """remove() deletes the file and tolerates a missing one."""
        file_store.save("crm_cache", b"{}")
        file_store.remove("crm_cache")
        file_store.remove("crm_cache")

        assert file_store.load("crm_cache") is None

    def test_unwritable_directory_raises(self, tmp_path) -> None:
        """A directory path that is a file cannot be written."""
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        store = FileSnapshotStore(blocker)

        with pytest.raises(PersistenceError):
            store.save("crm_cache", b"{}")

    def test_unreadable_path_raises(self, tmp_path) -> None:
        """A snapshot path that is a directory cannot be read."""
        store = FileSnapshotStore(tmp_path)
        store.path_for("crm_cache").mkdir()

        with pytest.raises(PersistenceError):
            store.load("crm_cache")


class TestRedisSnapshotStore:
    """Tests for the Redis-backed store with a mocked client."""

    def test_key_format(self) -> None:
        """Snapshots are namespaced under the crmcache prefix."""
        store = RedisSnapshotStore(client=MagicMock())

        assert store.redis_key("crm_cache") == "crmcache:snapshot:crm_cache"

    def test_load_and_save(self) -> None:
        """Load and save map to GET and SET."""
        client = MagicMock()
        client.get.return_value = b"{}"
        store = RedisSnapshotStore(client=client)

        assert store.load("crm_cache") == b"{}"
        store.save("crm_cache", b"{}")

        client.get.assert_called_once_with("crmcache:snapshot:crm_cache")
        client.set.assert_called_once_with("crmcache:snapshot:crm_cache", b"{}")

    def test_redis_errors_become_persistence_errors(self) -> None:
        """Connection failures are wrapped in PersistenceError."""
        client = MagicMock()
        client.get.side_effect = redis.ConnectionError("refused")
        client.set.side_effect = redis.ConnectionError("refused")
        store = RedisSnapshotStore(client=client)

        with pytest.raises(PersistenceError):
            store.load("crm_cache")
        with pytest.raises(PersistenceError):
            store.save("crm_cache", b"{}")


class TestCreateSnapshotStore:
    """Tests for the store factory."""

    def test_memory_has_no_store(self) -> None:
        """Memory caches get no store."""
        assert create_snapshot_store(StorageType.MEMORY) is None

    def test_session(self) -> None:
        """Session storage maps to the session store."""
        assert isinstance(create_snapshot_store("session"), SessionSnapshotStore)

    def test_durable_file(self, tmp_path) -> None:
        """Durable storage defaults to the file backend."""
        store = create_snapshot_store("durable", Settings(snapshot_dir=tmp_path))

        assert isinstance(store, FileSnapshotStore)
        assert store.directory == tmp_path

    def test_durable_redis(self) -> None:
        """durable_backend=redis selects the Redis store."""
        store = create_snapshot_store("durable", Settings(durable_backend="redis"))

        assert isinstance(store, RedisSnapshotStore)

    def test_unknown_backend(self) -> None:
        """Unknown durable backends are rejected."""
        with pytest.raises(ValueError, match="durable_backend"):
            create_snapshot_store("durable", Settings(durable_backend="s3"))
