"""Global pytest configuration and fixtures.

Provides a controllable millisecond clock and isolated snapshot stores so
cache tests never touch real time, the home directory or process-wide state.
"""

from __future__ import annotations

import pytest

from crmcache.cache.backends import FileSnapshotStore, SessionSnapshotStore
from crmcache.config import Settings


class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, start: float = 1_700_000_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def session_store() -> SessionSnapshotStore:
    """Session store backed by a private mapping."""
    return SessionSnapshotStore({})


@pytest.fixture
def file_store(tmp_path) -> FileSnapshotStore:
    return FileSnapshotStore(tmp_path / "snapshots")


@pytest.fixture
def memory_settings(tmp_path) -> Settings:
    """Settings with every cache in memory and snapshots under tmp_path."""
    return Settings(
        api_storage="memory",
        snapshot_dir=tmp_path / "snapshots",
        sweep_interval_seconds=0.01,
    )
