"""Cache data model.

Entries are persisted with the field names ``{data, createdAt, ttl, key}``;
all timestamps and durations are in milliseconds.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class StorageType(str, Enum):
    """Where a cache keeps its snapshot between instances."""

    MEMORY = "memory"
    DURABLE = "durable"
    SESSION = "session"


@dataclass
class CacheOptions:
    """Construction options for a TTL cache."""

    ttl: float = 5 * 60 * 1000
    max_size: int = 100
    storage: StorageType = StorageType.MEMORY
    storage_key: str = "crm_cache"

    def __post_init__(self) -> None:
        self.storage = StorageType(self.storage)
        if self.max_size < 1:
            raise ValueError(f"max_size must be at least 1, got {self.max_size}")
        if self.ttl < 0:
            raise ValueError(f"ttl must not be negative, got {self.ttl}")


@dataclass
class CacheEntry:
    """A cached value with its own expiry."""

    data: Any
    created_at: float
    ttl: float
    key: str

    def age(self, now: float) -> float:
        return now - self.created_at

    def is_expired(self, now: float) -> bool:
        """An entry stays valid while ``now - created_at <= ttl``."""
        return now - self.created_at > self.ttl

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the persisted snapshot shape."""
        return {
            "data": self.data,
            "createdAt": self.created_at,
            "ttl": self.ttl,
            "key": self.key,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CacheEntry":
        """Deserialize from the persisted snapshot shape.

        Raises:
            KeyError: If a field is missing
            TypeError: If a timestamp, ttl or key has the wrong type
        """
        created_at = data["createdAt"]
        ttl = data["ttl"]
        key = data["key"]
        for name, value in (("createdAt", created_at), ("ttl", ttl)):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise TypeError(f"{name} must be a number, got {type(value).__name__}")
        if not isinstance(key, str):
            raise TypeError(f"key must be a string, got {type(key).__name__}")
        return cls(data=data["data"], created_at=float(created_at), ttl=float(ttl), key=key)


@dataclass
class EntryStats:
    """Diagnostics for one live entry."""

    key: str
    age: float
    ttl: float


@dataclass
class CacheStats:
    """Point-in-time cache statistics."""

    size: int
    max_size: int
    hits: int = 0
    misses: int = 0
    items: list[EntryStats] = field(default_factory=list)

    @property
    def hit_rate(self) -> float:
        lookups = self.hits + self.misses
        return self.hits / lookups if lookups else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "size": self.size,
            "max_size": self.max_size,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hit_rate,
            "items": [{"key": i.key, "age": i.age, "ttl": i.ttl} for i in self.items],
        }
