"""Cache key schema for crmcache.

Key formats:
- API reads: api:{method}:{endpoint}[:{params_json}]
- Entities: entity:{entity}[:{id}][:{action}]
- Query results: {endpoint}:{sorted_params_json}

Related-entity invalidation patterns follow the ``{entity}:*`` convention
used by callers that key remote reads by entity name.
"""

from __future__ import annotations

from typing import Any

import orjson


def _json(value: Any, *, sort_keys: bool = False) -> str:
    option = orjson.OPT_SORT_KEYS if sort_keys else 0
    return orjson.dumps(value, default=str, option=option).decode()


class CacheKeys:
    """Cache key generator following consistent naming convention."""

    API_PREFIX = "api"
    ENTITY_PREFIX = "entity"

    @classmethod
    def api_key(cls, method: str, endpoint: str, params: Any = None) -> str:
        """Key for an API read.

        Params are serialized as given; use ``query_key`` when field order
        must not matter.
        """
        key = f"{cls.API_PREFIX}:{method}:{endpoint}"
        if params is not None:
            key += f":{_json(params)}"
        return key

    @classmethod
    def entity_key(
        cls,
        entity: str,
        entity_id: str | int | None = None,
        action: str | None = None,
    ) -> str:
        """Key for an entity, optionally narrowed to one record and action."""
        key = f"{cls.ENTITY_PREFIX}:{entity}"
        if entity_id is not None and entity_id != "":
            key += f":{entity_id}"
        if action:
            key += f":{action}"
        return key

    @classmethod
    def query_key(cls, endpoint: str, params: dict[str, Any]) -> str:
        """Deterministic key for a parameterized query.

        Parameter names are sorted before serialization, so two logically
        identical parameter sets produce the same key whatever order their
        fields were supplied in.
        """
        return f"{endpoint}:{_json(params, sort_keys=True)}"

    @classmethod
    def related_patterns(cls, entity: str, entity_id: str | int | None = None) -> list[str]:
        """Invalidation patterns for a write to an entity.

        Covers the entity, its plural listing and the aggregate views that
        summarize it.
        """
        patterns = [
            f"{entity}:*",
            f"{entity}s:*",
            "dashboard:*",
            "stats:*",
        ]
        if entity_id is not None and entity_id != "":
            patterns.append(f"{entity}:{entity_id}:*")
        return patterns
