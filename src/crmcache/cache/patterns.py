"""Glob matching for cache invalidation patterns.

Only ``*`` is special: it matches any run of characters, including none.
Every other character is literal, and a pattern must match the whole key.

Patterns are compiled once into literal segments and matched with a greedy
left-to-right scan. Leftmost placement of each middle segment is always safe
for ``*``-only globs, so no backtracking is needed and matching cost stays
bounded by ``O(len(key) * segments)`` however the pattern is built.

Example:
    pattern = GlobPattern.compile("customer:*:notes")
    pattern.matches("customer:42:notes")  # True
    pattern.matches("vip_customer:42:notes")  # False
"""

from __future__ import annotations

from dataclasses import dataclass

from crmcache.errors import InvalidPatternError

WILDCARD = "*"
MAX_PATTERN_LENGTH = 512
MAX_WILDCARDS = 16


@dataclass(frozen=True)
class GlobPattern:
    """A compiled ``*`` glob."""

    source: str
    segments: tuple[str, ...]

    @classmethod
    def compile(cls, pattern: str) -> "GlobPattern":
        """Compile a glob pattern.

        Raises:
            InvalidPatternError: If the pattern is empty, too long or has
                too many wildcards
        """
        if not pattern:
            raise InvalidPatternError(pattern, "pattern is empty")
        if len(pattern) > MAX_PATTERN_LENGTH:
            raise InvalidPatternError(
                pattern, f"longer than {MAX_PATTERN_LENGTH} characters"
            )
        if pattern.count(WILDCARD) > MAX_WILDCARDS:
            raise InvalidPatternError(pattern, f"more than {MAX_WILDCARDS} wildcards")
        return cls(source=pattern, segments=tuple(pattern.split(WILDCARD)))

    @property
    def is_literal(self) -> bool:
        return len(self.segments) == 1

    @property
    def prefix(self) -> str:
        """Literal text every matching key starts with."""
        return self.segments[0]

    def matches(self, key: str) -> bool:
        """Check whether the whole key matches this pattern."""
        if self.is_literal:
            return key == self.source

        head, *middle, tail = self.segments
        if len(key) < len(head) + len(tail):
            return False
        if not key.startswith(head) or not key.endswith(tail):
            return False

        pos = len(head)
        end = len(key) - len(tail)
        for segment in middle:
            if not segment:
                continue
            found = key.find(segment, pos, end)
            if found < 0:
                return False
            pos = found + len(segment)
        return True

    def __str__(self) -> str:
        return self.source
