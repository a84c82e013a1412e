"""Parent/child index over the known issues.

Built once, after every partition finished, from a read-only view of the
known set. Workers never touch it.
"""

from __future__ import annotations

import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field

from jirasync.models.issue import Issue

_DIGITS = re.compile(r"(\d+)")


def natural_key(value: str) -> tuple[tuple[int, int | str], ...]:
    """Sort key that orders ``ABC-2`` before ``ABC-10``."""
    return tuple((0, int(part)) if part.isdigit() else (1, part) for part in _DIGITS.split(value) if part)


@dataclass(frozen=True, slots=True)
class IssueHierarchy:
    parents: dict[str, str | None] = field(default_factory=dict)
    children: dict[str, list[str]] = field(default_factory=dict)

    def top_level(self) -> list[str]:
        """Issues without a parent, naturally sorted."""
        return sorted((key for key, parent in self.parents.items() if parent is None), key=natural_key)

    def children_of(self, key: str) -> list[str]:
        return sorted(self.children.get(key, []), key=natural_key)

    def walk(self) -> Iterator[tuple[int, str]]:
        """Depth-first ``(depth, key)`` pairs starting at every top-level issue."""
        stack = [(0, key) for key in reversed(self.top_level())]
        visited: set[str] = set()
        while stack:
            depth, key = stack.pop()
            if key in visited:
                continue
            visited.add(key)
            yield depth, key
            stack.extend((depth + 1, child) for child in reversed(self.children_of(key)))


def build_hierarchy(known: Mapping[str, Issue]) -> IssueHierarchy:
    parents: dict[str, str | None] = {}
    children: dict[str, list[str]] = {}
    for key, issue in known.items():
        children.setdefault(key, [])
        parent = issue.parent_key
        parents[key] = parent
        if parent is not None:
            children.setdefault(parent, []).append(key)
    return IssueHierarchy(parents=parents, children=children)
