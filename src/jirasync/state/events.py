"""Classified issues as handed to workers and reported to callers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from jirasync.models.issue import Issue

if TYPE_CHECKING:
    from jirasync.cache import CachedIssue


class ChangeKind(StrEnum):
    NEW = "new"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    RESIDUAL = "residual"
    """Known from an earlier run but not returned by this run's query."""


@dataclass(frozen=True, slots=True)
class SyncItem:
    """One unit of work for the per-issue handler.

    ``issue`` is the search snapshot. ``detail`` and ``watchers`` are filled
    in by the engine before the renderer's handler sees the item.
    """

    issue: Issue
    kind: ChangeKind
    project_key: str
    detail: CachedIssue | None = None
    watchers: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class SyncEvent:
    """Outcome of handling one issue.

    ``error`` is the handler's exception, or ``None`` on success.
    """

    issue: Issue
    kind: ChangeKind
    project_key: str
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
