"""State layer.

This package is the single source of truth for which issues the engine has
seen across runs, how a fresh batch differs from that memory, and the
derived parent/child index.
"""

from jirasync.state.events import ChangeKind, SyncEvent, SyncItem
from jirasync.state.hierarchy import IssueHierarchy, build_hierarchy
from jirasync.state.store import SyncState

__all__ = [
    "ChangeKind",
    "IssueHierarchy",
    "SyncEvent",
    "SyncItem",
    "SyncState",
    "build_hierarchy",
]
