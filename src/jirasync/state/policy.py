"""Change classification policy.

This module contains *no* I/O and no bookkeeping: it only decides how an
incoming issue relates to the snapshot already known.
"""

from __future__ import annotations

from datetime import datetime

from jirasync.state.events import ChangeKind


def classify_change(known_version: datetime | None, incoming_version: datetime | None, *, known: bool) -> ChangeKind:
    """Classify an incoming issue against the known snapshot.

    Policy:
    - not known → ``NEW``
    - known with an older version → ``UPDATED``
    - otherwise (same or older version) → ``UNCHANGED``

    A known snapshot without a version is considered older than any
    versioned incoming issue.
    """
    if not known:
        return ChangeKind.NEW
    if incoming_version is None:
        return ChangeKind.UNCHANGED
    if known_version is None or known_version < incoming_version:
        return ChangeKind.UPDATED
    return ChangeKind.UNCHANGED


def should_store(kind: ChangeKind) -> bool:
    """Whether the incoming snapshot replaces the stored one."""
    return kind in (ChangeKind.NEW, ChangeKind.UPDATED)
