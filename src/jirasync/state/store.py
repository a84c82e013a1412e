"""Known-issue set and run marker.

``SyncState`` is the only component allowed to change the known set. It is
mutated by :meth:`SyncState.classify`, which runs on the sequential page
producer; workers only read from it.
"""

from __future__ import annotations

import logging
from collections.abc import Collection, Iterable, Iterator, Mapping
from datetime import datetime, timedelta
from pathlib import Path
from types import MappingProxyType
from typing import Any

from pydantic import ValidationError

from jirasync._constants import KNOWN_ISSUES_FILE, LAST_RUN_FILE, RECENT_OVERLAP_SECONDS
from jirasync._storage import atomic_write_text, dump_document, read_document
from jirasync.exceptions import CacheCorruptError, StatePersistenceError
from jirasync.models.issue import Issue
from jirasync.state.events import ChangeKind
from jirasync.state.policy import classify_change, should_store

_logger = logging.getLogger(__name__)


def _issue_document(issue: Issue) -> dict[str, Any]:
    return issue.raw or issue.model_dump(mode="json", by_alias=True, exclude_none=True)


class SyncState:
    """The engine's memory of every issue seen across runs."""

    def __init__(
        self,
        cache_root: str | Path,
        *,
        known: Mapping[str, Issue] | None = None,
        last_run: datetime | None = None,
    ) -> None:
        self._root = Path(cache_root)
        self._known: dict[str, Issue] = dict(known or {})
        self._last_run = last_run

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @property
    def known_path(self) -> Path:
        return self._root / KNOWN_ISSUES_FILE

    @property
    def last_run_path(self) -> Path:
        return self._root / LAST_RUN_FILE

    @classmethod
    def load(cls, cache_root: str | Path, *, ignore_cache: bool = False, recent_only: bool = False) -> SyncState:
        """Read the persisted state.

        The known set is skipped when *ignore_cache* is set; the run marker
        is only read for *recent_only* runs. Missing files are not errors:
        the run simply becomes a full one.
        """
        state = cls(cache_root)

        if not ignore_cache:
            try:
                document = read_document(state.known_path)
            except FileNotFoundError:
                _logger.warning("No known issues at %s, assuming it hasn't been created yet", state.known_path)
                document = {}
            if not isinstance(document, dict):
                raise CacheCorruptError(f"{state.known_path} must hold an object", path=str(state.known_path))
            for key, raw in document.items():
                try:
                    state._known[key] = Issue.model_validate(raw)
                except ValidationError as exc:
                    raise CacheCorruptError(
                        f"{state.known_path}: entry {key} is not an issue: {exc}",
                        path=str(state.known_path),
                    ) from exc

        if recent_only:
            try:
                marker = read_document(state.last_run_path)
            except FileNotFoundError:
                _logger.warning("No last run marker at %s, running as a full sync", state.last_run_path)
            else:
                try:
                    state._last_run = datetime.fromisoformat(str(marker))
                except ValueError as exc:
                    raise CacheCorruptError(
                        f"{state.last_run_path} is not a timestamp: {marker!r}",
                        path=str(state.last_run_path),
                    ) from exc

        return state

    def save(self, run_started_at: datetime) -> None:
        """Persist the known set, then the run marker.

        Only call this after a run without fatal errors. The marker is
        written last so it never advances over a known set that failed to
        persist.
        """
        document = {key: _issue_document(self._known[key]) for key in sorted(self._known)}
        for path, payload in (
            (self.known_path, document),
            (self.last_run_path, run_started_at.isoformat()),
        ):
            try:
                atomic_write_text(path, dump_document(payload))
            except OSError as exc:
                raise StatePersistenceError(f"Failed to write {path}: {exc}", path=str(path)) from exc
        self._last_run = run_started_at
        _logger.info("Saved %d known issues to %s", len(self._known), self.known_path)

    # ------------------------------------------------------------------
    # Read access (safe from workers)
    # ------------------------------------------------------------------

    @property
    def known(self) -> Mapping[str, Issue]:
        return MappingProxyType(self._known)

    @property
    def last_run(self) -> datetime | None:
        return self._last_run

    @property
    def incremental(self) -> bool:
        return self._last_run is not None

    def query_window_start(self) -> datetime | None:
        """Start of the "recently updated" window, or ``None`` for full runs."""
        if self._last_run is None:
            return None
        return self._last_run - timedelta(seconds=RECENT_OVERLAP_SECONDS)

    def get(self, key: str) -> Issue | None:
        return self._known.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._known

    def __len__(self) -> int:
        return len(self._known)

    def count_for(self, project_key: str) -> int:
        return sum(1 for issue in self._known.values() if issue.project_key == project_key)

    def ancestors(self, key: str) -> Iterator[Issue]:
        """Yield the known parents of *key*, nearest first.

        Stops at the first parent that is not in the known set.
        """
        seen = {key}
        current = self._known.get(key)
        while current is not None and current.parent_key is not None and current.parent_key not in seen:
            seen.add(current.parent_key)
            current = self._known.get(current.parent_key)
            if current is not None:
                yield current

    # ------------------------------------------------------------------
    # Diff (producer only)
    # ------------------------------------------------------------------

    def classify(self, batch: Iterable[Issue]) -> Iterator[tuple[Issue, ChangeKind]]:
        """Diff a batch of remote issues against the known set.

        New and updated issues replace the stored snapshot; unchanged ones
        keep it and are yielded as the stored snapshot.
        """
        for issue in batch:
            stored = self._known.get(issue.key)
            kind = classify_change(
                stored.version if stored is not None else None,
                issue.version,
                known=stored is not None,
            )
            if should_store(kind) or stored is None:
                self._known[issue.key] = issue
                yield issue, kind
            else:
                yield stored, kind

    def residual(self, project_key: str, seen: Collection[str]) -> Iterator[Issue]:
        """Known issues of *project_key* that this run's query did not return.

        Yielded in key order from their last snapshot. Nothing is ever
        removed: an issue missing from the batch may just be outside the
        query window.
        """
        keys = sorted(
            key for key, issue in self._known.items() if issue.project_key == project_key and key not in seen
        )
        for key in keys:
            yield self._known[key]
