"""Version-keyed disk cache for issues and their watcher lists.

Layout under the cache root::

    <root>/<issue key>/<version marker>.json            full issue payload
    <root>/<issue key>/<version marker>_watchers.json   watcher display names

The version marker is derived from ``fields.updated``. A new version always
lands at a new path, so an existing record is never rewritten with different
content and concurrent writers of the same record write the same bytes.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, TypeVar

from pydantic import ValidationError

from jirasync._api.issues import get_issue, get_watchers
from jirasync._constants import WATCHERS_SUFFIX
from jirasync._storage import atomic_write_text, dump_document, read_document
from jirasync.config import CustomFieldMapping
from jirasync.counters import SyncCounters
from jirasync.exceptions import CacheCorruptError, CacheError, CachePersistenceError
from jirasync.gateway import RateLimitedGateway
from jirasync.models.issue import Issue

_logger = logging.getLogger(__name__)

T = TypeVar("T")

CustomFieldExtractor = Callable[[Mapping[str, Any], Sequence[CustomFieldMapping]], dict[str, str]]


def version_marker(updated: datetime) -> str:
    """Render a version timestamp as a filesystem-safe token.

    ``2024-05-10T13:46:45.585-05:00`` becomes ``2024-05-10T13-46-45.585-05-00``;
    UTC renders with a ``Z`` suffix.
    """
    text = updated.strftime("%Y-%m-%dT%H-%M-%S")
    if updated.microsecond:
        text += "." + f"{updated.microsecond:06d}".rstrip("0")
    offset = updated.utcoffset()
    if not offset:
        return text + "Z"
    minutes = int(offset.total_seconds()) // 60
    sign = "+" if minutes >= 0 else "-"
    hours, minutes = divmod(abs(minutes), 60)
    return f"{text}{sign}{hours:02d}-{minutes:02d}"


def extract_custom_fields(raw: Mapping[str, Any], mappings: Sequence[CustomFieldMapping]) -> dict[str, str]:
    """Pick string values out of ``raw["fields"]``.

    ``source`` may be a dotted path (``customfield_10010.value``). Missing,
    null, empty and non-string values are skipped.
    """
    fields = raw.get("fields")
    if not isinstance(fields, Mapping):
        return {}

    result: dict[str, str] = {}
    for mapping in mappings:
        value: Any = fields
        for segment in mapping.source.split("."):
            value = value.get(segment) if isinstance(value, Mapping) else None
        if isinstance(value, str) and value and value != "<nil>":
            result[mapping.target] = value
    return result


@dataclass(frozen=True, slots=True)
class CachedIssue:
    issue: Issue
    custom_fields: dict[str, str] = field(default_factory=dict)
    from_cache: bool = False


@dataclass(frozen=True, slots=True)
class CachedWatchers:
    names: list[str] = field(default_factory=list)
    from_cache: bool = False


_MISSING = object()


def _read_if_exists(path: Path) -> Any:
    """Decoded document at *path*, or ``_MISSING`` if there is no file."""
    try:
        return read_document(path)
    except FileNotFoundError:
        return _MISSING
    except OSError as exc:
        raise CacheError(f"Cannot read {path}: {exc}", path=str(path)) from exc


class EntityCache:
    """Materialises full issues, going to the API only on a cache miss."""

    def __init__(
        self,
        root: str | Path,
        gateway: RateLimitedGateway,
        *,
        ignore_cache: bool = False,
        extractor: CustomFieldExtractor = extract_custom_fields,
        counters: SyncCounters | None = None,
    ) -> None:
        self._root = Path(root)
        self._gateway = gateway
        self._ignore_cache = ignore_cache
        self._extractor = extractor
        self._counters = counters if counters is not None else gateway.counters

    @property
    def root(self) -> Path:
        return self._root

    def issue_path(self, issue: Issue) -> Path | None:
        """Record path for *issue*, or ``None`` while its version is unknown."""
        if issue.version is None:
            return None
        return self._root / issue.key / f"{version_marker(issue.version)}.json"

    def watchers_path(self, issue: Issue) -> Path | None:
        if issue.version is None:
            return None
        return self._root / issue.key / f"{version_marker(issue.version)}{WATCHERS_SUFFIX}.json"

    async def _run(self, fn: Callable[..., T], *args: Any) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, fn, *args)

    async def _persist(self, path: Path, data: Any) -> None:
        try:
            await self._run(atomic_write_text, path, dump_document(data))
        except OSError as exc:
            raise CachePersistenceError(f"Failed to write {path}: {exc}", path=str(path)) from exc

    async def get(
        self,
        issue: Issue,
        fallback: Issue | None = None,
        *,
        custom_fields: Sequence[CustomFieldMapping] = (),
    ) -> CachedIssue:
        """Return the full version of *issue*.

        *issue* may be sparse (e.g. a search hit). *fallback* is a full issue
        already fetched during this run; it is reused instead of calling the
        API when the record is missing.
        """
        path = self.issue_path(issue)
        if path is not None and not self._ignore_cache:
            cached = await self._run(_read_if_exists, path)
            if cached is not _MISSING:
                if not isinstance(cached, dict):
                    raise CacheCorruptError(f"{path} does not hold an issue", path=str(path))
                try:
                    full = Issue.model_validate(cached)
                except ValidationError as exc:
                    raise CacheCorruptError(f"{path} does not hold an issue: {exc}", path=str(path)) from exc
                self._counters.cache_hits += 1
                return CachedIssue(full, self._extractor(cached, custom_fields), from_cache=True)

        if fallback is not None:
            full = fallback
            raw = fallback.raw or fallback.model_dump(mode="json", by_alias=True, exclude_none=True)
        else:
            _logger.info("Fetching specific info for %s", issue.key)
            raw = await get_issue(self._gateway, issue.key)
            full = Issue.model_validate(raw)

        target = self.issue_path(full)
        if target is None:
            _logger.warning("%s has no updated timestamp, not caching it", issue.key)
        else:
            await self._persist(target, raw)
        return CachedIssue(full, self._extractor(raw, custom_fields), from_cache=False)

    async def get_watchers(self, issue: Issue, existing: Sequence[str] | None = None) -> CachedWatchers:
        """Return the display names of the accounts watching *issue*.

        A non-empty *existing* list means the watchers were already loaded
        for this issue during the run; it is returned as is.
        """
        if existing:
            return CachedWatchers(list(existing), from_cache=True)

        path = self.watchers_path(issue)
        if path is not None and not self._ignore_cache:
            cached = await self._run(_read_if_exists, path)
            if cached is not _MISSING:
                if not isinstance(cached, list) or not all(isinstance(name, str) for name in cached):
                    raise CacheCorruptError(f"{path} does not hold a watcher list", path=str(path))
                self._counters.cache_hits += 1
                return CachedWatchers(cached, from_cache=True)

        _logger.info("Getting watchers for %s", issue.key)
        users = await get_watchers(self._gateway, issue.id or issue.key)
        names = [user.display_name for user in users if user.display_name]

        if path is not None:
            await self._persist(path, names)
        return CachedWatchers(names, from_cache=False)
