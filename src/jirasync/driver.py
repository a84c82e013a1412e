"""Partition driver: one project, paginated search, bounded fan-out.

Pages are fetched sequentially. Each page is diffed against the known set
on this producer (the only writer of the known set) and every classified
issue is pushed into a :class:`WorkerPool`. Once the live batch is done,
the project's residual issues go through the same pool.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime

from jirasync._api.search import search_issues
from jirasync._constants import DEFAULT_CONCURRENCY, SEARCH_PAGE_SIZE
from jirasync.config import ProjectConfig
from jirasync.counters import SyncCounters
from jirasync.gateway import RateLimitedGateway
from jirasync.models.issue import SearchPage
from jirasync.pool import WorkerPool
from jirasync.state.events import ChangeKind, SyncEvent, SyncItem
from jirasync.state.store import SyncState

_logger = logging.getLogger(__name__)

Handler = Callable[[SyncItem], Awaitable[None]]
EventSink = Callable[[SyncEvent], None]


def build_jql(project: ProjectConfig, since: datetime | None = None) -> str:
    """Search query for one project, optionally limited to recent updates."""
    clauses = [f"project = {project.key}"]
    if since is not None:
        clauses.append(f'updated >= "{since.astimezone():%Y/%m/%d %H:%M}"')
    if project.extra_jql:
        clauses.append(f"({project.extra_jql})")
    return " AND ".join(clauses) + " ORDER BY key ASC"


@dataclass(slots=True)
class PartitionResult:
    project_key: str
    counts: dict[ChangeKind, int] = field(default_factory=lambda: {kind: 0 for kind in ChangeKind})
    failures: int = 0

    @property
    def total(self) -> int:
        return sum(self.counts.values())


def _discard(_event: SyncEvent) -> None:
    return None


class PartitionDriver:
    def __init__(
        self,
        gateway: RateLimitedGateway,
        state: SyncState,
        *,
        concurrency_limit: int = DEFAULT_CONCURRENCY,
        page_size: int = SEARCH_PAGE_SIZE,
        on_event: EventSink = _discard,
        counters: SyncCounters | None = None,
    ) -> None:
        self._gateway = gateway
        self._state = state
        self._concurrency_limit = concurrency_limit
        self._page_size = page_size
        self._on_event = on_event
        self._counters = counters if counters is not None else gateway.counters

    async def pages(self, jql: str) -> AsyncIterator[SearchPage]:
        """Yield search pages until the reported total is reached."""
        start_at = 0
        while True:
            page = await search_issues(self._gateway, jql, start_at=start_at, max_results=self._page_size)
            yield page
            start_at = page.start_at + len(page.issues)
            if not page.issues or start_at >= page.total:
                return

    async def run(self, project: ProjectConfig, handler: Handler) -> PartitionResult:
        """Process every issue of *project*; raise the first failure at the end."""
        jql = build_jql(project, self._state.query_window_start())
        _logger.info("Processing project %s: %s", project.key, jql)

        result = PartitionResult(project.key)
        pool = WorkerPool(self._concurrency_limit, name=project.key)
        seen: set[str] = set()

        try:
            async for page in self.pages(jql):
                _logger.debug(
                    "%s: page at %d with %d of %d issues",
                    project.key,
                    page.start_at,
                    len(page.issues),
                    page.total,
                )
                for issue, kind in self._state.classify(page.issues):
                    if issue.key in seen:
                        continue
                    seen.add(issue.key)
                    await pool.submit(issue.key, self._unit(handler, SyncItem(issue, kind, project.key), result))
        except Exception as exc:
            # Pagination failed: let scheduled units finish, report this error.
            await pool.drain()
            if pool.first_error is not None:
                _logger.error(
                    "Project %s: search failed (%s) after an earlier failure: %s",
                    project.key,
                    exc,
                    pool.first_error,
                )
            raise

        await pool.drain()

        for issue in self._state.residual(project.key, seen):
            await pool.submit(
                issue.key,
                self._unit(handler, SyncItem(issue, ChangeKind.RESIDUAL, project.key), result),
            )

        await pool.wait()
        _logger.info(
            "Project %s done, %d known: %s",
            project.key,
            self._state.count_for(project.key),
            ", ".join(f"{kind}={count}" for kind, count in result.counts.items()),
        )
        return result

    def _unit(self, handler: Handler, item: SyncItem, result: PartitionResult) -> Callable[[], Awaitable[None]]:
        async def run() -> None:
            try:
                await handler(item)
            except Exception as exc:
                result.failures += 1
                self._on_event(SyncEvent(item.issue, item.kind, item.project_key, exc))
                raise
            result.counts[item.kind] += 1
            self._counters.processed += 1
            self._on_event(SyncEvent(item.issue, item.kind, item.project_key))

        return run
