"""High-level async synchronisation engine."""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses
import functools
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import aiohttp

from jirasync._transport import HttpTransport, Transport
from jirasync.cache import CustomFieldExtractor, EntityCache, extract_custom_fields
from jirasync.config import JiraSyncConfig, ProjectConfig, SyncOptions
from jirasync.counters import SyncCounters
from jirasync.driver import Handler, PartitionDriver, PartitionResult
from jirasync.exceptions import JiraConfigError, JiraSyncError
from jirasync.gateway import RateLimitedGateway
from jirasync.identity import UserDirectory
from jirasync.state.events import SyncEvent, SyncItem
from jirasync.state.hierarchy import IssueHierarchy, build_hierarchy
from jirasync.state.store import SyncState

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


async def _ignore(_item: SyncItem) -> None:
    return None


@dataclass(slots=True)
class SyncReport:
    """What a run did. ``error`` is the first fatal error, if any."""

    started_at: datetime
    partitions: list[PartitionResult] = field(default_factory=list)
    events: list[SyncEvent] = field(default_factory=list)
    counters: dict[str, int] = field(default_factory=dict)
    error: Exception | None = None
    persisted: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def failed_events(self) -> list[SyncEvent]:
        return [event for event in self.events if event.error is not None]


class SyncEngine:
    """Incremental Jira synchronisation for one Jira instance.

    Usage::

        async with SyncEngine(config, options=SyncOptions(recent_only=True)) as engine:
            report = await engine.run(render_issue)

    The handler receives a :class:`SyncItem` whose ``detail`` already holds
    the full issue (from the cache when possible).
    """

    def __init__(
        self,
        config: JiraSyncConfig,
        *,
        options: SyncOptions | None = None,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
        extractor: CustomFieldExtractor = extract_custom_fields,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._config = config
        self._options = options or SyncOptions()
        self._external_session = session is not None
        self._http_session = session
        self._injected_transport = transport
        self._transport: Transport | None = None
        self._extractor = extractor
        self._clock = clock
        self._sleep = sleep
        self._counters = SyncCounters()
        self._gateway: RateLimitedGateway | None = None
        self._state: SyncState | None = None
        self._cache: EntityCache | None = None
        self._users: UserDirectory | None = None
        self._hierarchy: IssueHierarchy | None = None
        self._last_report: SyncReport | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> SyncEngine:
        if self._injected_transport is not None:
            self._transport = self._injected_transport
        else:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = HttpTransport(self._config, self._http_session)

        self._gateway = RateLimitedGateway(
            self._transport,
            counters=self._counters,
            clock=self._clock,
            sleep=self._sleep,
        )
        loop = asyncio.get_running_loop()
        self._state = await loop.run_in_executor(
            None,
            functools.partial(
                SyncState.load,
                self._config.cache_root,
                ignore_cache=self._options.ignore_cache,
                recent_only=self._options.recent_only,
            ),
        )
        self._cache = EntityCache(
            self._config.cache_root,
            self._gateway,
            ignore_cache=self._options.ignore_cache,
            extractor=self._extractor,
            counters=self._counters,
        )
        self._users = UserDirectory(
            self._gateway,
            users=self._config.users,
            search_users=self._config.search_users,
            link_names=self._config.link_names,
        )
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        self._transport = None
        self._gateway = None

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def config(self) -> JiraSyncConfig:
        return self._config

    @property
    def options(self) -> SyncOptions:
        return self._options

    @property
    def counters(self) -> SyncCounters:
        return self._counters

    @property
    def state(self) -> SyncState:
        if self._state is None:
            raise JiraSyncError("Engine not initialized. Use 'async with SyncEngine(...) as engine:'")
        return self._state

    @property
    def cache(self) -> EntityCache:
        if self._cache is None:
            raise JiraSyncError("Engine not initialized. Use 'async with SyncEngine(...) as engine:'")
        return self._cache

    @property
    def users(self) -> UserDirectory:
        if self._users is None:
            raise JiraSyncError("Engine not initialized. Use 'async with SyncEngine(...) as engine:'")
        return self._users

    @property
    def last_report(self) -> SyncReport | None:
        return self._last_report

    def _require_gateway(self) -> RateLimitedGateway:
        if self._gateway is None:
            raise JiraSyncError("Engine not initialized. Use 'async with SyncEngine(...) as engine:'")
        return self._gateway

    def hierarchy(self) -> IssueHierarchy:
        """Parent/child index over the known issues, as of the last run."""
        if self._hierarchy is None:
            self._hierarchy = build_hierarchy(self.state.known)
        return self._hierarchy

    def project(self, key: str) -> ProjectConfig:
        for project in self._config.projects:
            if project.key == key:
                return project
        raise JiraConfigError(f"Unknown project {key}")

    def _select(self, projects: Iterable[str] | None) -> list[ProjectConfig]:
        if projects is None:
            return [project for project in self._config.projects if project.enabled]
        return [self.project(key) for key in projects]

    # ------------------------------------------------------------------
    # Running
    # ------------------------------------------------------------------

    def _materializing(self, handler: Handler) -> Handler:
        """Wrap *handler* so it sees the full issue and, if enabled, watchers."""

        async def run(item: SyncItem) -> None:
            project = self.project(item.project_key)
            detail = await self.cache.get(item.issue, custom_fields=project.custom_fields)
            watchers: tuple[str, ...] = ()
            if project.include_watchers and item.issue.watch_count > 0:
                cached = await self.cache.get_watchers(detail.issue)
                watchers = tuple(sorted(cached.names))
            await handler(dataclasses.replace(item, detail=detail, watchers=watchers))

        return run

    async def _run(
        self,
        handler: Handler,
        projects: Sequence[str] | None,
        on_event: Callable[[SyncEvent], None],
    ) -> SyncReport:
        gateway = self._require_gateway()
        state = self.state
        started_at = self._clock()
        selected = self._select(projects)
        report = SyncReport(started_at=started_at)
        self._last_report = report
        self._hierarchy = None

        def record(event: SyncEvent) -> None:
            report.events.append(event)
            on_event(event)

        driver = PartitionDriver(
            gateway,
            state,
            concurrency_limit=self._options.concurrency_limit or self._config.parallel,
            on_event=record,
            counters=self._counters,
        )
        wrapped = self._materializing(handler)

        # Partitions run independently: one failing does not stop the others.
        outcomes = await asyncio.gather(
            *(driver.run(project, wrapped) for project in selected),
            return_exceptions=True,
        )
        for project, outcome in zip(selected, outcomes, strict=True):
            if isinstance(outcome, PartitionResult):
                report.partitions.append(outcome)
            elif isinstance(outcome, Exception):
                _logger.error("Failed processing project %s: %s", project.key, outcome)
                if report.error is None:
                    report.error = outcome
            else:
                raise outcome

        self._hierarchy = build_hierarchy(state.known)
        report.counters = self._counters.snapshot()
        _logger.info(
            "Jira API calls: %d, throttled: %d, cache hits: %d, processed: %d",
            self._counters.api_calls,
            self._counters.throttled,
            self._counters.cache_hits,
            self._counters.processed,
        )

        if report.error is not None:
            _logger.warning("Run failed, keeping the previous known issues and run marker")
            raise report.error

        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, state.save, started_at)
        report.persisted = True
        return report

    async def run(self, handler: Handler, projects: Sequence[str] | None = None) -> SyncReport:
        """Synchronise *projects* (default: all enabled) and call *handler* per issue.

        Raises the first fatal error after every partition finished; in
        that case nothing is persisted and :attr:`last_report` still
        describes the run.
        """
        return await self._run(handler, projects, lambda _event: None)

    async def stream(
        self,
        handler: Handler | None = None,
        projects: Sequence[str] | None = None,
    ) -> AsyncIterator[SyncEvent]:
        """Run a sync and yield one :class:`SyncEvent` per handled issue.

        A fatal run error is raised from the iterator after the last event.
        """
        queue: asyncio.Queue[SyncEvent | None] = asyncio.Queue()
        task = asyncio.create_task(self._run(handler or _ignore, projects, queue.put_nowait))
        task.add_done_callback(lambda _task: queue.put_nowait(None))
        try:
            while True:
                event = await queue.get()
                if event is None:
                    break
                yield event
            await task
        finally:
            if not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
