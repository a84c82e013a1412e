"""Bounded-concurrency worker pool.

Mirrors an error group with a concurrency limit: ``submit`` blocks the
producer until a slot is free, failures are collected rather than
propagated immediately, and :meth:`WorkerPool.wait` reports the first one.
Units already scheduled are never cancelled when a sibling fails.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from jirasync.exceptions import EntityProcessingError

_logger = logging.getLogger(__name__)


class WorkerPool:
    def __init__(self, limit: int, *, name: str = "pool") -> None:
        if limit < 1:
            raise ValueError(f"limit must be at least 1, got {limit}")
        self._limit = limit
        self._name = name
        self._slots = asyncio.Semaphore(limit)
        self._tasks: set[asyncio.Task[None]] = set()
        self._first_error: EntityProcessingError | None = None
        self._failures = 0

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def first_error(self) -> EntityProcessingError | None:
        return self._first_error

    @property
    def failures(self) -> int:
        return self._failures

    async def submit(self, key: str, fn: Callable[[], Awaitable[None]]) -> None:
        """Schedule ``fn()`` for the issue *key* once a slot is free."""
        await self._slots.acquire()
        task = asyncio.create_task(self._run(key, fn), name=f"{self._name}:{key}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, key: str, fn: Callable[[], Awaitable[None]]) -> None:
        try:
            await fn()
        except Exception as exc:
            self._failures += 1
            wrapped = EntityProcessingError(f"Failed to process {key}: {exc}", key=key)
            wrapped.__cause__ = exc
            if self._first_error is None:
                self._first_error = wrapped
                _logger.warning("%s: %s", self._name, wrapped)
            else:
                _logger.debug("%s: discarding later failure for %s: %r", self._name, key, exc)
        finally:
            self._slots.release()

    async def drain(self) -> None:
        """Wait until every scheduled unit has finished."""
        while self._tasks:
            await asyncio.gather(*self._tasks)

    async def wait(self) -> None:
        """Drain, then raise the first failure if there was one."""
        await self.drain()
        if self._first_error is not None:
            raise self._first_error
