"""Rate-limited gateway in front of the Jira REST API.

Every remote call goes through :meth:`RateLimitedGateway.execute`, which

* waits on the shared cooldown lock while another caller sleeps off a 429,
* retries calls that got no response at all (bounded),
* sleeps until the server-provided reset time on 429 and retries (unbounded),
* turns any other non-2xx status into a :class:`JiraApiError`.

The cooldown gate is best effort: a call may start just before a 429 is
observed by another worker. That call then gets its own 429 and joins the
cooldown.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Any

from jirasync._constants import (
    COOLDOWN_BUFFER_SECONDS,
    DEFAULT_COOLDOWN_SECONDS,
    MAX_NO_RESPONSE_ATTEMPTS,
    RATE_LIMIT_RESET_HEADER,
    RETRY_AFTER_HEADER,
)
from jirasync._transport import ApiRequest, RawResponse, Transport
from jirasync.counters import SyncCounters
from jirasync.exceptions import JiraApiError, JiraNoResponseError, JiraTransportError

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class RetryState(StrEnum):
    ATTEMPT = "attempt"
    THROTTLED_RETRY = "throttled_retry"
    FATAL = "fatal"
    DONE = "done"


def _header(headers: Mapping[str, str], name: str) -> str | None:
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, candidate in headers.items():
        if key.lower() == lowered:
            return candidate
    return None


def parse_reset_time(headers: Mapping[str, str], now: datetime) -> datetime | None:
    """Return when the server allows calls again, or ``None`` if unknown.

    ``X-RateLimit-Reset`` carries an ISO-8601 timestamp
    (e.g. ``2024-05-10T13:46Z``); ``Retry-After`` carries seconds.
    """
    reset = _header(headers, RATE_LIMIT_RESET_HEADER)
    if reset:
        try:
            parsed = datetime.fromisoformat(reset.strip().replace("Z", "+00:00"))
        except ValueError:
            parsed = None
        if parsed is not None:
            return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)

    retry_after = _header(headers, RETRY_AFTER_HEADER)
    if retry_after:
        try:
            return now + timedelta(seconds=float(retry_after))
        except ValueError:
            return None
    return None


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Transitions and backoff for a single gateway call.

    ``status`` is ``None`` when the attempt produced no response.
    """

    max_no_response_attempts: int = MAX_NO_RESPONSE_ATTEMPTS
    default_cooldown: float = DEFAULT_COOLDOWN_SECONDS
    buffer: float = COOLDOWN_BUFFER_SECONDS

    def next_state(self, status: int | None, no_response_attempts: int) -> RetryState:
        if status is None:
            if no_response_attempts < self.max_no_response_attempts:
                return RetryState.ATTEMPT
            return RetryState.FATAL
        if 200 <= status < 300:
            return RetryState.DONE
        if status == 429:
            return RetryState.THROTTLED_RETRY
        return RetryState.FATAL

    def backoff(self, headers: Mapping[str, str], now: datetime) -> float:
        """Seconds to sleep before the throttled call may be retried."""
        reset = parse_reset_time(headers, now)
        if reset is None:
            reset = now + timedelta(seconds=self.default_cooldown)
            _logger.warning(
                "Failed to parse rate limit reset time, defaulting to %s",
                reset.isoformat(timespec="seconds"),
            )
        return max(0.0, (reset - now).total_seconds()) + self.buffer


class RateLimitedGateway:
    """Executes REST calls for one Jira instance.

    All workers talking to the same instance share one gateway and so one
    cooldown lock.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        counters: SyncCounters | None = None,
        policy: RetryPolicy | None = None,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._transport = transport
        self._counters = counters if counters is not None else SyncCounters()
        self._policy = policy or RetryPolicy()
        self._clock = clock
        self._sleep = sleep
        self._cooldown = asyncio.Lock()

    @property
    def counters(self) -> SyncCounters:
        return self._counters

    async def execute(self, request: ApiRequest) -> Any:
        """Run *request* to completion and return the decoded JSON body."""
        no_response_attempts = 0
        last_error: JiraTransportError | None = None

        while True:
            # Gate only: wait while someone sleeps through a cooldown.
            async with self._cooldown:
                pass

            self._counters.api_calls += 1
            response: RawResponse | None
            try:
                response = await self._transport.send(request)
            except JiraTransportError as exc:
                response = None
                last_error = exc

            status: int | None = None
            if response is not None:
                status = response.status
                if 200 <= status < 300 and not response.body.strip():
                    status = None
            if status is None:
                no_response_attempts += 1

            state = self._policy.next_state(status, no_response_attempts)

            if state is RetryState.DONE:
                assert response is not None  # noqa: S101
                return self._decode(request, response)

            if state is RetryState.THROTTLED_RETRY:
                assert response is not None  # noqa: S101
                await self._cool_down(request, response.headers)
                continue

            if state is RetryState.ATTEMPT:
                _logger.info(
                    "No response from %s (attempt %d/%d), retrying",
                    request.path,
                    no_response_attempts,
                    self._policy.max_no_response_attempts,
                )
                continue

            if status is None:
                raise JiraNoResponseError(
                    f"No response from {request.path} after {no_response_attempts} attempts",
                    endpoint=request.path,
                    attempts=no_response_attempts,
                ) from last_error

            assert response is not None  # noqa: S101
            raise JiraApiError(
                f"{request.method} {request.path} failed with HTTP {response.status}: {response.body[:200]}",
                status_code=response.status,
                body=response.body,
                endpoint=request.path,
            )

    async def _cool_down(self, request: ApiRequest, headers: Mapping[str, str]) -> None:
        self._counters.throttled += 1
        async with self._cooldown:
            # Computed under the lock: a previous sleeper may already have
            # waited out most of this window.
            delay = self._policy.backoff(headers, self._clock())
            _logger.warning("API calls exhausted on %s, sleeping %.1fs", request.path, delay)
            await self._sleep(delay)
            _logger.warning("Waking up, API should be usable again, retrying %s", request.path)

    @staticmethod
    def _decode(request: ApiRequest, response: RawResponse) -> Any:
        try:
            return json.loads(response.body)
        except json.JSONDecodeError as exc:
            raise JiraApiError(
                f"Invalid JSON from {request.path}: {response.body[:200]}",
                status_code=response.status,
                body=response.body,
                endpoint=request.path,
            ) from exc
