from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from fake_jira import FakeJira, response
from jirasync._transport import ApiRequest
from jirasync.counters import SyncCounters
from jirasync.exceptions import JiraApiError, JiraNoResponseError, JiraTransportError
from jirasync.gateway import RateLimitedGateway, RetryPolicy, RetryState, parse_reset_time

NOW = datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC)
REQUEST = ApiRequest(method="GET", path="/rest/api/3/issue/ABC-1")


class _SleepRecorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _gateway(transport: FakeJira, sleep: _SleepRecorder | None = None) -> RateLimitedGateway:
    return RateLimitedGateway(
        transport,
        counters=SyncCounters(),
        clock=lambda: NOW,
        sleep=sleep or _SleepRecorder(),
    )


@pytest.mark.asyncio
async def test_success_returns_decoded_body_and_counts_call() -> None:
    jira = FakeJira()
    jira.scripted = [response(200, {"key": "ABC-1"})]
    gateway = _gateway(jira)

    assert await gateway.execute(REQUEST) == {"key": "ABC-1"}
    assert gateway.counters.api_calls == 1


@pytest.mark.asyncio
async def test_throttled_call_sleeps_until_reset_then_retries() -> None:
    reset = (NOW + timedelta(seconds=5)).isoformat()
    jira = FakeJira()
    jira.scripted = [
        response(429, "slow down", {"X-RateLimit-Reset": reset}),
        response(200, {"key": "ABC-1"}),
    ]
    sleep = _SleepRecorder()
    gateway = _gateway(jira, sleep)

    assert await gateway.execute(REQUEST) == {"key": "ABC-1"}
    assert len(sleep.delays) == 1
    assert sleep.delays[0] >= 5
    assert gateway.counters.api_calls == 2
    assert gateway.counters.throttled == 1
    assert len(jira.requests) == 2


@pytest.mark.asyncio
async def test_throttled_call_without_reset_header_uses_default_cooldown() -> None:
    jira = FakeJira()
    jira.scripted = [
        response(429, "slow down", {"X-RateLimit-Reset": "soon"}),
        response(200, {}),
    ]
    sleep = _SleepRecorder()
    gateway = _gateway(jira, sleep)

    await gateway.execute(REQUEST)

    policy = RetryPolicy()
    assert sleep.delays == [policy.default_cooldown + policy.buffer]


@pytest.mark.asyncio
async def test_throttling_can_repeat() -> None:
    jira = FakeJira()
    jira.scripted = [
        response(429, "", {"Retry-After": "10"}),
        response(429, "", {"Retry-After": "20"}),
        response(200, {"ok": True}),
    ]
    sleep = _SleepRecorder()
    gateway = _gateway(jira, sleep)

    assert await gateway.execute(REQUEST) == {"ok": True}
    assert sleep.delays == [11.0, 21.0]
    assert gateway.counters.api_calls == 3


@pytest.mark.asyncio
async def test_no_response_is_retried_then_fatal() -> None:
    jira = FakeJira()
    jira.scripted = [JiraTransportError("connection reset") for _ in range(3)]
    gateway = _gateway(jira)

    with pytest.raises(JiraNoResponseError) as exc_info:
        await gateway.execute(REQUEST)

    assert exc_info.value.attempts == 3
    assert isinstance(exc_info.value.__cause__, JiraTransportError)
    assert gateway.counters.api_calls == 3


@pytest.mark.asyncio
async def test_no_response_recovers_within_bound() -> None:
    jira = FakeJira()
    jira.scripted = [
        JiraTransportError("timeout"),
        response(200, ""),
        response(200, {"key": "ABC-1"}),
    ]
    gateway = _gateway(jira)

    assert await gateway.execute(REQUEST) == {"key": "ABC-1"}
    assert gateway.counters.api_calls == 3


@pytest.mark.asyncio
async def test_other_status_is_fatal_and_not_retried() -> None:
    jira = FakeJira()
    jira.scripted = [response(500, "internal boom"), response(200, {})]
    gateway = _gateway(jira)

    with pytest.raises(JiraApiError) as exc_info:
        await gateway.execute(REQUEST)

    assert exc_info.value.status_code == 500
    assert exc_info.value.body == "internal boom"
    assert exc_info.value.endpoint == REQUEST.path
    assert len(jira.requests) == 1


@pytest.mark.asyncio
async def test_cooldown_holds_back_other_callers() -> None:
    jira = FakeJira()
    jira.scripted = [response(429, "", {"Retry-After": "60"})]
    jira.issues = {}
    sleeping = asyncio.Event()
    release = asyncio.Event()

    async def blocking_sleep(_delay: float) -> None:
        sleeping.set()
        await release.wait()

    gateway = RateLimitedGateway(jira, clock=lambda: NOW, sleep=blocking_sleep)
    other = ApiRequest(method="GET", path="/rest/api/3/search", params={"jql": "project = ABC"})

    first = asyncio.create_task(gateway.execute(REQUEST))
    await sleeping.wait()
    second = asyncio.create_task(gateway.execute(other))
    for _ in range(5):
        await asyncio.sleep(0)

    assert len(jira.requests) == 1

    release.set()
    with pytest.raises(JiraApiError):
        await first  # ABC-1 does not exist in the fake
    assert (await second)["total"] == 0
    assert len(jira.requests) == 3


@pytest.mark.parametrize(
    ("status", "attempts", "expected"),
    [
        (200, 0, RetryState.DONE),
        (204, 0, RetryState.DONE),
        (429, 0, RetryState.THROTTLED_RETRY),
        (404, 0, RetryState.FATAL),
        (503, 0, RetryState.FATAL),
        (None, 1, RetryState.ATTEMPT),
        (None, 2, RetryState.ATTEMPT),
        (None, 3, RetryState.FATAL),
    ],
)
def test_retry_policy_transitions(status: int | None, attempts: int, expected: RetryState) -> None:
    assert RetryPolicy().next_state(status, attempts) is expected


def test_parse_reset_time_formats() -> None:
    assert parse_reset_time({"X-RateLimit-Reset": "2026-01-01T12:05Z"}, NOW) == NOW + timedelta(minutes=5)
    assert parse_reset_time({"x-ratelimit-reset": "2026-01-01T12:00:30+00:00"}, NOW) == NOW + timedelta(seconds=30)
    assert parse_reset_time({"Retry-After": "7"}, NOW) == NOW + timedelta(seconds=7)
    assert parse_reset_time({}, NOW) is None
    assert parse_reset_time({"X-RateLimit-Reset": "garbage"}, NOW) is None
