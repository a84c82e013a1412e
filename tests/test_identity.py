from __future__ import annotations

import asyncio

import pytest

from fake_jira import FakeJira
from jirasync.gateway import RateLimitedGateway
from jirasync.identity import UserDirectory, format_person


def test_format_person() -> None:
    assert format_person("Ada Lovelace2") == "Ada Lovelace"
    assert format_person("Ada", link_names=True) == "[[Ada]]"


@pytest.mark.asyncio
async def test_configured_users_need_no_calls() -> None:
    jira = FakeJira()
    directory = UserDirectory(RateLimitedGateway(jira), users={"a1": "Ada"}, search_users=True)

    assert await directory.display_name("a1") == "Ada"
    assert jira.requests == []


@pytest.mark.asyncio
async def test_lookup_is_cached() -> None:
    jira = FakeJira()
    jira.users["a2"] = {"accountId": "a2", "displayName": "Alan Turing"}
    directory = UserDirectory(RateLimitedGateway(jira), search_users=True, link_names=True)

    names = await asyncio.gather(*(directory.display_name("a2") for _ in range(3)))

    assert names == ["Alan Turing"] * 3
    assert jira.calls("/rest/api/3/user") == 1
    assert await directory.person("a2") == "[[Alan Turing]]"


@pytest.mark.asyncio
async def test_failed_lookup_disables_search() -> None:
    jira = FakeJira()
    jira.users["a4"] = {"accountId": "a4", "displayName": "Grace"}
    directory = UserDirectory(RateLimitedGateway(jira), search_users=True)

    assert await directory.display_name("a3") == "a3"
    assert not directory.search_enabled
    assert await directory.display_name("a4") == "a4"
    assert jira.calls("/rest/api/3/user") == 1


@pytest.mark.asyncio
async def test_search_disabled_returns_account_id() -> None:
    jira = FakeJira()
    directory = UserDirectory(RateLimitedGateway(jira))

    assert await directory.display_name("a5") == "a5"
    assert jira.requests == []
