"""Tests for Pydantic model parsing with JiraBaseModel."""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta, timezone

import pytest

from fake_jira import make_issue
from jirasync.models import Issue, SearchPage, User
from jirasync.models._base import parse_jira_timestamp

# ------------------------------------------------------------------
# Timestamps
# ------------------------------------------------------------------


class TestJiraTimestamp:
    def test_offset_without_colon(self) -> None:
        parsed = parse_jira_timestamp("2024-05-10T13:46:45.585-0500")
        assert parsed == datetime(2024, 5, 10, 13, 46, 45, 585000, tzinfo=timezone(timedelta(hours=-5)))

    def test_without_fraction(self) -> None:
        assert parse_jira_timestamp("2024-05-10T13:46:45+0000") == datetime(2024, 5, 10, 13, 46, 45, tzinfo=UTC)

    def test_iso_fallback(self) -> None:
        assert parse_jira_timestamp("2024-05-10T13:46:45Z") == datetime(2024, 5, 10, 13, 46, 45, tzinfo=UTC)

    def test_naive_is_utc(self) -> None:
        assert parse_jira_timestamp("2024-05-10T13:46:45").tzinfo == UTC

    @pytest.mark.parametrize("value", [None, ""])
    def test_empty(self, value: str | None) -> None:
        assert parse_jira_timestamp(value) is None

    def test_garbage(self) -> None:
        with pytest.raises(ValueError):
            parse_jira_timestamp("last tuesday")


# ------------------------------------------------------------------
# Issue
# ------------------------------------------------------------------


class TestIssue:
    def test_full_payload(self) -> None:
        payload = make_issue("ABC-12", 3, parent="ABC-1", watch_count=4)
        payload["fields"]["duedate"] = "2024-06-01"
        payload["fields"]["assignee"] = {"accountId": "a1", "displayName": "Ada", "active": True}

        issue = Issue.model_validate(payload)

        assert issue.key == "ABC-12"
        assert issue.id == "10012"
        assert issue.project_key == "ABC"
        assert issue.parent_key == "ABC-1"
        assert issue.watch_count == 4
        assert issue.version == datetime(2024, 5, 10, 13, 49, 45, 585000, tzinfo=UTC)
        assert issue.fields.duedate == date(2024, 6, 1)
        assert issue.fields.assignee.display_name == "Ada"
        assert issue.fields.issuetype.name == "Task"

    def test_raw_is_kept_and_not_dumped(self) -> None:
        payload = make_issue("ABC-1", extra_fields={"customfield_10010": {"value": "x"}})
        issue = Issue.model_validate(payload)

        assert issue.raw == payload
        assert "raw" not in issue.model_dump()

    def test_sparse_issue(self) -> None:
        issue = Issue.model_validate({"key": "DEF-3"})

        assert issue.version is None
        assert issue.project_key == "DEF"
        assert issue.parent_key is None
        assert issue.watch_count == 0

    def test_frozen(self) -> None:
        issue = Issue.model_validate(make_issue("ABC-1"))
        with pytest.raises(Exception):
            issue.key = "ABC-2"  # type: ignore[misc]


class TestSearchPage:
    def test_camel_case_keys(self) -> None:
        page = SearchPage.model_validate(
            {"startAt": 100, "maxResults": 50, "total": 120, "issues": [make_issue("ABC-1")]}
        )
        assert page.start_at == 100
        assert page.max_results == 50
        assert page.total == 120
        assert [issue.key for issue in page.issues] == ["ABC-1"]

    def test_defaults(self) -> None:
        page = SearchPage.model_validate({})
        assert page.total == 0
        assert page.issues == []


def test_user_ignores_unknown_fields() -> None:
    user = User.model_validate({"accountId": "a1", "displayName": "Ada", "timeZone": "Europe/London"})
    assert user.account_id == "a1"
    assert user.display_name == "Ada"
    assert user.active
