"""Jira user references."""

from __future__ import annotations

from jirasync.models._base import JiraBaseModel


class User(JiraBaseModel):
    """A Jira account as embedded in issues, watcher lists and lookups."""

    account_id: str = ""
    display_name: str = ""
    active: bool = True
