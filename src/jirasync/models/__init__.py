"""Pydantic models for Jira API responses."""

from jirasync.models._base import JiraBaseModel, JiraTimestamp, parse_jira_timestamp
from jirasync.models.issue import (
    Issue,
    IssueFields,
    IssueRef,
    IssueTypeRef,
    ProjectRef,
    SearchPage,
    StatusRef,
    Watches,
)
from jirasync.models.user import User

__all__ = [
    "Issue",
    "IssueFields",
    "IssueRef",
    "IssueTypeRef",
    "JiraBaseModel",
    "JiraTimestamp",
    "ProjectRef",
    "SearchPage",
    "StatusRef",
    "User",
    "Watches",
    "parse_jira_timestamp",
]
