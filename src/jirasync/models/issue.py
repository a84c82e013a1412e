"""Issue and search page models."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import Field

from jirasync.models._base import JiraBaseModel, JiraTimestamp
from jirasync.models.user import User


class ProjectRef(JiraBaseModel):
    key: str
    id: str = ""
    name: str = ""


class IssueRef(JiraBaseModel):
    """Reference to another issue (e.g. the parent)."""

    key: str
    id: str = ""


class StatusRef(JiraBaseModel):
    name: str = ""


class IssueTypeRef(JiraBaseModel):
    name: str = ""
    description: str = ""


class Watches(JiraBaseModel):
    watch_count: int = 0
    is_watching: bool = False


class IssueFields(JiraBaseModel):
    """The subset of issue fields the engine relies on.

    Everything else (descriptions, comments, custom fields, ...) stays
    available through ``raw``.
    """

    summary: str = ""
    updated: JiraTimestamp = None
    created: JiraTimestamp = None
    duedate: date | None = None
    project: ProjectRef | None = None
    parent: IssueRef | None = None
    status: StatusRef | None = None
    issuetype: IssueTypeRef | None = None
    assignee: User | None = None
    reporter: User | None = None
    watches: Watches | None = None


class Issue(JiraBaseModel):
    """A Jira issue, either sparse (from search) or full (from get).

    ``fields.updated`` is the version marker: it only moves forward and
    keys the cache records.
    """

    key: str
    id: str = ""
    fields: IssueFields | None = None

    @property
    def version(self) -> datetime | None:
        if self.fields is None:
            return None
        return self.fields.updated

    @property
    def project_key(self) -> str:
        if self.fields is not None and self.fields.project is not None:
            return self.fields.project.key
        return self.key.rsplit("-", 1)[0]

    @property
    def parent_key(self) -> str | None:
        if self.fields is None or self.fields.parent is None:
            return None
        return self.fields.parent.key

    @property
    def watch_count(self) -> int:
        if self.fields is None or self.fields.watches is None:
            return 0
        return self.fields.watches.watch_count


class SearchPage(JiraBaseModel):
    """One page of ``/search`` results."""

    start_at: int = 0
    max_results: int = 0
    total: int = 0
    issues: list[Issue] = Field(default_factory=list)
