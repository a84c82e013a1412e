"""Base model for Jira API responses.

Every Jira response model inherits from :class:`JiraBaseModel` which
provides:

* ``alias_generator=to_camel`` so camelCase API keys map
  automatically to snake_case fields.
* A ``raw`` dict that captures the original payload, so issues can be
  written back to disk exactly as received.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

# Jira Cloud sends e.g. ``2024-05-10T13:46:45.585-0500``.
_JIRA_FORMATS = (
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%S%z",
)


def parse_jira_timestamp(value: Any) -> datetime | None:
    """Convert a Jira timestamp string to an aware datetime.

    Returns ``None`` for ``None`` and empty strings. Naive values are
    assumed to be UTC.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    text = str(value).strip()
    for fmt in _JIRA_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)


JiraTimestamp = Annotated[datetime | None, BeforeValidator(parse_jira_timestamp)]
"""Annotated type that coerces Jira timestamp strings to aware datetimes."""


class JiraBaseModel(BaseModel):
    """Base for Jira API response models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    raw: dict[str, Any] = Field(default_factory=dict, exclude=True)
    """Original API response dict."""

    @model_validator(mode="before")
    @classmethod
    def _stash_raw(cls, values: Any) -> Any:
        """Keep the payload as received, unless ``raw`` was passed explicitly."""
        if not isinstance(values, dict) or "raw" in values:
            return values
        return {**values, "raw": values}
