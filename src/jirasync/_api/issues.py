"""Single-issue endpoints.

Endpoints:
  - /rest/api/3/issue/{key}
  - /rest/api/3/issue/{id}/watchers
"""

from __future__ import annotations

from typing import Any

from jirasync._constants import API_PREFIX
from jirasync._transport import ApiRequest
from jirasync.exceptions import JiraApiError
from jirasync.gateway import RateLimitedGateway
from jirasync.models.user import User


async def get_issue(gateway: RateLimitedGateway, key: str) -> dict[str, Any]:
    """Fetch the full issue and return the payload as received."""
    endpoint = f"{API_PREFIX}/issue/{key}"
    decoded = await gateway.execute(ApiRequest(method="GET", path=endpoint))
    if not isinstance(decoded, dict) or "key" not in decoded:
        raise JiraApiError(
            f"{endpoint} did not return an issue",
            status_code=200,
            endpoint=endpoint,
        )
    return decoded


async def get_watchers(gateway: RateLimitedGateway, issue_id: str) -> list[User]:
    """Fetch the accounts watching an issue."""
    endpoint = f"{API_PREFIX}/issue/{issue_id}/watchers"
    decoded = await gateway.execute(ApiRequest(method="GET", path=endpoint))
    items = decoded.get("watchers") if isinstance(decoded, dict) else None
    if not isinstance(items, list):
        return []
    return [User.model_validate(item) for item in items if isinstance(item, dict)]
