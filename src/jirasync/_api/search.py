"""Issue search endpoint: /rest/api/3/search."""

from __future__ import annotations

from jirasync._constants import API_PREFIX, SEARCH_PAGE_SIZE
from jirasync._transport import ApiRequest
from jirasync.exceptions import JiraApiError
from jirasync.gateway import RateLimitedGateway
from jirasync.models.issue import SearchPage


async def search_issues(
    gateway: RateLimitedGateway,
    jql: str,
    *,
    start_at: int = 0,
    max_results: int = SEARCH_PAGE_SIZE,
) -> SearchPage:
    """Fetch one page of issues matching *jql*."""
    endpoint = f"{API_PREFIX}/search"
    decoded = await gateway.execute(
        ApiRequest(
            method="GET",
            path=endpoint,
            params={
                "jql": jql,
                "startAt": str(start_at),
                "maxResults": str(max_results),
            },
        )
    )
    if not isinstance(decoded, dict):
        raise JiraApiError(
            f"{endpoint} returned {type(decoded).__name__}, expected an object",
            status_code=200,
            endpoint=endpoint,
        )
    return SearchPage.model_validate(decoded)
