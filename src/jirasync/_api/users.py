"""User lookup endpoint: /rest/api/3/user."""

from __future__ import annotations

from jirasync._constants import API_PREFIX
from jirasync._transport import ApiRequest
from jirasync.exceptions import JiraApiError
from jirasync.gateway import RateLimitedGateway
from jirasync.models.user import User


async def get_user(gateway: RateLimitedGateway, account_id: str) -> User:
    endpoint = f"{API_PREFIX}/user"
    decoded = await gateway.execute(ApiRequest(method="GET", path=endpoint, params={"accountId": account_id}))
    if not isinstance(decoded, dict):
        raise JiraApiError(
            f"{endpoint} returned {type(decoded).__name__}, expected an object",
            status_code=200,
            endpoint=endpoint,
        )
    return User.model_validate(decoded)
