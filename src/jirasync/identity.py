"""Account ID to display name lookups shared by all workers."""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Mapping

from jirasync._api.users import get_user
from jirasync.exceptions import JiraSyncError
from jirasync.gateway import RateLimitedGateway

_logger = logging.getLogger(__name__)

_DIGITS = re.compile(r"[0-9]")


def format_person(display_name: str, *, link_names: bool = False) -> str:
    """Strip digits from a display name and optionally wrap it as a link."""
    name = _DIGITS.sub("", display_name)
    if link_names:
        return f"[[{name}]]"
    return name


class UserDirectory:
    """Cache of account IDs to display names.

    Configured users are answered without I/O. Unknown IDs go to the user
    endpoint only when *search_users* is enabled; the first failed lookup
    (usually missing permissions) disables the endpoint for the rest of the
    run and the account ID is returned as is.
    """

    def __init__(
        self,
        gateway: RateLimitedGateway,
        *,
        users: Mapping[str, str] | None = None,
        search_users: bool = False,
        link_names: bool = False,
    ) -> None:
        self._gateway = gateway
        self._link_names = link_names
        self._configured = dict(users or {})
        self._resolved: dict[str, str] = {}
        self._search_users = search_users
        self._lock = asyncio.Lock()

    @property
    def search_enabled(self) -> bool:
        return self._search_users

    async def display_name(self, account_id: str) -> str:
        async with self._lock:
            cached = self._resolved.get(account_id)
            if cached is not None:
                return cached

            configured = self._configured.get(account_id)
            if configured is not None:
                self._resolved[account_id] = configured
                return configured

            if not self._search_users or not account_id:
                return account_id

            _logger.info("Getting user for %s", account_id)
            try:
                user = await get_user(self._gateway, account_id)
            except JiraSyncError as exc:
                _logger.info("Can't look up user %s (%s), disabling user search for this run", account_id, exc)
                self._search_users = False
                return account_id

            name = user.display_name or account_id
            self._resolved[account_id] = name
            return name

    async def person(self, account_id: str) -> str:
        """Display name of *account_id*, formatted for rendering."""
        return format_person(await self.display_name(account_id), link_names=self._link_names)
