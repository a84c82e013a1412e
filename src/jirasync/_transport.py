"""HTTP transport for the Jira REST API."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Protocol

import aiohttp

from jirasync._constants import USER_AGENT
from jirasync._redact import redact_for_log
from jirasync.config import JiraSyncConfig
from jirasync.exceptions import JiraTransportError

_logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ApiRequest:
    """A single REST call, relative to the instance base URL."""

    method: str
    path: str
    params: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class RawResponse:
    status: int
    headers: Mapping[str, str]
    body: str


class Transport(Protocol):
    """Structural transport interface used by the gateway.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`HttpTransport`) concrete.
    Implementations raise :class:`JiraTransportError` when no response was
    received at all.
    """

    async def send(self, request: ApiRequest) -> RawResponse:
        ...


class HttpTransport:
    """aiohttp transport with basic auth (account email + API token)."""

    def __init__(self, config: JiraSyncConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session
        self._auth = aiohttp.BasicAuth(config.username, config.api_token)
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)

    async def send(self, request: ApiRequest) -> RawResponse:
        url = f"{self._config.base_url}{request.path}"
        headers = {
            "accept": "application/json",
            "user-agent": USER_AGENT,
        }

        _logger.debug("%s %s params=%s", request.method, url, redact_for_log(dict(request.params)))

        try:
            async with self._http.request(
                request.method,
                url,
                params=dict(request.params),
                headers=headers,
                auth=self._auth,
                timeout=self._timeout,
            ) as resp:
                body = await resp.text()
                _logger.debug(
                    "%s %s -> HTTP %s headers=%s",
                    request.method,
                    url,
                    resp.status,
                    redact_for_log(dict(resp.headers)),
                )
                return RawResponse(status=resp.status, headers=resp.headers.copy(), body=body)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise JiraTransportError(
                f"Request to {request.path} failed: {exc!r}",
                endpoint=request.path,
            ) from exc
