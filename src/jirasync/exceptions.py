"""Custom exception hierarchy for jirasync."""

from __future__ import annotations


class JiraSyncError(Exception):
    """Base exception for all jirasync errors."""


class JiraConfigError(JiraSyncError):
    """Invalid or missing configuration."""


class JiraTransportError(JiraSyncError):
    """HTTP-level failure where no usable response was received."""

    def __init__(self, message: str, *, endpoint: str = "") -> None:
        self.endpoint = endpoint
        super().__init__(message)


class JiraNoResponseError(JiraTransportError):
    """No response after exhausting all retry attempts."""

    def __init__(self, message: str, *, endpoint: str = "", attempts: int = 0) -> None:
        self.attempts = attempts
        super().__init__(message, endpoint=endpoint)


class JiraApiError(JiraSyncError):
    """API returned a non-2xx status other than 429.

    The response body is kept as context; these are never retried.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        body: str = "",
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.body = body
        self.endpoint = endpoint
        super().__init__(message)


class CacheError(JiraSyncError):
    """Base for on-disk cache and state failures."""

    def __init__(self, message: str, *, path: str = "") -> None:
        self.path = path
        super().__init__(message)


class CacheCorruptError(CacheError):
    """A cached document could not be decoded.

    Never recovered by re-fetching: a corrupt record means the cache root
    is not trustworthy and needs a look (or an ``ignore_cache`` run).
    """


class CachePersistenceError(CacheError):
    """Writing a cache record failed."""


class StatePersistenceError(CacheError):
    """Writing the known-issue set or the run marker failed."""


class EntityProcessingError(JiraSyncError):
    """A per-issue handler failed.

    The original exception is available as ``__cause__``.
    """

    def __init__(self, message: str, *, key: str) -> None:
        self.key = key
        super().__init__(message)
