"""Helpers for safe debug logging.

Requests carry an API token in the basic-auth header, and search pages can
hold hundreds of issues. This module redacts credentials and collapses
bulky lists before anything reaches a DEBUG log line.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

_SENSITIVE_VALUE_KEYS: frozenset[str] = frozenset(
    {
        "api_token",
        "apitoken",
        "authorization",
        "cookie",
        "emailaddress",
        "password",
        "set-cookie",
        "token",
    }
)

# Lists under these keys are summarised instead of dumped item by item.
_BULKY_LIST_KEYS: frozenset[str] = frozenset({"issues", "comments", "attachment", "watchers", "worklogs"})


def redact_for_log(
    value: Any,
    *,
    max_string: int = 512,
    max_items: int = 5,
    _depth: int = 0,
) -> Any:
    """Return a redacted, size-bounded copy of *value* for debug logs."""
    if _depth > 20:
        return "<max-depth>"

    if value is None or isinstance(value, (int, float, bool)):
        return value

    if isinstance(value, str):
        if len(value) > max_string:
            return f"{value[:max_string]}…<truncated>"
        return value

    if isinstance(value, bytes):
        return f"<bytes:{len(value)}b>"

    if isinstance(value, Mapping):
        redacted: dict[str, Any] = {}
        for k, v in value.items():
            key = str(k)
            lowered = key.lower()
            if lowered in _SENSITIVE_VALUE_KEYS:
                redacted[key] = "<redacted>"
            elif lowered in _BULKY_LIST_KEYS and isinstance(v, list) and len(v) > max_items:
                redacted[key] = f"<list:{len(v)} items>"
            else:
                redacted[key] = redact_for_log(v, max_string=max_string, max_items=max_items, _depth=_depth + 1)
        return redacted

    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return [redact_for_log(v, max_string=max_string, max_items=max_items, _depth=_depth + 1) for v in value]

    return repr(value)
