"""Run counters exposed for observability."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class SyncCounters:
    """Counters shared by the gateway, the cache and the driver.

    All increments happen on the event loop thread, so plain integers are
    enough.
    """

    api_calls: int = 0
    throttled: int = 0
    cache_hits: int = 0
    processed: int = 0

    def snapshot(self) -> dict[str, int]:
        return {
            "api_calls": self.api_calls,
            "throttled": self.throttled,
            "cache_hits": self.cache_hits,
            "processed": self.processed,
        }
