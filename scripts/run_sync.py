#!/usr/bin/env python3
"""Run one synchronisation and print what happened to each issue.

Usage
-----
Either point at a JSON config file::

    python scripts/run_sync.py --config config.json --defaults default_options.json

or set environment variables::

    export JIRA_BASE_URL="https://example.atlassian.net"
    export JIRA_USERNAME="you@example.com"
    export JIRA_API_TOKEN="..."
    export JIRA_PROJECTS="ABC,DEF"
    python scripts/run_sync.py --recent

Options::

    --project KEY       Only sync this project (repeatable)
    --recent            Only query issues updated since the last run
    --ignore-cache      Refetch everything, ignoring cached issues
    --parallel N        Issues processed concurrently per project
    --json              One JSON object per event
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from jirasync import JiraSyncConfig, JiraSyncError, SyncEngine, SyncEvent, SyncOptions  # noqa: E402


def _format_event(event: SyncEvent, config: JiraSyncConfig, json_mode: bool) -> str:
    summary = event.issue.fields.summary if event.issue.fields is not None else ""
    if json_mode:
        return json.dumps(
            {
                "key": event.issue.key,
                "project": event.project_key,
                "kind": str(event.kind),
                "summary": summary,
                "url": config.browse_url(event.issue.key),
                "error": None if event.error is None else str(event.error),
            }
        )
    status = "ok" if event.error is None else f"FAILED: {event.error}"
    return f"{event.issue.key:<12} {event.kind:<10} {status}  {summary}"


async def main() -> int:
    parser = argparse.ArgumentParser(description="Incrementally sync Jira issues into the local cache")
    parser.add_argument("--config", help="JSON config file (default: JIRA_* environment variables)")
    parser.add_argument("--defaults", help="JSON file with default options")
    parser.add_argument("--project", action="append", dest="projects", help="Only sync this project")
    parser.add_argument("--recent", action="store_true", help="Only query recently updated issues")
    parser.add_argument("--ignore-cache", action="store_true", help="Ignore cached issues")
    parser.add_argument("--parallel", type=int, help="Issues processed concurrently per project")
    parser.add_argument("--json", action="store_true", dest="json_mode", help="Output machine-readable JSON")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    try:
        if args.config:
            config = JiraSyncConfig.from_file(args.config, defaults_path=args.defaults)
        else:
            config = JiraSyncConfig.from_env()
        options = SyncOptions(
            ignore_cache=args.ignore_cache,
            recent_only=args.recent,
            concurrency_limit=args.parallel,
        )
    except JiraSyncError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    async with SyncEngine(config, options=options) as engine:
        try:
            async for event in engine.stream(projects=args.projects):
                print(_format_event(event, config, args.json_mode))
        except JiraSyncError as exc:
            print(f"Sync failed: {exc}", file=sys.stderr)
            return 1
        counters = engine.counters.snapshot()

    print(
        f"API calls: {counters['api_calls']}  cache hits: {counters['cache_hits']}  processed: {counters['processed']}",
        file=sys.stderr,
    )
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
