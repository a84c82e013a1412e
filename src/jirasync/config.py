"""Configuration for jirasync."""

from __future__ import annotations

import copy
import dataclasses
import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from jirasync._constants import DEFAULT_CONCURRENCY
from jirasync.exceptions import JiraConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class CustomFieldMapping:
    """Copy ``fields.<source>`` of an issue into a custom field named *target*.

    ``kind`` is an optional rendering hint (e.g. ``"date_sortable"``) passed
    through untouched to renderers.
    """

    source: str
    target: str
    kind: str | None = None


@dataclasses.dataclass(frozen=True)
class ProjectConfig:
    """A single Jira project synchronised as one partition."""

    key: str
    enabled: bool = True
    include_watchers: bool = False
    extra_jql: str = ""
    custom_fields: tuple[CustomFieldMapping, ...] = ()


@dataclasses.dataclass(frozen=True)
class SyncOptions:
    """Per-run switches.

    Parameters
    ----------
    ignore_cache : bool
        Bypass cached issue records and the persisted known-issue set.
    recent_only : bool
        Only query issues updated since the previous successful run.
        Requires the cache, so it cannot be combined with ``ignore_cache``.
    concurrency_limit : int or None
        Issues processed concurrently per project. ``None`` uses the
        connection's ``parallel`` setting.
    """

    ignore_cache: bool = False
    recent_only: bool = False
    concurrency_limit: int | None = None

    def __post_init__(self) -> None:
        if self.ignore_cache and self.recent_only:
            raise JiraConfigError("Cannot look for recent issues only while ignoring the cache")
        if self.concurrency_limit is not None and self.concurrency_limit < 1:
            raise JiraConfigError(f"concurrency_limit must be at least 1, got {self.concurrency_limit}")


@dataclasses.dataclass(frozen=True)
class JiraSyncConfig:
    """Connection and project configuration for one Jira instance.

    Parameters
    ----------
    base_url : str
        Jira Cloud site, e.g. ``https://example.atlassian.net``.
    username : str
        Account email used for basic auth.
    api_token : str
        API token used for basic auth.
    cache_root : str
        Directory holding cached issues and the persisted sync state.
    display_name : str
        The account's display name; renderers use it to spot "my" issues.
    parallel : int
        Default number of issues processed concurrently per project.
    request_timeout : float
        Total timeout in seconds for a single HTTP request.
    projects : tuple[ProjectConfig, ...]
        Projects to synchronise.
    users : Mapping[str, str]
        Known ``account_id -> display name`` pairs, consulted before the
        user endpoint.
    search_users : bool
        Whether unknown account IDs may be looked up through the API.
    link_names : bool
        Whether person names are rendered as ``[[links]]``.
    """

    base_url: str
    username: str
    api_token: str
    cache_root: str = "./cache"
    display_name: str = ""
    parallel: int = DEFAULT_CONCURRENCY
    request_timeout: float = 30.0
    projects: tuple[ProjectConfig, ...] = ()
    users: Mapping[str, str] = dataclasses.field(default_factory=dict)
    search_users: bool = False
    link_names: bool = False

    def __post_init__(self) -> None:
        if not self.base_url:
            raise JiraConfigError("base_url is required")
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))
        if self.parallel < 1:
            raise JiraConfigError(f"parallel must be at least 1, got {self.parallel}")

    def browse_url(self, key: str) -> str:
        return f"{self.base_url}/browse/{key}"

    @classmethod
    def from_env(cls, **overrides: Any) -> JiraSyncConfig:
        """Create configuration from environment variables.

        Reads ``JIRA_BASE_URL``, ``JIRA_USERNAME``, ``JIRA_API_TOKEN`` and
        the optional ``JIRA_*`` variables below. ``JIRA_PROJECTS`` is a
        comma-separated list of project keys. Explicit keyword arguments
        override environment values.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "JIRA_BASE_URL": "base_url",
            "JIRA_USERNAME": "username",
            "JIRA_API_TOKEN": "api_token",
            "JIRA_CACHE_ROOT": "cache_root",
            "JIRA_DISPLAY_NAME": "display_name",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        parallel_env = env.get("JIRA_PARALLEL")
        if parallel_env is not None and "parallel" not in overrides:
            config_kwargs["parallel"] = int(parallel_env)

        timeout_env = env.get("JIRA_REQUEST_TIMEOUT")
        if timeout_env is not None and "request_timeout" not in overrides:
            config_kwargs["request_timeout"] = float(timeout_env)

        projects_env = env.get("JIRA_PROJECTS")
        if projects_env is not None and "projects" not in overrides:
            include_watchers = _env_bool(env.get("JIRA_INCLUDE_WATCHERS"), False)
            config_kwargs["projects"] = tuple(
                ProjectConfig(key=key.strip(), include_watchers=include_watchers)
                for key in projects_env.split(",")
                if key.strip()
            )

        if "search_users" not in overrides:
            config_kwargs["search_users"] = _env_bool(env.get("JIRA_SEARCH_USERS"), False)

        config_kwargs.update(overrides)

        missing = [name for name in ("base_url", "username", "api_token") if not config_kwargs.get(name)]
        if missing:
            raise JiraConfigError(f"Missing configuration: {', '.join(missing)}")

        return cls(**config_kwargs)

    @classmethod
    def from_file(cls, path: str | Path, *, defaults_path: str | Path | None = None) -> JiraSyncConfig:
        """Load configuration from a JSON file.

        The document has ``connection``, ``options``, ``projects`` and
        ``users`` sections. Options cascade: the optional defaults file, then
        the instance ``options``, then each project's ``options``. Lists
        (``custom_fields``) are appended; everything else is overridden.
        """
        document = _read_json(Path(path))
        options: dict[str, Any] = {}
        if defaults_path is not None:
            defaults = _read_json(Path(defaults_path))
            options = merge_options(options, defaults.get("options", {}))
        options = merge_options(options, document.get("options", {}))

        connection = document.get("connection")
        if not isinstance(connection, dict):
            raise JiraConfigError(f"{path}: missing 'connection' section")

        projects: list[ProjectConfig] = []
        for raw_project in document.get("projects", []):
            if not isinstance(raw_project, dict) or not raw_project.get("key"):
                raise JiraConfigError(f"{path}: every project needs a 'key'")
            project_options = merge_options(options, raw_project.get("options", {}))
            projects.append(_project_from_options(str(raw_project["key"]), project_options))

        users = {
            str(user["account_id"]): str(user["display_name"])
            for user in document.get("users", [])
            if isinstance(user, dict) and "account_id" in user and "display_name" in user
        }

        kwargs: dict[str, Any] = {
            "base_url": connection.get("base_url", ""),
            "username": connection.get("username", ""),
            "api_token": connection.get("api_token", ""),
            "display_name": connection.get("display_name", ""),
            "projects": tuple(projects),
            "users": users,
            "search_users": bool(options.get("search_users", False)),
            "link_names": bool(options.get("link_names", False)),
        }
        if connection.get("parallel") is not None:
            kwargs["parallel"] = int(connection["parallel"])
        cache_root = options.get("paths", {}).get("cache_root")
        if cache_root:
            kwargs["cache_root"] = cache_root
        return cls(**kwargs)


def merge_options(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Merge *override* into a copy of *base*.

    Nested mappings merge recursively, lists are appended and ``None``
    never overwrites an existing value.
    """
    merged = copy.deepcopy(dict(base))
    for key, value in override.items():
        if value is None:
            continue
        existing = merged.get(key)
        if isinstance(existing, dict) and isinstance(value, Mapping):
            merged[key] = merge_options(existing, value)
        elif isinstance(existing, list) and isinstance(value, list):
            merged[key] = existing + copy.deepcopy(value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _project_from_options(key: str, options: Mapping[str, Any]) -> ProjectConfig:
    mappings: list[CustomFieldMapping] = []
    for item in options.get("custom_fields", []):
        if not isinstance(item, dict) or not item.get("from") or not item.get("to"):
            raise JiraConfigError(f"Project {key}: custom fields need 'from' and 'to'")
        mappings.append(CustomFieldMapping(source=item["from"], target=item["to"], kind=item.get("as")))
    return ProjectConfig(
        key=key,
        enabled=bool(options.get("enabled", True)),
        include_watchers=bool(options.get("include_watchers", False)),
        extra_jql=str(options.get("extra_jql", "")),
        custom_fields=tuple(mappings),
    )


def _read_json(path: Path) -> dict[str, Any]:
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise JiraConfigError(f"Cannot read config file {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise JiraConfigError(f"Config file {path} is not valid JSON: {exc}") from exc
    if not isinstance(document, dict):
        raise JiraConfigError(f"Config file {path} must contain a JSON object")
    return document
