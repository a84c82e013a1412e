from __future__ import annotations

import json
from pathlib import Path

import pytest

from jirasync.config import CustomFieldMapping, JiraSyncConfig, SyncOptions, merge_options
from jirasync.exceptions import JiraConfigError


def _write(path: Path, document: dict) -> Path:
    path.write_text(json.dumps(document), encoding="utf-8")
    return path


def test_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("JIRA_BASE_URL", "https://example.atlassian.net/")
    monkeypatch.setenv("JIRA_USERNAME", "me@example.com")
    monkeypatch.setenv("JIRA_API_TOKEN", "secret")
    monkeypatch.setenv("JIRA_PROJECTS", "ABC, DEF,")
    monkeypatch.setenv("JIRA_INCLUDE_WATCHERS", "yes")
    monkeypatch.setenv("JIRA_PARALLEL", "8")

    config = JiraSyncConfig.from_env(cache_root="/tmp/jira")

    assert config.base_url == "https://example.atlassian.net"
    assert config.browse_url("ABC-1") == "https://example.atlassian.net/browse/ABC-1"
    assert [project.key for project in config.projects] == ["ABC", "DEF"]
    assert all(project.include_watchers for project in config.projects)
    assert config.parallel == 8
    assert config.cache_root == "/tmp/jira"
    assert not config.search_users


def test_from_env_requires_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("JIRA_BASE_URL", "JIRA_USERNAME", "JIRA_API_TOKEN"):
        monkeypatch.delenv(name, raising=False)

    with pytest.raises(JiraConfigError, match="base_url"):
        JiraSyncConfig.from_env()


def test_from_file_cascades_options(tmp_path: Path) -> None:
    defaults = _write(
        tmp_path / "defaults.json",
        {
            "options": {
                "include_watchers": True,
                "custom_fields": [{"from": "customfield_1", "to": "team"}],
                "paths": {"cache_root": "/var/cache/jira"},
            }
        },
    )
    config_path = _write(
        tmp_path / "config.json",
        {
            "connection": {
                "base_url": "https://example.atlassian.net",
                "username": "me@example.com",
                "api_token": "secret",
                "display_name": "Me",
                "parallel": 2,
            },
            "options": {"link_names": True},
            "projects": [
                {"key": "ABC"},
                {
                    "key": "DEF",
                    "options": {
                        "include_watchers": False,
                        "extra_jql": "status != Done",
                        "custom_fields": [{"from": "customfield_2.value", "to": "due", "as": "date_sortable"}],
                    },
                },
                {"key": "OLD", "options": {"enabled": False}},
            ],
            "users": [{"account_id": "a1", "display_name": "Ada"}],
        },
    )

    config = JiraSyncConfig.from_file(config_path, defaults_path=defaults)

    abc, def_, old = config.projects
    assert abc.include_watchers
    assert abc.custom_fields == (CustomFieldMapping("customfield_1", "team"),)
    assert not def_.include_watchers
    assert def_.extra_jql == "status != Done"
    assert def_.custom_fields == (
        CustomFieldMapping("customfield_1", "team"),
        CustomFieldMapping("customfield_2.value", "due", kind="date_sortable"),
    )
    assert not old.enabled
    assert config.users == {"a1": "Ada"}
    assert config.parallel == 2
    assert config.cache_root == "/var/cache/jira"
    assert config.link_names
    assert config.display_name == "Me"


def test_from_file_errors(tmp_path: Path) -> None:
    with pytest.raises(JiraConfigError, match="Cannot read"):
        JiraSyncConfig.from_file(tmp_path / "missing.json")

    (tmp_path / "broken.json").write_text("{", encoding="utf-8")
    with pytest.raises(JiraConfigError, match="not valid JSON"):
        JiraSyncConfig.from_file(tmp_path / "broken.json")

    with pytest.raises(JiraConfigError, match="connection"):
        JiraSyncConfig.from_file(_write(tmp_path / "empty.json", {}))

    bad_field = {
        "connection": {"base_url": "https://x", "username": "u", "api_token": "t"},
        "projects": [{"key": "ABC", "options": {"custom_fields": [{"from": "customfield_1"}]}}],
    }
    with pytest.raises(JiraConfigError, match="custom fields"):
        JiraSyncConfig.from_file(_write(tmp_path / "bad.json", bad_field))


def test_merge_options() -> None:
    base = {"a": 1, "nested": {"x": 1, "y": 2}, "items": [1]}
    merged = merge_options(base, {"a": None, "nested": {"y": 3}, "items": [2], "b": "new"})

    assert merged == {"a": 1, "nested": {"x": 1, "y": 3}, "items": [1, 2], "b": "new"}
    assert base["items"] == [1]


def test_sync_options_validation() -> None:
    with pytest.raises(JiraConfigError):
        SyncOptions(ignore_cache=True, recent_only=True)
    with pytest.raises(JiraConfigError):
        SyncOptions(concurrency_limit=0)
    assert SyncOptions(concurrency_limit=1).concurrency_limit == 1


def test_config_validation() -> None:
    with pytest.raises(JiraConfigError):
        JiraSyncConfig(base_url="", username="u", api_token="t")
    with pytest.raises(JiraConfigError):
        JiraSyncConfig(base_url="https://x", username="u", api_token="t", parallel=0)
