"""jirasync - Incremental, rate-limit aware Jira issue synchronisation."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("jirasync")
except PackageNotFoundError:
    __version__ = "0+local"
from jirasync.cache import CachedIssue, CachedWatchers, EntityCache, extract_custom_fields, version_marker
from jirasync.config import CustomFieldMapping, JiraSyncConfig, ProjectConfig, SyncOptions
from jirasync.counters import SyncCounters
from jirasync.engine import SyncEngine, SyncReport
from jirasync.exceptions import (
    CacheCorruptError,
    CacheError,
    CachePersistenceError,
    EntityProcessingError,
    JiraApiError,
    JiraConfigError,
    JiraNoResponseError,
    JiraSyncError,
    JiraTransportError,
    StatePersistenceError,
)
from jirasync.gateway import RateLimitedGateway, RetryPolicy, RetryState
from jirasync.identity import UserDirectory, format_person
from jirasync.models import Issue, SearchPage, User
from jirasync.pool import WorkerPool
from jirasync.state import ChangeKind, IssueHierarchy, SyncEvent, SyncItem, SyncState

__all__ = [
    "__version__",
    "CacheCorruptError",
    "CacheError",
    "CachePersistenceError",
    "CachedIssue",
    "CachedWatchers",
    "ChangeKind",
    "CustomFieldMapping",
    "EntityCache",
    "EntityProcessingError",
    "Issue",
    "IssueHierarchy",
    "JiraApiError",
    "JiraConfigError",
    "JiraNoResponseError",
    "JiraSyncConfig",
    "JiraSyncError",
    "JiraTransportError",
    "ProjectConfig",
    "RateLimitedGateway",
    "RetryPolicy",
    "RetryState",
    "SearchPage",
    "StatePersistenceError",
    "SyncCounters",
    "SyncEngine",
    "SyncEvent",
    "SyncItem",
    "SyncOptions",
    "SyncReport",
    "SyncState",
    "User",
    "UserDirectory",
    "WorkerPool",
    "extract_custom_fields",
    "format_person",
    "version_marker",
]
