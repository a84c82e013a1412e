"""Internal constants shared across the library."""

USER_AGENT = "jirasync"
API_PREFIX = "/rest/api/3"

#: Issues requested per search page.
SEARCH_PAGE_SIZE = 100

#: Default number of issues processed concurrently per project.
DEFAULT_CONCURRENCY = 4

# ------------------------------------------------------------------
# Throttling
# ------------------------------------------------------------------

RATE_LIMIT_RESET_HEADER = "X-RateLimit-Reset"
RETRY_AFTER_HEADER = "Retry-After"

#: Cooldown used when a 429 carries no parseable reset time.
DEFAULT_COOLDOWN_SECONDS = 180.0

#: Added on top of the server-provided reset time.
COOLDOWN_BUFFER_SECONDS = 1.0

#: Attempts (including the first) when the server does not answer at all.
MAX_NO_RESPONSE_ATTEMPTS = 3

# ------------------------------------------------------------------
# Persisted state layout
# ------------------------------------------------------------------

KNOWN_ISSUES_FILE = "knownIssues.json"
LAST_RUN_FILE = "lastRun.json"
WATCHERS_SUFFIX = "_watchers"

#: How far before the last run the "recent" query window starts.
RECENT_OVERLAP_SECONDS = 30
