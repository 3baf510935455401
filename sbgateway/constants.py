"""Shared constants for sbgateway.

Fixed endpoint paths, interchange MIME types, upstream API limits and the
numeric defaults used across modules. Import from here rather than repeating
literals in handlers.
"""

# ─── Endpoint Paths ───────────────────────────────────────────────────────────

STATUS_PATH: str = "/status"
FIND_THREAT_PATH: str = "/v4/threatMatches:find"
GET_THREAT_LISTS_PATH: str = "/v4/threatLists"
HEALTH_CHECK_PATH: str = "/_ah/health"
PUBLIC_PREFIX: str = "/public"

# Every method is routed to the endpoint handlers so that a wrong method is
# answered with a 400 "invalid method" instead of the framework's 405.
ALL_METHODS: list[str] = ["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "HEAD"]

# ─── Interchange Formats ──────────────────────────────────────────────────────

MIME_JSON: str = "application/json"
MIME_PROTO: str = "application/x-protobuf"

# ─── Request Limits ───────────────────────────────────────────────────────────

# Requests with a larger body get HTTP 413 before any handler runs.
MAX_REQUEST_BODY_BYTES: int = 1_048_576  # 1 MB

# ─── Upstream Safe Browsing API ───────────────────────────────────────────────

DEFAULT_UPSTREAM_BASE_URL: str = "https://safebrowsing.googleapis.com"

# The Lookup API accepts at most 500 threat entries per threatMatches:find call.
MAX_LOOKUP_ENTRIES: int = 500

DEFAULT_CLIENT_ID: str = "sbgateway"
DEFAULT_CLIENT_VERSION: str = "1.0.0"

# Shared httpx pool for upstream calls.
POOL_MAX_CONNECTIONS: int = 20
POOL_MAX_KEEPALIVE: int = 20
POOL_KEEPALIVE_EXPIRY: float = 30.0  # seconds
UPSTREAM_TIMEOUT_S: float = 10.0

# Upper bound on a single classifier lookup as seen by the lookup endpoint.
DEFAULT_LOOKUP_TIMEOUT_S: float = 30.0

# ─── Classifier Cache ─────────────────────────────────────────────────────────

# How long a URL with no matches is served from cache.
DEFAULT_NEGATIVE_CACHE_TTL_S: float = 300.0

# Entries beyond this are evicted oldest-first.
DEFAULT_CACHE_MAX_ENTRIES: int = 10_000

# ─── Server ───────────────────────────────────────────────────────────────────

DEFAULT_SERVER_ADDR: str = "localhost:8080"
