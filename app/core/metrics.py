"""Prometheus metrics, all declared in one place.

HTTP-level series are recorded by MetricsMiddleware; the domain counters
below are incremented at the point of action by the services.  Label
values are closed sets (token kinds, outcome names, route templates) so
series cardinality stays bounded.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# --- HTTP ---

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, route and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

RATE_LIMIT_HITS = Counter(
    "rate_limit_hits_total",
    "Requests rejected by rate limiting (429s)",
    ["key_type"],  # ip
)

# --- Tokens and sessions ---

TOKEN_VERIFICATIONS = Counter(
    "token_verifications_total",
    "Token verifications by expected kind and outcome",
    ["kind", "result"],  # result: ok|expired|invalid|kind_mismatch|revoked
)

TOKENS_ISSUED = Counter(
    "tokens_issued_total",
    "Signed tokens issued by kind",
    ["kind"],
)

TOKEN_BLACKLIST_CHECKS = Counter(
    "token_blacklist_checks_total",
    "Token blacklist lookups by result",
    ["result"],  # revoked|valid
)

AUTHORIZATION_DECISIONS = Counter(
    "authorization_decisions_total",
    "AuthorizationGuard outcomes",
    ["result"],  # allowed|unauthenticated|forbidden|not_found
)

# --- Password recovery ---

RECOVERY_EVENTS = Counter(
    "password_recovery_events_total",
    "Password setup/reset flow transitions",
    ["event"],  # issued|consumed|replayed|rejected|changed
)

NOTIFICATION_FAILURES = Counter(
    "notification_failures_total",
    "Notifications that could not be handed to the delivery queue",
    ["template"],
)

# --- Catalog ---

PROJECTIONS = Counter(
    "catalog_projections_total",
    "Catalog projections served by view type",
    ["view"],  # admin|learner
)

QUEUE_DEPTH = Gauge(
    "task_queue_depth",
    "Number of tasks waiting in a queue",
    ["queue_name"],
)
