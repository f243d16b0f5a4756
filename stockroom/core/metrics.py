"""Application metrics using the Prometheus client library.

Single inventory of everything the service measures.  Other modules
import specific metrics and increment/observe them at the point of
action.  Scraped from GET /metrics.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
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

# ---------------------------------------------------------------------------
# Authorization metrics
# ---------------------------------------------------------------------------

ORG_CONTEXT_RESOLUTIONS = Counter(
    "org_context_resolutions_total",
    "Organization context resolutions by outcome",
    ["outcome"],  # granted|unauthenticated|context_required|denied
)

ROLE_GATE_DECISIONS = Counter(
    "role_gate_decisions_total",
    "Role gate checks by outcome",
    ["outcome"],  # allow|deny
)

SESSION_REVOCATION_CHECKS = Counter(
    "session_revocation_checks_total",
    "Session revocation lookups by result",
    ["result"],  # "revoked" or "valid"
)

# ---------------------------------------------------------------------------
# Organization lifecycle
# ---------------------------------------------------------------------------

INVITATION_EVENTS = Counter(
    "invitation_events_total",
    "Invitation lifecycle events",
    ["event"],  # created|reused|accepted|cancelled|expired
)
