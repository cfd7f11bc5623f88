"""Prometheus metric inventory.

Every metric the service exposes is defined here; the modules that own the
behavior import the metric and increment or observe it at the point of
action.  Counters only go up, so tests assert on deltas.
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
# Lesson navigation
# ---------------------------------------------------------------------------

NAVIGATION_OUTCOMES = Counter(
    "lesson_navigation_total",
    "Navigation engine transitions by outcome",
    # entered|resumed|advanced|terminal|invalid_decision|not_found|
    # invalid_reference|access_denied
    ["outcome"],
)

EVENTS_LOGGED = Counter(
    "interaction_events_logged_total",
    "Interaction events durably appended to the event log",
    ["event_type"],
)

EVENT_LOG_FAILURES = Counter(
    "interaction_event_log_failures_total",
    "Interaction events lost because the event store was unavailable",
    ["event_type"],
)

# ---------------------------------------------------------------------------
# Live feed and analytics
# ---------------------------------------------------------------------------

LIVE_PUBLISH_FAILURES = Counter(
    "live_publish_failures_total",
    "Events stored but not pushed to live subscribers",
)

LIVE_SUBSCRIBERS = Gauge(
    "live_subscribers",
    "Open live event subscriptions",
)

ANALYTICS_RECOMPUTE = Histogram(
    "analytics_recompute_seconds",
    "Time to load and aggregate a lesson's full event log",
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0],
)
