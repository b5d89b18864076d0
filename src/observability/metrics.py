"""Prometheus metric definitions for activity tracker self-instrumentation.

All metrics are module-level singletons registered with the default
prometheus_client registry.  Import them wherever instrumentation is needed.
"""

from prometheus_client import Counter, Gauge, Histogram, Info

# ---------------------------------------------------------------------------
# Histogram bucket definitions
# ---------------------------------------------------------------------------

REQUEST_DURATION_BUCKETS = (0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 15.0, 30.0)
CHECK_DURATION_BUCKETS = (0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 15.0, 30.0, 60.0)

# ---------------------------------------------------------------------------
# Request-level metrics
# ---------------------------------------------------------------------------

REQUEST_DURATION = Histogram(
    "activity_tracker_request_duration_seconds",
    "End-to-end request duration in seconds",
    labelnames=["endpoint"],
    buckets=REQUEST_DURATION_BUCKETS,
)

REQUESTS_TOTAL = Counter(
    "activity_tracker_requests_total",
    "Total number of requests",
    labelnames=["endpoint", "status"],
)

# ---------------------------------------------------------------------------
# Activity check metrics
# ---------------------------------------------------------------------------

CHECKS_TOTAL = Counter(
    "activity_tracker_checks_total",
    "Total number of activity checks",
    labelnames=["trigger", "status"],
)

CHECK_DURATION = Histogram(
    "activity_tracker_check_duration_seconds",
    "Time taken to complete one activity check in seconds",
    buckets=CHECK_DURATION_BUCKETS,
)

LAST_CHECK_TIMESTAMP = Gauge(
    "activity_tracker_last_check_timestamp_seconds",
    "Unix time at which the most recent snapshot was captured",
)

RECORDS_TOTAL = Counter(
    "activity_tracker_records_total",
    "Per-identity records produced, by outcome",
    labelnames=["outcome"],
)

SOURCE_QUERIES_TOTAL = Counter(
    "activity_tracker_source_queries_total",
    "Remote activity source queries",
    labelnames=["kind", "status"],
)

# ---------------------------------------------------------------------------
# Health / info metrics
# ---------------------------------------------------------------------------

COMPONENT_HEALTHY = Gauge(
    "activity_tracker_component_healthy",
    "Whether a dependency component is healthy (1=healthy, 0=unhealthy)",
    labelnames=["component"],
)

APP_INFO = Info(
    "activity_tracker",
    "Activity tracker build information",
)
