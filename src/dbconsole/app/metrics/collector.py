"""Prometheus metrics definitions for the lifecycle controller."""

from prometheus_client import Counter, Gauge, Histogram

# =============================================================================
# Histogram Buckets
# =============================================================================

# Control plane API calls (5ms ~ 60s, timeout default 30s)
_BUCKETS_MEDIUM = (
    0.005, 0.01, 0.02, 0.04, 0.09,
    0.18, 0.36, 0.73, 1.5, 3,
    6.2, 12.7, 26, 53,
)  # 14 buckets

# =============================================================================
# Control Plane Client
# =============================================================================

REMOTE_REQUESTS_TOTAL = Counter(
    "dbconsole_remote_requests_total",
    "Control plane requests by operation and result",
    ["operation", "result"],
)

REMOTE_REQUEST_DURATION = Histogram(
    "dbconsole_remote_request_duration_seconds",
    "Control plane request duration",
    ["operation"],
    buckets=_BUCKETS_MEDIUM,
)

# =============================================================================
# Instance Store
# =============================================================================

STORE_INSTANCES = Gauge(
    "dbconsole_store_instances",
    "Instances held in the store",
)

STORE_LOADS_TOTAL = Counter(
    "dbconsole_store_loads_total",
    "Full list loads by result (success, failure, discarded)",
    ["result"],
)

# =============================================================================
# Action Coordinator
# =============================================================================

LIFECYCLE_ACTIONS_TOTAL = Counter(
    "dbconsole_lifecycle_actions_total",
    "Dispatched lifecycle actions by kind and result",
    ["kind", "result"],
)

LIFECYCLE_ACTIONS_REJECTED_TOTAL = Counter(
    "dbconsole_lifecycle_actions_rejected_total",
    "Lifecycle actions rejected before any remote call",
    ["kind", "reason"],
)

PENDING_ACTIONS = Gauge(
    "dbconsole_pending_actions",
    "Lifecycle actions currently in flight",
)

# =============================================================================
# Log Viewer
# =============================================================================

LOG_FETCHES_TOTAL = Counter(
    "dbconsole_log_fetches_total",
    "Log window fetches by trigger and result",
    ["trigger", "result"],
)

# =============================================================================
# Circuit Breaker
# =============================================================================

CIRCUIT_BREAKER_STATE = Gauge(
    "dbconsole_circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=half_open, 2=open)",
    ["circuit"],
)

CIRCUIT_BREAKER_CALLS_TOTAL = Counter(
    "dbconsole_circuit_breaker_calls_total",
    "Calls through circuit breaker by result",
    ["circuit", "result"],
)

CIRCUIT_BREAKER_REJECTIONS_TOTAL = Counter(
    "dbconsole_circuit_breaker_rejections_total",
    "Calls rejected because the circuit was open",
    ["circuit"],
)
