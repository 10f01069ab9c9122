"""
Prometheus metrics for scaler monitoring.

Provides instrumentation for:
- Token refreshes by auth mode and reason
- Query requests, retries and latency
- Result validation failures
- Last observed metric value per workspace
"""

from prometheus_client import Counter, Gauge, Histogram

# Token lifecycle
token_refreshes_total = Counter(
    "scaler_token_refreshes_total",
    "Total number of access tokens fetched from the identity provider",
    ["auth_mode", "reason"],  # reason: missing, expired, rejected
)

token_failures_total = Counter(
    "scaler_token_failures_total",
    "Total number of failed token acquisitions",
    ["auth_mode"],
)

# Query execution
query_requests_total = Counter(
    "scaler_query_requests_total",
    "Total number of Log Analytics query requests by HTTP status",
    ["status"],  # status: HTTP code, or "0" for transport errors
)

query_retries_total = Counter(
    "scaler_query_retries_total",
    "Total number of queries retried after an expired-token response",
)

query_duration_seconds = Histogram(
    "scaler_query_duration_seconds",
    "Time spent executing a query including token acquisition and retry",
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

# Result validation
validation_failures_total = Counter(
    "scaler_validation_failures_total",
    "Total number of query results rejected by validation",
    ["reason"],
)

# Observed signal
metric_value = Gauge(
    "scaler_metric_value",
    "Last metric value read from Log Analytics",
    ["workspace"],
)
