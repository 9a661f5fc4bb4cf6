"""Prometheus metrics for the Managed Resource Operator."""

from prometheus_client import Counter, Gauge, Histogram

# Reconciliation metrics
reconcile_total = Counter(
    "managed_operator_reconcile_total",
    "Total number of reconciliations",
    ["controller", "result"],
)

reconcile_duration_seconds = Histogram(
    "managed_operator_reconcile_duration_seconds",
    "Duration of reconciliations in seconds",
    ["controller"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
)

error_total = Counter(
    "managed_operator_error_total",
    "Total number of reconcile errors",
    ["controller", "error_type"],
)

# External system operation metrics
external_operations_total = Counter(
    "managed_operator_external_operations_total",
    "Total number of external resource operations",
    ["operation", "result"],
)

# Work queue metrics
queue_depth = Gauge(
    "managed_operator_queue_depth",
    "Number of requests waiting in a controller work queue",
    ["controller"],
)

requeue_total = Counter(
    "managed_operator_requeue_total",
    "Total number of requeued requests",
    ["controller", "kind"],
)

# Store API call metrics
api_call_total = Counter(
    "managed_operator_api_call_total",
    "Total number of Kubernetes API calls",
    ["operation", "result"],
)

api_call_duration_seconds = Histogram(
    "managed_operator_api_call_duration_seconds",
    "Duration of Kubernetes API calls in seconds",
    ["operation"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0],
)
