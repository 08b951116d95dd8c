"""
Prometheus Metrics for the layer synchronization engine.

DEPENDENCY:
    pip install prometheus-client

METRIC TYPES:
    - Gauge: Value goes up/down (e.g., reconciliations in flight)
    - Counter: Value only goes up (e.g., relationship sync outcomes)
    - Histogram: Distribution (for percentiles like P95, e.g., latency)

Scrape with `get_metrics_content()` from whatever transport hosts the engine.
"""

from prometheus_client import (
    Gauge,
    Histogram,
    Counter,
    generate_latest,
    CONTENT_TYPE_LATEST,
)


# =============================================================================
# METRICS DEFINITIONS
# =============================================================================
ACTIVE_RECONCILIATIONS = Gauge(
    "layersync_active_reconciliations",
    "Number of desired-state reconciliations currently running",
)

CASCADE_OPERATIONS_TOTAL = Counter(
    "layersync_cascade_operations_total",
    "Cascade entry point calls by operation and outcome",
    ["operation", "outcome"],
)

RELATIONSHIP_SYNC_TOTAL = Counter(
    "layersync_relationship_sync_total",
    "Per-layer relationship synchronization outcomes",
    ["layer", "outcome"],
)

RECONCILER_DIFF_TOTAL = Counter(
    "layersync_reconciler_diff_total",
    "Diff entries produced by the desired-state reconciler",
    ["action", "status"],
)

SYNC_LATENCY = Histogram(
    "layersync_sync_latency_seconds",
    "Latency of synchronization entry points in seconds",
    ["operation"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1, 2, 5, 10, 30, 60],
)

LLM_TOKENS_TOTAL = Histogram(
    "layersync_llm_tokens_total",
    "Total number of LLM tokens used",
    ["type", "model"],
    buckets=[100, 500, 1000, 2000, 5000, 10000, 20000, 50000],
)

ERRORS_TOTAL = Counter(
    "layersync_errors_total",
    "Total number of errors by type",
    ["error_type"],
)


# =============================================================================
# LABEL CONSTANTS (avoid hardcoding strings throughout codebase)
# =============================================================================
class MetricsErrorType:
    """Error type labels for layersync_errors_total metric."""

    LLM_FAILED = "llm_failed"
    SCHEMA_INVALID = "schema_invalid"
    CASCADE_FAILED = "cascade_failed"
    ROLLBACK_INCOMPLETE = "rollback_incomplete"


class SyncOutcome:
    """Outcome labels for layersync_relationship_sync_total metric."""

    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    REMOVED = "removed"
    SKIPPED_MISSING_OBJECT = "skipped_missing_object"
    SKIPPED_OBJECT_LEVEL = "skipped_object_level"
    SKIPPED_UNRESOLVED_ATTRIBUTE = "skipped_unresolved_attribute"


# =============================================================================
# RECORDING FUNCTIONS
# =============================================================================
def increment_active_reconciliations():
    """Call when a reconciliation STARTS."""
    ACTIVE_RECONCILIATIONS.inc()


def decrement_active_reconciliations():
    """Call when a reconciliation ENDS (in finally block)."""
    ACTIVE_RECONCILIATIONS.dec()


def record_cascade(operation: str, outcome: str):
    CASCADE_OPERATIONS_TOTAL.labels(operation=operation, outcome=outcome).inc()


def record_relationship_sync(layer: str, outcome: str):
    RELATIONSHIP_SYNC_TOTAL.labels(layer=layer, outcome=outcome).inc()


def record_diff_entry(action: str, status: str):
    RECONCILER_DIFF_TOTAL.labels(action=action, status=status).inc()


def observe_sync_latency(operation: str, duration: float):
    SYNC_LATENCY.labels(operation=operation).observe(duration)


def observe_llm_tokens(type: str, model: str, token_count: int):
    """Call after each LLM response. Integration point: services/llm_client.py"""
    LLM_TOKENS_TOTAL.labels(type=type, model=model).observe(token_count)


def increment_error(error_type: str):
    """Call on errors. Use MetricsErrorType constants."""
    ERRORS_TOTAL.labels(error_type=error_type).inc()


# =============================================================================
# HELPER FOR A /metrics ENDPOINT
# =============================================================================
def get_metrics_content():
    """
    Generate Prometheus metrics output.

    Returns:
        Tuple of (content_bytes, content_type_string)
    """
    return generate_latest(), CONTENT_TYPE_LATEST


# =============================================================================
# EXPORTS
# =============================================================================
__all__ = [
    "MetricsErrorType",
    "SyncOutcome",
    "increment_active_reconciliations",
    "decrement_active_reconciliations",
    "record_cascade",
    "record_relationship_sync",
    "record_diff_entry",
    "observe_sync_latency",
    "observe_llm_tokens",
    "increment_error",
    "get_metrics_content",
]
