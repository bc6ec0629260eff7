"""
Prometheus metrics for Effort Budget.

Operation counts and latencies for the facade, plus per-node counters
from the tree reconciler so that "how much did an update really touch"
is visible in dashboards.
"""

import time
from collections.abc import Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from prometheus_client import Counter, Gauge, Histogram, start_http_server

# ============================================================================
# Operations
# ============================================================================

operation_duration_seconds = Histogram(
    "effort_budget_operation_duration_seconds",
    "Duration of facade operations in seconds",
    ["operation"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

operations_total = Counter(
    "effort_budget_operations_total",
    "Total number of facade operations",
    ["operation", "status"],  # status: success, failure
)

# ============================================================================
# Reconciliation
# ============================================================================

reconciled_nodes_total = Counter(
    "effort_budget_reconciled_nodes_total",
    "Stories and activities touched by tree reconciliation",
    ["kind", "action"],  # kind: story, activity; action: created, updated, deleted
)

transaction_rollbacks_total = Counter(
    "effort_budget_transaction_rollbacks_total",
    "Store transactions rolled back because of an error",
)

# ============================================================================
# Estimates
# ============================================================================

estimated_days_histogram = Histogram(
    "effort_budget_estimated_days",
    "Estimated duration in days of budgets written",
    buckets=(1, 5, 10, 20, 40, 60, 120, 240),
)

budgets_total = Gauge(
    "effort_budget_budgets_total",
    "Number of budgets in the store at last listing",
)

# ============================================================================
# Helper Functions
# ============================================================================

P = ParamSpec("P")
R = TypeVar("R")


def track_operation(operation: str) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Decorator recording duration and success/failure of an operation.

    Args:
        operation: Label value (e.g. "update_budget")
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            start = time.perf_counter()
            status = "success"
            try:
                return func(*args, **kwargs)
            except Exception:
                status = "failure"
                raise
            finally:
                operation_duration_seconds.labels(operation=operation).observe(
                    time.perf_counter() - start
                )
                operations_total.labels(operation=operation, status=status).inc()

        return wrapper

    return decorator


def record_reconciliation(kind: str, created: int, updated: int, deleted: int) -> None:
    """Add one reconciliation's node counts for a tree level"""
    for action, count in (("created", created), ("updated", updated), ("deleted", deleted)):
        if count:
            reconciled_nodes_total.labels(kind=kind, action=action).inc(count)


def start_metrics_server(port: int = 9090) -> None:
    """Start the Prometheus metrics HTTP server."""
    start_http_server(port)
