"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Reservation metrics
reservation_attempts = Counter(
    'reservation_attempts_total',
    'Total seat reservation attempts',
    ['status']  # success, conflict, not_found, invalid, error
)

reservation_latency = Histogram(
    'reservation_latency_seconds',
    'Reservation request latency',
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0]
)

claim_retries = Counter(
    'seat_claim_retry_attempts_total',
    'Seat claim retries due to show version conflicts'
)

# Hold / payment reconciliation
holds_released = Counter(
    'holds_released_total',
    'Unpaid holds released by the expiry worker',
    ['reason']  # expired, gateway_failure
)

payment_outcomes = Counter(
    'payment_completions_total',
    'Payment completion signals by outcome',
    ['outcome']  # paid, already_paid, late
)

# Notifications
notifications_sent = Counter(
    'notifications_total',
    'Notification sends',
    ['kind', 'result']  # confirmation/new_show/reminder, sent/failed
)

# Durable task queue
task_runs = Counter(
    'scheduled_task_runs_total',
    'Scheduled task executions',
    ['name', 'result']  # done, retry, failed
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)


def metrics_endpoint() -> Response:
    """
    Prometheus metrics endpoint.

    Usage:
        @app.get("/metrics")
        def metrics():
            return metrics_endpoint()
    """
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_reservation_attempt(status: str):
    """Record reservation attempt. Status: success, conflict, not_found, invalid, error"""
    reservation_attempts.labels(status=status).inc()


def record_hold_released(reason: str):
    holds_released.labels(reason=reason).inc()


def record_payment_outcome(outcome: str):
    payment_outcomes.labels(outcome=outcome).inc()


def record_notification(kind: str, sent: int, failed: int = 0):
    if sent:
        notifications_sent.labels(kind=kind, result="sent").inc(sent)
    if failed:
        notifications_sent.labels(kind=kind, result="failed").inc(failed)


def record_task_run(name: str, result: str):
    task_runs.labels(name=name, result=result).inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
