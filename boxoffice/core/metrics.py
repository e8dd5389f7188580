"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Booking metrics
booking_attempts = Counter(
    'booking_attempts_total',
    'Total order creation attempts',
    ['status']  # success, conflict, rejected, error
)

booking_latency = Histogram(
    'booking_latency_seconds',
    'Order creation latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

booking_retries = Counter(
    'booking_retry_attempts_total',
    'Order creation retries after a conditional seat write lost a race'
)

# Inventory state machine metrics
seat_transitions = Counter(
    'seat_transitions_total',
    'Seats moved between statuses',
    ['transition']  # reserve, sell, release, lock
)

order_transitions = Counter(
    'order_transitions_total',
    'Order status changes',
    ['status']
)

# Background worker metrics
sweep_runs = Counter(
    'expiry_sweep_runs_total',
    'Expiration sweep cycles',
    ['result']  # ok, error
)

sweep_expired_orders = Counter(
    'expiry_sweep_expired_orders_total',
    'Orders expired by the sweeper'
)

sweep_item_failures = Counter(
    'expiry_sweep_item_failures_total',
    'Orders skipped by the sweeper after an error'
)

lock_runs = Counter(
    'lock_scheduler_runs_total',
    'Lock scheduler cycles',
    ['result']
)

sessions_locked = Counter(
    'sessions_locked_total',
    'Sessions whose unsold seats were locked'
)

last_sweep_timestamp = Gauge(
    'expiry_sweep_last_run_timestamp_seconds',
    'Unix time of the last completed sweep'
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)

redis_connection_errors = Counter(
    'redis_connection_errors_total',
    'Redis connection errors'
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


def record_booking_attempt(status: str):
    """Record order creation attempt. Status: success, conflict, rejected, error"""
    booking_attempts.labels(status=status).inc()


def record_seat_transition(transition: str, count: int):
    if count:
        seat_transitions.labels(transition=transition).inc(count)


def record_order_transition(status: str):
    order_transitions.labels(status=status).inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
