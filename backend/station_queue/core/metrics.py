"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Booking metrics
booking_attempts = Counter(
    'queue_booking_attempts_total',
    'Total seat booking attempts',
    ['mode', 'status']  # mode: destination, vehicle; status: success, rejected, error
)

booking_latency = Histogram(
    'queue_booking_latency_seconds',
    'Seat booking transaction latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

seats_booked = Counter(
    'queue_seats_booked_total',
    'Seats booked across all destinations',
)

seats_released = Counter(
    'queue_seats_released_total',
    'Seats given back by cancellation or emergency removal',
    ['reason']  # cancel, cancel_one, emergency
)

# Queue metrics
queue_operations = Counter(
    'queue_operations_total',
    'Queue mutations',
    ['operation', 'result']  # result: success, rejected, error
)

exit_passes_created = Counter(
    'queue_exit_passes_total',
    'Exit authorizations created',
    ['reason']  # full, partial
)

day_passes_sold = Counter(
    'queue_day_passes_sold_total',
    'Day passes sold',
    ['channel']  # admission, counter
)

# Side-effect dispatch metrics
dispatch_tasks = Counter(
    'dispatch_tasks_total',
    'Background side-effect tasks',
    ['task', 'result']  # result: scheduled, success, failed, dropped
)

dispatch_queue_depth = Gauge(
    'dispatch_queue_depth',
    'Side-effect tasks waiting for the worker'
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

# Convenience functions for instrumentation
def record_booking_attempt(mode: str, status: str):
    """Record booking attempt. Status: success, rejected, error"""
    booking_attempts.labels(mode=mode, status=status).inc()

def record_queue_operation(operation: str, result: str):
    queue_operations.labels(operation=operation, result=result).inc()

def record_dispatch(task: str, result: str):
    dispatch_tasks.labels(task=task, result=result).inc()

def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
