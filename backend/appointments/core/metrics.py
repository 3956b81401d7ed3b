"""
Metrics instrumentation for observability.
Prometheus collectors for the reservation core; the hosting process decides
how to expose them (``metrics_payload`` renders the text format).
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

# Booking metrics
booking_attempts = Counter(
    'booking_attempts_total',
    'Total booking creation attempts',
    ['status']  # success, conflict, not_found, validation, error
)

booking_latency = Histogram(
    'booking_latency_seconds',
    'Booking creation latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

booking_transitions = Counter(
    'booking_status_transitions_total',
    'Applied booking status transitions',
    ['from_status', 'to_status']
)

# Cross-store consistency metrics
booking_compensations = Counter(
    'booking_compensations_total',
    'Compensating rollbacks after a failed slot reservation',
    ['result']  # success, failed
)

side_effect_failures = Counter(
    'booking_side_effect_failures_total',
    'Best-effort side effects that failed and were left for reconciliation',
    ['effect']  # slot_release, customer_counter
)

# Database metrics
db_retries = Counter(
    'booking_update_retries_total',
    'Booking update retries due to version conflicts'
)


def metrics_payload() -> tuple[bytes, str]:
    """Prometheus exposition payload and its content type."""
    return generate_latest(), CONTENT_TYPE_LATEST


# Convenience functions for instrumentation
def record_booking_attempt(status: str):
    """Record booking attempt. Status: success, conflict, not_found, validation, error"""
    booking_attempts.labels(status=status).inc()


def record_transition(from_status: str, to_status: str):
    booking_transitions.labels(from_status=from_status, to_status=to_status).inc()


def record_compensation(succeeded: bool):
    result = "success" if succeeded else "failed"
    booking_compensations.labels(result=result).inc()


def record_side_effect_failure(effect: str):
    """Record a best-effort failure. Effect: slot_release, customer_counter"""
    side_effect_failures.labels(effect=effect).inc()


def record_db_retry():
    db_retries.inc()
