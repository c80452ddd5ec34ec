"""
Prometheus metrics for ReviewPilot observability.

Provides standardized metrics for monitoring review automation,
gateway calls, and resilience state.

Usage:
    from reviewpilot.monitoring.metrics import track_gateway_operation

    with track_gateway_operation("live", "post_reply"):
        await gateway.post_reply(review_id, text)

    # Or manually
    REVIEWS_HANDLED.labels(outcome="responded").inc()
"""

import time
from contextlib import contextmanager
from typing import Generator

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    generate_latest,
    CONTENT_TYPE_LATEST,
)
from starlette.applications import Starlette
from starlette.responses import Response
from starlette.routing import Route


# =============================================================================
# Metric Definitions
# =============================================================================

# Automation outcomes
REVIEWS_HANDLED = Counter(
    "reviewpilot_reviews_handled_total",
    "Reviews that reached a terminal automation state",
    ["outcome"],
)

URGENT_REVIEWS = Counter(
    "reviewpilot_urgent_reviews_total",
    "Reviews answered on the urgent path",
    ["source"],
)

REPLY_LATENCY = Histogram(
    "reviewpilot_reply_latency_seconds",
    "Time from review creation to posted reply",
    buckets=[30, 60, 120, 300, 480, 600, 900, 1800, 3600],
)

# Draft generation
DRAFT_GENERATIONS = Counter(
    "reviewpilot_draft_generations_total",
    "Drafts produced, labelled by whether the model or canned fallback was used",
    ["source"],
)

DRAFT_GENERATION_DURATION = Histogram(
    "reviewpilot_draft_generation_duration_seconds",
    "Duration of draft generation calls",
    buckets=[0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 20.0, 30.0],
)

# Polling
POLL_TICKS = Counter(
    "reviewpilot_poll_ticks_total",
    "Polling scheduler ticks",
    ["status"],
)

# Gateway metrics
GATEWAY_OPERATIONS = Counter(
    "reviewpilot_gateway_operations_total",
    "Total review gateway operations",
    ["gateway", "operation", "status"],
)

GATEWAY_LATENCY = Histogram(
    "reviewpilot_gateway_latency_seconds",
    "Latency of review gateway operations",
    ["gateway", "operation"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

# Circuit breaker metrics
CIRCUIT_BREAKER_STATE = Gauge(
    "reviewpilot_circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=half_open, 2=open)",
    ["service"],
)

CIRCUIT_BREAKER_FAILURES = Counter(
    "reviewpilot_circuit_breaker_failures_total",
    "Total failures recorded by circuit breakers",
    ["service"],
)


# =============================================================================
# Tracking Context Managers
# =============================================================================


@contextmanager
def track_draft_generation() -> Generator[None, None, None]:
    """
    Context manager to time a draft generation call.

    Usage:
        with track_draft_generation():
            text = await generator._complete(prompt)
    """
    start_time = time.perf_counter()
    try:
        yield
    finally:
        DRAFT_GENERATION_DURATION.observe(time.perf_counter() - start_time)


@contextmanager
def track_gateway_operation(
    gateway: str,
    operation: str,
) -> Generator[None, None, None]:
    """
    Context manager to track review gateway operations.

    Usage:
        with track_gateway_operation("live", "list_reviews"):
            reviews = await gateway.list_reviews(location_id)
    """
    start_time = time.perf_counter()
    status = "success"
    try:
        yield
    except Exception:
        status = "error"
        raise
    finally:
        duration = time.perf_counter() - start_time
        GATEWAY_OPERATIONS.labels(
            gateway=gateway,
            operation=operation,
            status=status,
        ).inc()
        GATEWAY_LATENCY.labels(
            gateway=gateway,
            operation=operation,
        ).observe(duration)


def record_review_outcome(outcome: str) -> None:
    """Record a review reaching a terminal state (responded, skipped, failed)."""
    REVIEWS_HANDLED.labels(outcome=outcome).inc()


def record_reply_latency(seconds: float) -> None:
    """Record creation-to-reply latency for a posted reply."""
    REPLY_LATENCY.observe(max(0.0, seconds))


def record_draft(used_fallback: bool) -> None:
    """Record which source produced a draft."""
    DRAFT_GENERATIONS.labels(source="fallback" if used_fallback else "model").inc()


def record_urgent_review(source: str) -> None:
    """Record a review answered on the urgent path ("deadline" or "webhook")."""
    URGENT_REVIEWS.labels(source=source).inc()


def record_poll_tick(status: str) -> None:
    """Record a polling tick result ("success", "skipped", "error")."""
    POLL_TICKS.labels(status=status).inc()


def update_circuit_breaker_state(service: str, state: str) -> None:
    """
    Update circuit breaker state gauge.

    Args:
        service: Service name
        state: Circuit state ("closed", "half_open", "open")
    """
    state_map = {"closed": 0, "half_open": 1, "open": 2}
    CIRCUIT_BREAKER_STATE.labels(service=service).set(state_map.get(state, 0))


def record_circuit_breaker_failure(service: str) -> None:
    """Record a circuit breaker failure."""
    CIRCUIT_BREAKER_FAILURES.labels(service=service).inc()


# =============================================================================
# Metrics Endpoint
# =============================================================================


async def metrics_endpoint(request) -> Response:
    """Prometheus metrics endpoint handler."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )


def get_metrics_app() -> Starlette:
    """
    Get a Starlette app for serving metrics.

    Mount this at /metrics in your main app:
        from reviewpilot.monitoring.metrics import get_metrics_app
        app.mount("/metrics", get_metrics_app())
    """
    return Starlette(
        routes=[
            Route("/", metrics_endpoint),
        ]
    )
