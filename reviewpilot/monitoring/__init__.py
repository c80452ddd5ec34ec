"""
Monitoring and observability for ReviewPilot.

Provides Prometheus metrics for tracking automation outcomes, draft
generation, polling, and review gateway health.

Usage:
    from reviewpilot.monitoring import record_review_outcome, get_metrics_app

    record_review_outcome("responded")
    app.mount("/metrics", get_metrics_app())
"""

from reviewpilot.monitoring.metrics import (
    CIRCUIT_BREAKER_STATE,
    DRAFT_GENERATIONS,
    GATEWAY_OPERATIONS,
    POLL_TICKS,
    REPLY_LATENCY,
    REVIEWS_HANDLED,
    URGENT_REVIEWS,
    get_metrics_app,
    record_circuit_breaker_failure,
    record_draft,
    record_poll_tick,
    record_reply_latency,
    record_review_outcome,
    record_urgent_review,
    track_draft_generation,
    track_gateway_operation,
    update_circuit_breaker_state,
)

__all__ = [
    # Prometheus metrics
    "CIRCUIT_BREAKER_STATE",
    "DRAFT_GENERATIONS",
    "GATEWAY_OPERATIONS",
    "POLL_TICKS",
    "REPLY_LATENCY",
    "REVIEWS_HANDLED",
    "URGENT_REVIEWS",
    # Context managers
    "track_draft_generation",
    "track_gateway_operation",
    # Helper functions
    "record_circuit_breaker_failure",
    "record_draft",
    "record_poll_tick",
    "record_reply_latency",
    "record_review_outcome",
    "record_urgent_review",
    "update_circuit_breaker_state",
    "get_metrics_app",
]
