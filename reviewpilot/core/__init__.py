"""
Core infrastructure modules for ReviewPilot.

Provides common utilities used across the application:
- exceptions: Standardized exception hierarchy
- circuit_breaker: Resilience pattern for the review API
"""

from reviewpilot.core.exceptions import (
    ReviewPilotError,
    RetryableError,
    PermanentError,
    GenerationError,
    GatewayError,
    GatewayAuthError,
    GatewayNotFoundError,
    GatewayRateLimitError,
    GatewayUnavailableError,
    PostingError,
    ConfigurationError,
    CircuitBreakerOpenError,
)

from reviewpilot.core.circuit_breaker import (
    CircuitBreaker,
    CircuitState,
    get_circuit_breaker,
    get_all_circuit_breakers,
    reset_all_circuit_breakers,
)

__all__ = [
    # Exceptions
    "ReviewPilotError",
    "RetryableError",
    "PermanentError",
    "GenerationError",
    "GatewayError",
    "GatewayAuthError",
    "GatewayNotFoundError",
    "GatewayRateLimitError",
    "GatewayUnavailableError",
    "PostingError",
    "ConfigurationError",
    "CircuitBreakerOpenError",
    # Circuit Breaker
    "CircuitBreaker",
    "CircuitState",
    "get_circuit_breaker",
    "get_all_circuit_breakers",
    "reset_all_circuit_breakers",
]
