"""
Core exception hierarchy for ReviewPilot.

Provides standardized exception types with categorization for retry logic.
All components should use these exceptions instead of generic Exception.
"""

from typing import Any, Optional


# =============================================================================
# Base Exceptions
# =============================================================================


class ReviewPilotError(Exception):
    """Base exception for all ReviewPilot errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class RetryableError(ReviewPilotError):
    """
    Transient errors that should be retried.

    Examples: Rate limits, timeouts, temporary network issues.
    """

    pass


class PermanentError(ReviewPilotError):
    """
    Errors that won't be fixed by retrying.

    Examples: Invalid input, missing required data, authentication failures.
    """

    pass


# =============================================================================
# Generation Errors
# =============================================================================


class GenerationError(ReviewPilotError):
    """Raised when the text-generation backend fails to produce a reply.

    Never escapes ResponseDraftGenerator.draft(); it is recovered with
    fallback text.
    """

    pass


# =============================================================================
# Gateway Errors
# =============================================================================


class GatewayError(ReviewPilotError):
    """Base exception for review gateway errors.

    Carries the HTTP status returned by the review API (0 when the request
    never produced a response).
    """

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        details: Optional[dict[str, Any]] = None,
    ):
        self.status_code = status_code
        super().__init__(message, details)


class GatewayAuthError(GatewayError, PermanentError):
    """Raised when the gateway is not authenticated or the token is rejected."""

    pass


class GatewayNotFoundError(GatewayError, PermanentError):
    """Raised when the requested account, location, or review does not exist."""

    pass


class GatewayRateLimitError(GatewayError, RetryableError):
    """Raised when the review API rate limits the caller."""

    pass


class GatewayUnavailableError(GatewayError, RetryableError):
    """Raised when the review API is temporarily unreachable."""

    pass


class PostingError(GatewayError):
    """Raised when a reply could not be posted to a review."""

    pass


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(PermanentError):
    """Raised when configuration is invalid or missing."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        self.config_key = config_key
        details = {"config_key": config_key} if config_key else None
        super().__init__(message, details)


# =============================================================================
# Circuit Breaker
# =============================================================================


class CircuitBreakerOpenError(RetryableError):
    """Raised when circuit breaker is open and blocking requests."""

    def __init__(self, service: str, recovery_time: float):
        self.service = service
        self.recovery_time = recovery_time
        super().__init__(
            f"Circuit breaker open for {service}. Recovery in {recovery_time:.1f}s",
            {"service": service, "recovery_time": recovery_time},
        )
