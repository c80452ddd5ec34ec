"""Pydantic models for API requests and responses.

This module defines the request/response schemas for the ReviewPilot API.
Domain models (Review, AutomationSettings, AutomationStatus) live in
reviewpilot.models.schemas and are reused directly where they fit.
"""

from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from reviewpilot.models.schemas import AutomationSettings, AutomationStatus


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Automation Models
# =============================================================================


class StartRequest(BaseModel):
    """Request model for starting automation."""

    settings: dict[str, Any] = Field(
        default_factory=dict,
        description="Partial AutomationSettings merged before starting",
        json_schema_extra={"example": {"auto_respond_enabled": True, "tone": "friendly"}},
    )


class SettingsUpdateRequest(BaseModel):
    """Request model for updating automation settings."""

    settings: dict[str, Any] = Field(
        ...,
        min_length=1,
        description="Partial AutomationSettings; omitted fields keep their values",
    )


class AutomationStatusResponse(BaseModel):
    """Response wrapper for start/stop/settings operations."""

    success: bool = True
    message: str
    status: AutomationStatus


class SettingsResponse(BaseModel):
    success: bool = True
    message: str = "Automation settings updated"
    settings: AutomationSettings
    status: AutomationStatus


class TestReviewRequest(BaseModel):
    """A review used to preview a drafted reply."""

    rating: int = Field(..., ge=1, le=5, description="Star rating (1-5)")
    text: str = Field(default="", description="Review comment")
    reviewer_name: str = Field(default="Test Customer", description="Reviewer display name")
    review_id: str = Field(default="test-review", description="Identifier for logging only")


class TestReviewResponse(BaseModel):
    success: bool = True
    message: str = "Test automation completed"
    response: str = Field(..., description="Drafted reply text (not posted)")


# =============================================================================
# Review Models
# =============================================================================


class ReplyRequest(BaseModel):
    """Request model for posting or updating a reply."""

    review_id: str = Field(
        ...,
        min_length=1,
        description="Full review resource name",
        json_schema_extra={"example": "accounts/123/locations/456/reviews/789"},
    )
    text: str = Field(..., min_length=1, max_length=4096, description="Reply text")


class ReplyResponse(BaseModel):
    success: bool = True
    review_id: str
    reply: dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# Webhook Models
# =============================================================================


class WebhookAck(BaseModel):
    """Acknowledgement returned to Google for every delivered notification."""

    status: Literal["received", "ignored", "error"] = "received"
    review_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utc_now)


# =============================================================================
# Health Check Models
# =============================================================================


class HealthStatus(BaseModel):
    """Individual service health status."""

    status: Literal["healthy", "unhealthy", "degraded"] = Field(
        ..., description="Service status"
    )
    latency_ms: Optional[float] = Field(None, description="Response latency in milliseconds")
    message: Optional[str] = Field(None, description="Additional status message")


class HealthCheckResponse(BaseModel):
    """Response model for health check endpoint."""

    status: Literal["healthy", "unhealthy", "degraded"] = Field(
        ..., description="Overall system status"
    )
    version: str = Field(..., description="API version")
    timestamp: datetime = Field(..., description="Check timestamp")
    services: dict[str, HealthStatus] = Field(
        default_factory=dict,
        description="Individual service statuses",
    )
    uptime_seconds: Optional[float] = Field(None, description="Server uptime in seconds")


# =============================================================================
# Error Models
# =============================================================================


class ErrorResponse(BaseModel):
    """Standard error response model."""

    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Human-readable error message")
    detail: Optional[str] = Field(None, description="Additional error details")
    path: Optional[str] = Field(None, description="Request path that caused the error")
    timestamp: datetime = Field(
        default_factory=_utc_now,
        description="Error timestamp",
    )


class ValidationErrorDetail(BaseModel):
    """Details for validation errors."""

    field: str = Field(..., description="Field that failed validation")
    message: str = Field(..., description="Validation error message")
    value: Optional[Any] = Field(None, description="Invalid value provided")


class ValidationErrorResponse(BaseModel):
    """Response for validation errors."""

    error: str = Field(default="validation_error", description="Error type")
    message: str = Field(default="Request validation failed", description="Error message")
    errors: list[ValidationErrorDetail] = Field(..., description="List of validation errors")
    timestamp: datetime = Field(default_factory=_utc_now, description="Error timestamp")
