"""Pydantic models for ReviewPilot core entities."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


# Google Business Profile reports ratings as enum names
STAR_RATING_MAP: dict[str, int] = {
    "ONE": 1,
    "TWO": 2,
    "THREE": 3,
    "FOUR": 4,
    "FIVE": 5,
}

DEFAULT_REVIEWER_NAME = "Anonymous"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ReviewState(str, Enum):
    """Automation state of a single review within this process."""
    UNSEEN = "unseen"
    CLAIMED = "claimed"
    RESPONDED = "responded"
    SKIPPED = "skipped"
    FAILED = "failed"


class EventKind(str, Enum):
    """Kinds of automation events broadcast to subscribers."""
    SUCCESS = "success"
    ERROR = "error"
    URGENT = "urgent"


# =============================================================================
# Reviews
# =============================================================================


class Review(BaseModel):
    """A customer review on a business location.

    Read-only to the automation core: a reply is posted back through the
    gateway, never written onto this object.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Stable review identifier (dedupe key)")
    location_id: str = Field("", description="Owning location identifier")
    rating: int = Field(..., ge=1, le=5, description="Star rating (1-5)")
    text: str = Field("", description="Review comment, may be empty")
    reviewer_name: str = Field(DEFAULT_REVIEWER_NAME, description="Reviewer display name")
    created_at: datetime = Field(default_factory=utc_now, description="When the review was posted")
    existing_reply: Optional[str] = Field(None, description="Reply already posted, if any")

    @field_validator("rating", mode="before")
    @classmethod
    def normalize_rating(cls, value: Any) -> Any:
        """Accept Google's ONE..FIVE enum names as well as integers."""
        if isinstance(value, str):
            upper = value.strip().upper()
            if upper in STAR_RATING_MAP:
                return STAR_RATING_MAP[upper]
        return value

    @field_validator("text", mode="before")
    @classmethod
    def normalize_text(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("reviewer_name", mode="before")
    @classmethod
    def normalize_reviewer_name(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return DEFAULT_REVIEWER_NAME
        return value

    @field_validator("created_at")
    @classmethod
    def ensure_timezone(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def has_reply(self) -> bool:
        return bool(self.existing_reply)


class Account(BaseModel):
    """A Google Business Profile account."""
    id: str
    name: str = "Unnamed Business"
    type: str = "BUSINESS"


class Location(BaseModel):
    """A business location under an account."""
    id: str
    account_id: str
    name: str = "Unnamed Location"
    primary_category: str = "Business"
    address: str = "Address not available"


# =============================================================================
# Automation Settings
# =============================================================================


class BusinessInfo(BaseModel):
    """Business details used to personalise generated replies."""
    name: str = "Your Business"
    type: str = "Business"
    values: str = "Customer satisfaction and quality service"


class AutomationSettings(BaseModel):
    """Runtime automation settings.

    Instances are treated as immutable snapshots; updates produce a new
    instance via merge().
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    auto_respond_enabled: bool = Field(False, description="Master switch for posting replies")
    tone: str = Field("professional", description="Desired reply tone")
    response_template: str = Field("personalized", description="Reply template style")
    language: str = Field("english", description="Reply language")
    business_info: BusinessInfo = Field(default_factory=BusinessInfo)
    respond_to_four_star: bool = Field(False, description="Also reply to 4-star reviews")
    respond_to_low_ratings: bool = Field(False, description="Also reply to 1-3 star reviews")

    def merge(self, partial: dict[str, Any]) -> "AutomationSettings":
        """Return new settings with the given fields replaced.

        ``business_info`` may be given partially; missing business fields
        keep their current values.
        """
        data = self.model_dump()
        for key, value in partial.items():
            if key == "business_info" and isinstance(value, dict):
                data["business_info"] = {**data["business_info"], **value}
            else:
                data[key] = value
        return AutomationSettings.model_validate(data)


# =============================================================================
# Drafts and Events
# =============================================================================


class DraftResult(BaseModel):
    """A generated (or fallback) reply for a review."""
    text: str
    confidence: float = Field(..., ge=0.30, le=0.95)
    strategy: str
    used_fallback: bool = False

    @property
    def word_count(self) -> int:
        return len(self.text.split())


class AutomationEvent(BaseModel):
    """Observable automation event for logs and UI subscribers."""
    id: str = Field(default_factory=lambda: f"evt_{uuid4().hex[:12]}")
    kind: EventKind
    review_id: str
    rating: int
    reviewer_name: str = DEFAULT_REVIEWER_NAME
    response_text: Optional[str] = None
    error: Optional[str] = None
    processing_ms: Optional[int] = None
    time_remaining_seconds: Optional[float] = None
    timestamp: datetime = Field(default_factory=utc_now)


class AutomationStatus(BaseModel):
    """Snapshot of the automation service for status endpoints."""
    is_running: bool
    processed_count: int
    last_check_time: Optional[datetime] = None
    poll_interval_seconds: int
    gateway_authenticated: bool
    generator_configured: bool
    responded_count: int = 0
    skipped_count: int = 0
    failed_count: int = 0
    settings: AutomationSettings
