"""Data models shared across ReviewPilot modules."""

from reviewpilot.models.schemas import (
    Account,
    AutomationEvent,
    AutomationSettings,
    AutomationStatus,
    BusinessInfo,
    DraftResult,
    EventKind,
    Location,
    Review,
    ReviewState,
    STAR_RATING_MAP,
)

__all__ = [
    "Account",
    "AutomationEvent",
    "AutomationSettings",
    "AutomationStatus",
    "BusinessInfo",
    "DraftResult",
    "EventKind",
    "Location",
    "Review",
    "ReviewState",
    "STAR_RATING_MAP",
]
