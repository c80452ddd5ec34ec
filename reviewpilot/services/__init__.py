"""Application services (AI reply drafting)."""

from reviewpilot.services.response_generator import (
    FALLBACK_RESPONSES,
    STRATEGY_BY_RATING,
    ResponseDraftGenerator,
    calculate_confidence,
    get_fallback_response,
    get_response_strategy,
)

__all__ = [
    "FALLBACK_RESPONSES",
    "STRATEGY_BY_RATING",
    "ResponseDraftGenerator",
    "calculate_confidence",
    "get_fallback_response",
    "get_response_strategy",
]
