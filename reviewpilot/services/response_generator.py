"""
Review Response Generator.

Uses Claude to draft personalised replies to Google Business Profile reviews.
Adapts strategy to the star rating and falls back to fixed canned replies
whenever the model is unavailable, slow, or returns nothing, so a reply is
always available to post.

Standalone usage:
    from reviewpilot.services.response_generator import ResponseDraftGenerator
    from reviewpilot.models import AutomationSettings, Review

    generator = ResponseDraftGenerator()
    review = Review(id="r1", rating=5, text="Amazing grooming!", reviewer_name="Sarah")
    draft = await generator.draft(review, AutomationSettings())
    print(draft.text, draft.confidence)
"""

import asyncio
import re
from typing import Any, Optional

import anthropic
import structlog

from reviewpilot.config.settings import Settings, get_settings
from reviewpilot.core.exceptions import GenerationError
from reviewpilot.models.schemas import AutomationSettings, DraftResult, Review
from reviewpilot.monitoring.metrics import record_draft, track_draft_generation

logger = structlog.get_logger(__name__)


# =============================================================================
# Strategy and Fallback Tables
# =============================================================================

DEFAULT_RATING = 3

STRATEGY_BY_RATING: dict[int, str] = {
    5: "Express genuine gratitude and enthusiasm for their positive experience",
    4: "Thank them warmly and show appreciation for their positive feedback",
    3: "Acknowledge their feedback professionally and show commitment to improvement",
    2: "Apologize for their disappointing experience and offer to make improvements",
    1: "Sincerely apologize and actively offer to resolve their concerns directly",
}

FALLBACK_RESPONSES: dict[int, str] = {
    5: (
        "Thank you so much for the wonderful 5-star review! We're thrilled that you "
        "had such a positive experience. Your feedback means the world to our team, "
        "and we look forward to serving you again soon!"
    ),
    4: (
        "Thank you for the great 4-star review! We're so glad you had a positive "
        "experience. We appreciate your feedback and look forward to welcoming you "
        "back soon!"
    ),
    3: (
        "Thank you for taking the time to leave us a review. We appreciate your "
        "feedback and are always looking for ways to improve our service. We'd love "
        "the opportunity to exceed your expectations on your next visit!"
    ),
    2: (
        "Thank you for your feedback. We're sorry to hear that your experience didn't "
        "meet your expectations. We take all feedback seriously and would love the "
        "opportunity to make things right. Please contact us directly so we can "
        "address your concerns."
    ),
    1: (
        "We sincerely apologize for the poor experience you had. This is not the level "
        "of service we strive to provide. Please contact us directly so we can address "
        "your concerns and make this right. Your feedback is valuable in helping us "
        "improve."
    ),
}

STRONG_SENTIMENT_KEYWORDS = (
    "great", "excellent", "amazing", "wonderful", "fantastic",
    "terrible", "awful", "horrible", "worst", "never",
)

MIN_CONFIDENCE = 0.30
MAX_CONFIDENCE = 0.95

# First-person singular phrasing rewritten into the business voice
_SANITIZE_RULES: list[tuple[re.Pattern, str]] = [
    (re.compile(r"\b(contact|call|email)\s+me\b", re.IGNORECASE), r"\1 us"),
    (re.compile(r"\b(my|personal)\s+(phone|email|number)\b", re.IGNORECASE), "our business contact"),
    (re.compile(r"\b(I|me)\s+(will|can|would)\b", re.IGNORECASE), r"we \2"),
    (re.compile(r"\bI\s+"), "We "),
]


# =============================================================================
# System Prompt
# =============================================================================

SYSTEM_PROMPT = """You are an assistant helping a business respond to its Google Business Profile
reviews. Write professional, personalized replies that reflect the business's values and
maintain customer relationships.

RULES:
- Write between 50 and 150 words.
- Thank the reviewer by name when a name is provided.
- Address specific points mentioned in the review.
- Speak as the business ("we"), never as an individual ("I").
- Never include personal phone numbers or email addresses.
- Encourage a future visit when appropriate.

Return only the reply text. No quotes, no markdown, no explanation."""


# =============================================================================
# Helpers
# =============================================================================


def get_response_strategy(rating: int) -> str:
    """Pick the strategy hint for a star rating (3 for anything outside 1-5)."""
    return STRATEGY_BY_RATING.get(rating, STRATEGY_BY_RATING[DEFAULT_RATING])


def get_fallback_response(rating: int) -> str:
    """Canned reply keyed only by rating (3 for anything outside 1-5)."""
    return FALLBACK_RESPONSES.get(rating, FALLBACK_RESPONSES[DEFAULT_RATING])


def calculate_confidence(rating: int, text: Optional[str]) -> float:
    """Heuristic confidence score for a reply. Informational only.

    Clear positive/negative reviews and longer comments are easier to answer
    well; neutral and near-empty reviews are harder.
    """
    confidence = 0.75

    if rating in (1, 5):
        confidence += 0.15
    if rating == 3:
        confidence -= 0.10

    if text:
        if len(text) > 50:
            confidence += 0.10
        if len(text) < 10:
            confidence -= 0.15
        lowered = text.lower()
        if any(keyword in lowered for keyword in STRONG_SENTIMENT_KEYWORDS):
            confidence += 0.05

    return round(min(MAX_CONFIDENCE, max(MIN_CONFIDENCE, confidence)), 2)


def sanitize_response(text: str) -> str:
    """Rewrite individual-voice phrasing into the business voice."""
    for pattern, replacement in _SANITIZE_RULES:
        text = pattern.sub(replacement, text)
    return text.strip()


# =============================================================================
# Generator
# =============================================================================


class ResponseDraftGenerator:
    """
    Drafts review replies using Claude with a canned fallback.

    draft() never raises: any backend failure (missing key, timeout, API
    error, empty completion) is logged and replaced by the fallback text for
    the review's rating. Length guidance is given to the model but the text
    is never truncated here.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        client: Optional[Any] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self.model = model or settings.anthropic_model
        self.timeout_seconds = timeout_seconds or settings.generation_timeout_seconds

        if client is not None:
            self.client = client
        else:
            key = api_key or (
                settings.anthropic_api_key.get_secret_value()
                if settings.anthropic_api_key
                else None
            )
            self.client = anthropic.AsyncAnthropic(api_key=key) if key else None

        if self.client is None:
            logger.warning("response_generator_unconfigured", fallback_only=True)

    @property
    def is_configured(self) -> bool:
        """True when a model backend is available."""
        return self.client is not None

    def build_prompt(
        self, review: Review, settings: AutomationSettings, strategy: str,
    ) -> str:
        """Construct the user message sent to Claude."""
        business = settings.business_info
        return "\n".join([
            f"Generate a {settings.tone} response to this Google review.",
            "",
            "Business Information:",
            f"- Name: {business.name}",
            f"- Type: {business.type}",
            f"- Values: {business.values}",
            "",
            "Review Details:",
            f"- Rating: {review.rating}/5 stars",
            f"- Comment: \"{review.text or 'No comment provided'}\"",
            f"- Reviewer: {review.reviewer_name}",
            "",
            "Response Requirements:",
            f"- Tone: {settings.tone}",
            f"- Template: {settings.response_template}",
            f"- Language: {settings.language}",
            f"- Strategy: {strategy}",
            "- Length: 50-150 words",
        ])

    async def _complete(self, prompt: str) -> str:
        """Call Claude and return the reply text.

        Raises:
            GenerationError: No backend, timeout, or an empty completion.
        """
        if self.client is None:
            raise GenerationError("Anthropic client not configured")

        try:
            async with asyncio.timeout(self.timeout_seconds):
                raw = await self.client.messages.create(
                    model=self.model,
                    max_tokens=500,
                    temperature=0.7,
                    system=SYSTEM_PROMPT,
                    messages=[{"role": "user", "content": prompt}],
                )
        except TimeoutError as e:
            raise GenerationError(
                f"Generation timed out after {self.timeout_seconds}s",
                {"timeout_seconds": self.timeout_seconds},
            ) from e
        except anthropic.APIError as e:
            raise GenerationError(f"Anthropic API error: {e}") from e

        text = "".join(
            getattr(block, "text", "") for block in (raw.content or [])
        ).strip()
        if not text:
            raise GenerationError("Empty completion from model")
        return text

    async def draft(self, review: Review, settings: AutomationSettings) -> DraftResult:
        """
        Draft a reply for the given review.

        Args:
            review: The review to answer.
            settings: Automation settings snapshot (tone, template, business info).

        Returns:
            DraftResult with text, heuristic confidence, strategy, and whether
            the canned fallback was used.
        """
        strategy = get_response_strategy(review.rating)
        confidence = calculate_confidence(review.rating, review.text)

        try:
            with track_draft_generation():
                text = await self._complete(self.build_prompt(review, settings, strategy))
            text = sanitize_response(text)
            if not text:
                raise GenerationError("Reply empty after sanitizing")
            used_fallback = False
        except Exception as e:
            logger.warning(
                "draft_generation_failed",
                review_id=review.id,
                rating=review.rating,
                error=str(e),
                error_type=type(e).__name__,
            )
            text = get_fallback_response(review.rating)
            used_fallback = True

        record_draft(used_fallback)
        logger.info(
            "draft_generated",
            review_id=review.id,
            rating=review.rating,
            used_fallback=used_fallback,
            word_count=len(text.split()),
            confidence=confidence,
        )
        return DraftResult(
            text=text,
            confidence=confidence,
            strategy=strategy,
            used_fallback=used_fallback,
        )
