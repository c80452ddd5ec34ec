"""In-memory review gateway for development and tests."""

from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional

import structlog

from reviewpilot.core.exceptions import (
    GatewayAuthError,
    GatewayNotFoundError,
    PostingError,
)
from reviewpilot.gateway.base import ReviewGateway
from reviewpilot.models.schemas import Account, Location, Review

logger = structlog.get_logger(__name__)

MOCK_ACCOUNT_ID = "accounts/mock-account"
MOCK_LOCATION_ID = f"{MOCK_ACCOUNT_ID}/locations/mock-location"


def _default_reviews() -> list[Review]:
    now = datetime.now(timezone.utc)
    return [
        Review(
            id=f"{MOCK_LOCATION_ID}/reviews/mock-review-1",
            location_id=MOCK_LOCATION_ID,
            rating=5,
            text="Fantastic service, the staff went above and beyond!",
            reviewer_name="Sarah Johnson",
            created_at=now - timedelta(minutes=3),
        ),
        Review(
            id=f"{MOCK_LOCATION_ID}/reviews/mock-review-2",
            location_id=MOCK_LOCATION_ID,
            rating=4,
            text="Good experience overall, a little wait at the counter.",
            reviewer_name="Mike Chen",
            created_at=now - timedelta(minutes=30),
        ),
        Review(
            id=f"{MOCK_LOCATION_ID}/reviews/mock-review-3",
            location_id=MOCK_LOCATION_ID,
            rating=2,
            text="Order was wrong and nobody seemed to care.",
            reviewer_name="Emily Davis",
            created_at=now - timedelta(hours=2),
            existing_reply="We're sorry to hear this, please get in touch.",
        ),
    ]


class MockGateway(ReviewGateway):
    """Gateway that serves seeded reviews from memory.

    Replies are recorded in ``replies`` and written back onto the stored
    review so later listings show it as answered.

    Args:
        reviews: Seed reviews. Defaults to a small sample location.
        authenticated: Simulate an authenticated/unauthenticated gateway.
        post_error: Exception raised by post_reply, for failure scenarios.
    """

    name = "mock"

    def __init__(
        self,
        reviews: Optional[Iterable[Review]] = None,
        authenticated: bool = True,
        post_error: Optional[Exception] = None,
    ):
        self.authenticated = authenticated
        self.post_error = post_error
        self.replies: dict[str, str] = {}
        self.post_calls: list[tuple[str, str]] = []
        self._reviews: dict[str, Review] = {}
        for review in (_default_reviews() if reviews is None else reviews):
            self.add_review(review)

    @property
    def is_authenticated(self) -> bool:
        return self.authenticated

    def add_review(self, review: Review) -> None:
        """Add or replace a review, e.g. to simulate a new one arriving."""
        location_id = review.location_id or MOCK_LOCATION_ID
        if review.location_id != location_id:
            review = review.model_copy(update={"location_id": location_id})
        self._reviews[review.id] = review

    def _check_auth(self) -> None:
        if not self.authenticated:
            raise GatewayAuthError("Not authenticated with Google", status_code=401)

    async def list_accounts(self) -> list[Account]:
        self._check_auth()
        account_ids = sorted({
            r.location_id.split("/locations/")[0] for r in self._reviews.values()
        } or {MOCK_ACCOUNT_ID})
        return [Account(id=a, name="Mock Business") for a in account_ids]

    async def list_locations(self, account_id: str) -> list[Location]:
        self._check_auth()
        location_ids = sorted({
            r.location_id for r in self._reviews.values()
            if r.location_id.startswith(f"{account_id}/")
        })
        return [
            Location(id=loc, account_id=account_id, name="Mock Location")
            for loc in location_ids
        ]

    async def list_reviews(self, location_id: str) -> list[Review]:
        self._check_auth()
        reviews = [r for r in self._reviews.values() if r.location_id == location_id]
        return sorted(reviews, key=lambda r: r.created_at, reverse=True)

    async def post_reply(self, review_id: str, text: str) -> dict[str, Any]:
        self._check_auth()
        self.post_calls.append((review_id, text))
        if self.post_error is not None:
            raise self.post_error
        existing = self._reviews.get(review_id)
        if existing is not None and existing.has_reply:
            raise PostingError(
                "Review already has a reply", status_code=409,
                details={"review_id": review_id},
            )
        return self._store_reply(review_id, text)

    async def update_reply(self, review_id: str, text: str) -> dict[str, Any]:
        self._check_auth()
        if review_id not in self._reviews:
            raise GatewayNotFoundError(f"Review not found: {review_id}", status_code=404)
        return self._store_reply(review_id, text)

    async def delete_reply(self, review_id: str) -> None:
        self._check_auth()
        if review_id not in self.replies and review_id not in self._reviews:
            raise GatewayNotFoundError(f"Review not found: {review_id}", status_code=404)
        self.replies.pop(review_id, None)
        if review_id in self._reviews:
            self._reviews[review_id] = self._reviews[review_id].model_copy(
                update={"existing_reply": None}
            )

    def _store_reply(self, review_id: str, text: str) -> dict[str, Any]:
        self.replies[review_id] = text
        if review_id in self._reviews:
            self._reviews[review_id] = self._reviews[review_id].model_copy(
                update={"existing_reply": text}
            )
        updated = datetime.now(timezone.utc).isoformat()
        logger.info("mock_reply_stored", review_id=review_id, chars=len(text))
        return {"comment": text, "updateTime": updated}

    async def aclose(self) -> None:
        return None
