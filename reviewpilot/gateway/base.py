"""Review gateway interface.

A gateway lists accounts, locations and reviews for a Google Business
Profile and posts replies back. Every method fails with a GatewayError
subclass carrying the HTTP status of the failed call.
"""

from abc import ABC, abstractmethod
from typing import Any

from reviewpilot.models.schemas import Account, Location, Review


class ReviewGateway(ABC):
    """Abstract review API client."""

    name: str = "base"

    @property
    @abstractmethod
    def is_authenticated(self) -> bool:
        """Whether the gateway holds credentials it can call the API with."""

    @abstractmethod
    async def list_accounts(self) -> list[Account]:
        """List business accounts visible to the credentials."""

    @abstractmethod
    async def list_locations(self, account_id: str) -> list[Location]:
        """List locations of an account."""

    @abstractmethod
    async def list_reviews(self, location_id: str) -> list[Review]:
        """List reviews of a location, newest first."""

    @abstractmethod
    async def post_reply(self, review_id: str, text: str) -> dict[str, Any]:
        """Post a reply to a review that has none."""

    @abstractmethod
    async def update_reply(self, review_id: str, text: str) -> dict[str, Any]:
        """Replace the existing reply of a review."""

    @abstractmethod
    async def delete_reply(self, review_id: str) -> None:
        """Remove the reply of a review."""

    async def aclose(self) -> None:
        """Release network resources."""
        return None
