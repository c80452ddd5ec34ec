"""
Pytest Configuration and Shared Fixtures.

This module provides common fixtures for all tests:

- settings: Settings isolated from the environment (mock gateway, no delays)
- make_review: factory for Review objects
- sink: RecordingSink capturing emitted automation events
- fixed_now: a fixed "current time" for deadline arithmetic
"""

from datetime import datetime, timedelta, timezone

import pytest

from reviewpilot.api.dependencies import reset_dependencies
from reviewpilot.config.settings import Settings, get_settings
from reviewpilot.core.circuit_breaker import reset_all_circuit_breakers
from reviewpilot.models.schemas import AutomationEvent, AutomationSettings, Review
from reviewpilot.notifications.sink import NotificationSink


FIXED_NOW = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class RecordingSink(NotificationSink):
    """Sink that keeps every event for assertions."""

    def __init__(self):
        self.events: list[AutomationEvent] = []

    async def emit(self, event: AutomationEvent) -> None:
        self.events.append(event)

    def kinds(self) -> list[str]:
        return [event.kind.value for event in self.events]


@pytest.fixture(autouse=True)
def reset_globals():
    """Clear module-level singletons between tests."""
    reset_all_circuit_breakers()
    reset_dependencies()
    get_settings.cache_clear()
    yield
    reset_all_circuit_breakers()
    reset_dependencies()
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    """Settings that ignore .env and the process environment's secrets."""
    return Settings(
        _env_file=None,
        anthropic_api_key=None,
        allow_fallback_only=True,
        gateway_mode="mock",
        google_client_id=None,
        google_client_secret=None,
        google_refresh_token=None,
        google_webhook_secret=None,
        poll_interval_seconds=60,
        natural_delay_min_seconds=0,
        natural_delay_max_seconds=0,
        api_key_enabled=False,
        app_env="development",
    )


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def make_review():
    """Build reviews created ``age`` ago relative to FIXED_NOW."""

    def _make(
        review_id: str = "accounts/1/locations/2/reviews/r1",
        rating: int = 5,
        text: str = "Great food and excellent service!",
        reviewer_name: str = "Test User",
        age: timedelta = timedelta(minutes=1),
        existing_reply: str | None = None,
    ) -> Review:
        return Review(
            id=review_id,
            location_id=review_id.split("/reviews/")[0],
            rating=rating,
            text=text,
            reviewer_name=reviewer_name,
            created_at=FIXED_NOW - age,
            existing_reply=existing_reply,
        )

    return _make


@pytest.fixture
def enabled_settings() -> AutomationSettings:
    return AutomationSettings(auto_respond_enabled=True)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
