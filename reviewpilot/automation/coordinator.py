"""
Automation coordinator.

Decides, for each incoming review, whether and when to draft and post a
reply. Each review moves through:

    unseen -> claimed -> responded | skipped | failed

The ledger claim is the only synchronization point: of two concurrent
handle() calls for the same review (a webhook racing a poll tick), the
first claimant proceeds and the other returns None with no side effects.

Failures never propagate out of handle(). Generation problems are covered
by fallback text; posting problems become an ``error`` event and leave the
review in the ``failed`` state. Posting is never retried in-process so a
review gets at most one reply attempt.
"""

import asyncio
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

import structlog

from reviewpilot.automation.ledger import DedupeLedger
from reviewpilot.config.settings import Settings
from reviewpilot.gateway.base import ReviewGateway
from reviewpilot.models.schemas import (
    AutomationEvent,
    AutomationSettings,
    EventKind,
    Review,
    ReviewState,
)
from reviewpilot.monitoring.metrics import (
    record_reply_latency,
    record_review_outcome,
    record_urgent_review,
)
from reviewpilot.notifications.sink import NotificationSink
from reviewpilot.services.response_generator import (
    ResponseDraftGenerator,
    get_fallback_response,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ResponseTiming:
    """Deadline and pacing parameters, in seconds."""

    deadline_seconds: float = 600.0
    urgent_window_seconds: float = 120.0
    natural_delay_min_seconds: float = 60.0
    natural_delay_max_seconds: float = 300.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "ResponseTiming":
        return cls(
            deadline_seconds=settings.response_deadline_seconds,
            urgent_window_seconds=settings.urgent_window_seconds,
            natural_delay_min_seconds=settings.natural_delay_min_seconds,
            natural_delay_max_seconds=settings.natural_delay_max_seconds,
        )

    @property
    def urgent_after_seconds(self) -> float:
        """Elapsed time after which a review counts as urgent."""
        return self.deadline_seconds - self.urgent_window_seconds


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AutomationCoordinator:
    """Per-review automation state machine.

    Collaborators are injected; the coordinator holds no module-level state.

    Args:
        ledger: Claim tracking shared by every trigger source.
        generator: Draft generator (must not raise; guarded anyway).
        gateway: Review API used to post replies.
        sink: Receives success/error/urgent events. Optional.
        timing: Deadline and delay parameters.
        max_concurrency: Bound on simultaneous non-urgent draft+post work.
            Urgent reviews are never queued behind it.
        clock: Returns the current UTC time.
        sleep: Awaitable sleep used for the natural delay.
        rng: Random source for the natural delay.
    """

    def __init__(
        self,
        ledger: DedupeLedger,
        generator: ResponseDraftGenerator,
        gateway: ReviewGateway,
        sink: Optional[NotificationSink] = None,
        timing: Optional[ResponseTiming] = None,
        max_concurrency: Optional[int] = None,
        clock: Callable[[], datetime] = _utc_now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        self._ledger = ledger
        self._generator = generator
        self._gateway = gateway
        self._sink = sink
        self._timing = timing or ResponseTiming()
        self._semaphore = asyncio.Semaphore(max_concurrency) if max_concurrency else None
        self._clock = clock
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._states: dict[str, ReviewState] = {}

    @property
    def ledger(self) -> DedupeLedger:
        return self._ledger

    @property
    def timing(self) -> ResponseTiming:
        return self._timing

    # -------------------------------------------------------------------------
    # State inspection
    # -------------------------------------------------------------------------

    def review_state(self, review_id: str) -> ReviewState:
        return self._states.get(review_id, ReviewState.UNSEEN)

    def state_counts(self) -> dict[ReviewState, int]:
        counts = {state: 0 for state in ReviewState}
        for state in self._states.values():
            counts[state] += 1
        return counts

    # -------------------------------------------------------------------------
    # Decisions
    # -------------------------------------------------------------------------

    @staticmethod
    def should_respond(review: Review, settings: AutomationSettings) -> bool:
        """Eligibility by rating: 5 always, 4 and 1-3 only when enabled."""
        if review.rating == 5:
            return True
        if review.rating == 4:
            return settings.respond_to_four_star
        return settings.respond_to_low_ratings

    def elapsed_seconds(self, review: Review) -> float:
        return (self._clock() - review.created_at).total_seconds()

    def is_urgent(self, elapsed: float) -> bool:
        return elapsed > self._timing.urgent_after_seconds

    def natural_delay(self, elapsed: float) -> float:
        """Random pause before replying, capped so the reply lands before
        the review turns urgent."""
        timing = self._timing
        if timing.natural_delay_max_seconds <= 0:
            return 0.0
        delay = self._rng.uniform(
            timing.natural_delay_min_seconds, timing.natural_delay_max_seconds
        )
        latest = timing.urgent_after_seconds - elapsed
        return max(0.0, min(delay, latest))

    # -------------------------------------------------------------------------
    # Processing
    # -------------------------------------------------------------------------

    async def handle(
        self,
        review: Review,
        settings: AutomationSettings,
        urgent: bool = False,
    ) -> Optional[AutomationEvent]:
        """
        Run one review through the automation state machine.

        Args:
            review: The review to process.
            settings: Settings snapshot used for the whole call.
            urgent: Pre-flag the review as urgent (webhook path): no delay.

        Returns:
            The terminal success/error event, or None when nothing was posted
            (disabled, duplicate, already replied, or ineligible).
        """
        log = logger.bind(review_id=review.id, rating=review.rating)

        if not settings.auto_respond_enabled:
            log.debug("review_ignored_automation_disabled")
            return None

        if not self._ledger.try_claim(review.id):
            log.info("review_claim_rejected")
            return None
        self._states[review.id] = ReviewState.CLAIMED

        if review.has_reply:
            self._finish(review.id, ReviewState.SKIPPED)
            log.info("review_skipped", reason="already_replied")
            return None

        if not self.should_respond(review, settings):
            self._finish(review.id, ReviewState.SKIPPED)
            log.info("review_skipped", reason="rating_not_eligible")
            return None

        elapsed = self.elapsed_seconds(review)
        if urgent or self.is_urgent(elapsed):
            return await self._respond_urgent(review, settings, log, elapsed, webhook=urgent)

        delay = self.natural_delay(elapsed)
        if delay > 0:
            log.info("reply_delayed", delay_seconds=round(delay, 1))
            await self._sleep(delay)
            elapsed = self.elapsed_seconds(review)
            if self.is_urgent(elapsed):
                return await self._respond_urgent(review, settings, log, elapsed)

        # Stop waiting for a slot once the review turns urgent
        acquired = await self._acquire_slot(self._timing.urgent_after_seconds - elapsed)
        try:
            elapsed = self.elapsed_seconds(review)
            if not acquired or self.is_urgent(elapsed):
                return await self._respond_urgent(review, settings, log, elapsed)
            return await self._respond(review, settings, log)
        finally:
            if acquired and self._semaphore is not None:
                self._semaphore.release()

    async def _acquire_slot(self, timeout: float) -> bool:
        """Wait up to ``timeout`` seconds for a concurrency slot."""
        if self._semaphore is None:
            return True
        try:
            await asyncio.wait_for(self._semaphore.acquire(), timeout=max(timeout, 0.0))
        except asyncio.TimeoutError:
            return False
        return True

    async def _respond_urgent(
        self,
        review: Review,
        settings: AutomationSettings,
        log: structlog.stdlib.BoundLogger,
        elapsed: float,
        webhook: bool = False,
    ) -> AutomationEvent:
        if elapsed > self._timing.deadline_seconds:
            log.warning(
                "review_response_overdue",
                elapsed_seconds=round(elapsed, 1),
                deadline_seconds=self._timing.deadline_seconds,
            )

        deadline_urgent = self.is_urgent(elapsed)
        record_urgent_review("webhook" if webhook and not deadline_urgent else "deadline")
        log.info("review_urgent", elapsed_seconds=round(elapsed, 1), webhook=webhook)
        await self._emit(AutomationEvent(
            kind=EventKind.URGENT,
            review_id=review.id,
            rating=review.rating,
            reviewer_name=review.reviewer_name,
            time_remaining_seconds=round(self._timing.deadline_seconds - elapsed, 1),
        ))
        return await self._respond(review, settings, log)

    async def _respond(
        self,
        review: Review,
        settings: AutomationSettings,
        log: structlog.stdlib.BoundLogger,
    ) -> AutomationEvent:
        """Draft, post, record, and emit. Never raises."""
        try:
            draft_text = (await self._generator.draft(review, settings)).text
        except Exception as e:
            log.error("draft_generator_raised", error=str(e), error_type=type(e).__name__)
            draft_text = get_fallback_response(review.rating)

        try:
            await self._gateway.post_reply(review.id, draft_text)
        except Exception as e:
            self._finish(review.id, ReviewState.FAILED)
            log.error(
                "reply_post_failed",
                error=str(e),
                error_type=type(e).__name__,
                status_code=getattr(e, "status_code", None),
            )
            event = AutomationEvent(
                kind=EventKind.ERROR,
                review_id=review.id,
                rating=review.rating,
                reviewer_name=review.reviewer_name,
                error=getattr(e, "message", None) or str(e),
            )
            await self._emit(event)
            return event

        latency = self.elapsed_seconds(review)
        self._finish(review.id, ReviewState.RESPONDED)
        record_reply_latency(latency)
        log.info("reply_posted", latency_seconds=round(latency, 1), chars=len(draft_text))

        event = AutomationEvent(
            kind=EventKind.SUCCESS,
            review_id=review.id,
            rating=review.rating,
            reviewer_name=review.reviewer_name,
            response_text=draft_text,
            processing_ms=max(0, int(latency * 1000)),
        )
        await self._emit(event)
        return event

    def _finish(self, review_id: str, state: ReviewState) -> None:
        self._states[review_id] = state
        record_review_outcome(state.value)

    async def _emit(self, event: AutomationEvent) -> None:
        if self._sink is None:
            return
        try:
            await self._sink.emit(event)
        except Exception as e:
            logger.warning(
                "notification_emit_failed",
                review_id=event.review_id,
                kind=event.kind.value,
                error=str(e),
            )
