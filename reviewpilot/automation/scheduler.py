"""Polling scheduler for review automation.

This module provides the recurring review check that:
- Uses APScheduler's AsyncIOScheduler with an interval trigger
- Lists accounts -> locations -> reviews through the review gateway
- Dispatches every unseen, unanswered review to the AutomationCoordinator
  as an independent asyncio task

A tick never raises. An authentication failure skips the whole tick; any
other failure is contained to the account or location that caused it.
Stopping the scheduler leaves already-dispatched reviews running.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Callable, Optional

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from reviewpilot.automation.coordinator import AutomationCoordinator
from reviewpilot.core.exceptions import GatewayAuthError
from reviewpilot.gateway.base import ReviewGateway
from reviewpilot.models.schemas import AutomationSettings, Location, Review
from reviewpilot.monitoring.metrics import record_poll_tick

logger = structlog.get_logger(__name__)

POLL_JOB_ID = "review_poll"


class PollingScheduler:
    """Recurring review poller feeding the AutomationCoordinator.

    Example:
        scheduler = PollingScheduler(coordinator, gateway, lambda: settings)
        await scheduler.start()      # immediate tick, then every interval
        scheduler.dispatch(review, settings, urgent=True)   # webhook path
        await scheduler.stop()
    """

    def __init__(
        self,
        coordinator: AutomationCoordinator,
        gateway: ReviewGateway,
        settings_provider: Callable[[], AutomationSettings],
        interval_seconds: int = 300,
    ):
        """Initialize the scheduler.

        Args:
            coordinator: Handles each dispatched review.
            gateway: Source of accounts, locations and reviews.
            settings_provider: Returns the current settings snapshot; read
                once at the start of every tick.
            interval_seconds: Seconds between ticks.
        """
        self._coordinator = coordinator
        self._gateway = gateway
        self._settings_provider = settings_provider
        self._interval_seconds = interval_seconds
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._is_running = False
        self._last_check_time: Optional[datetime] = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        """Check if the scheduler is currently running."""
        return self._is_running

    @property
    def interval_seconds(self) -> int:
        return self._interval_seconds

    @property
    def last_check_time(self) -> Optional[datetime]:
        return self._last_check_time

    @property
    def in_flight(self) -> int:
        """Number of dispatched reviews still being processed."""
        return len(self._tasks)

    async def start(self) -> None:
        """Schedule the recurring job, then run one tick immediately.

        Calling start() while running is a no-op.
        """
        if self._is_running:
            logger.warning("polling_scheduler_already_running")
            return

        self._is_running = True
        logger.info("polling_scheduler_starting", interval_seconds=self._interval_seconds)

        self._scheduler = AsyncIOScheduler(timezone=timezone.utc)
        self._scheduler.add_job(
            self.tick,
            trigger=IntervalTrigger(seconds=self._interval_seconds),
            id=POLL_JOB_ID,
            name="ReviewPilot: poll reviews",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info("polling_scheduler_started")

        await self.tick()

    async def stop(self) -> None:
        """Stop scheduling ticks. In-flight reviews are left to finish."""
        if not self._is_running:
            logger.debug("polling_scheduler_not_running")
            return

        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None

        self._is_running = False
        logger.info("polling_scheduler_stopped", in_flight=len(self._tasks))

    # -------------------------------------------------------------------------
    # Ticks
    # -------------------------------------------------------------------------

    async def tick(self) -> int:
        """List all reviews and dispatch the unseen ones.

        Returns:
            Number of reviews dispatched to the coordinator.
        """
        settings = self._settings_provider()
        self._last_check_time = datetime.now(timezone.utc)

        if not settings.auto_respond_enabled:
            logger.debug("polling_tick_skipped", reason="automation_disabled")
            record_poll_tick("skipped")
            return 0

        if not self._gateway.is_authenticated:
            logger.warning("polling_tick_skipped", reason="gateway_not_authenticated")
            record_poll_tick("skipped")
            return 0

        logger.info("polling_tick_start")
        dispatched = 0
        try:
            accounts = await self._gateway.list_accounts()
            for account in accounts:
                try:
                    locations = await self._gateway.list_locations(account.id)
                except GatewayAuthError:
                    raise
                except Exception as e:
                    logger.error(
                        "polling_account_failed",
                        account_id=account.id,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    continue

                for location in locations:
                    dispatched += await self._process_location(location, settings)

        except GatewayAuthError as e:
            logger.warning("polling_tick_auth_failed", error=str(e), dispatched=dispatched)
            record_poll_tick("skipped")
            return dispatched
        except Exception as e:
            logger.error(
                "polling_tick_failed",
                error=str(e),
                error_type=type(e).__name__,
                dispatched=dispatched,
            )
            record_poll_tick("error")
            return dispatched

        record_poll_tick("success")
        logger.info("polling_tick_complete", dispatched=dispatched)
        return dispatched

    async def _process_location(self, location: Location, settings: AutomationSettings) -> int:
        """Dispatch the unseen reviews of one location.

        Raises:
            GatewayAuthError: Propagated so the whole tick is abandoned.
        """
        try:
            reviews = await self._gateway.list_reviews(location.id)
        except GatewayAuthError:
            raise
        except Exception as e:
            logger.error(
                "polling_location_failed",
                location_id=location.id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return 0

        dispatched = 0
        for review in reviews:
            if review.has_reply or self._coordinator.ledger.contains(review.id):
                continue
            self.dispatch(review, settings)
            dispatched += 1
        return dispatched

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    def dispatch(
        self,
        review: Review,
        settings: AutomationSettings,
        urgent: bool = False,
    ) -> asyncio.Task:
        """Hand a review to the coordinator as an independent task."""
        task = asyncio.create_task(
            self._run(review, settings, urgent),
            name=f"review:{review.id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, review: Review, settings: AutomationSettings, urgent: bool) -> None:
        try:
            await self._coordinator.handle(review, settings, urgent=urgent)
        except Exception as e:
            logger.error(
                "review_task_failed",
                review_id=review.id,
                error=str(e),
                error_type=type(e).__name__,
            )

    async def wait_idle(self) -> None:
        """Wait for every dispatched review to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
