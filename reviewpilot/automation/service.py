"""
Automation service.

Host-facing facade that wires the ledger, draft generator, review gateway,
notification sink, coordinator and polling scheduler together, and owns the
current AutomationSettings snapshot.

Usage:
    service = AutomationService(settings)
    await service.start({"auto_respond_enabled": True})
    status = service.get_status()
    await service.stop()
"""

import asyncio
from typing import Any, Callable, Optional

import structlog

from reviewpilot.automation.coordinator import AutomationCoordinator, ResponseTiming
from reviewpilot.automation.ledger import DedupeLedger, InMemoryDedupeLedger
from reviewpilot.automation.scheduler import PollingScheduler
from reviewpilot.config.settings import Settings, get_settings
from reviewpilot.core.exceptions import ConfigurationError
from reviewpilot.gateway.base import ReviewGateway
from reviewpilot.gateway.factory import create_gateway
from reviewpilot.models.schemas import (
    AutomationSettings,
    AutomationStatus,
    Review,
    ReviewState,
)
from reviewpilot.notifications.sink import BroadcastNotificationSink
from reviewpilot.services.response_generator import ResponseDraftGenerator

logger = structlog.get_logger(__name__)


class AutomationService:
    """Start/stop control, settings, status and entry points for reviews.

    Every collaborator can be injected; anything omitted is built from
    ``settings``. The gateway is built lazily so a misconfigured live
    gateway surfaces as a ConfigurationError from start() rather than at
    construction.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        ledger: Optional[DedupeLedger] = None,
        generator: Optional[ResponseDraftGenerator] = None,
        gateway: Optional[ReviewGateway] = None,
        sink: Optional[BroadcastNotificationSink] = None,
        automation_settings: Optional[AutomationSettings] = None,
        gateway_factory: Callable[[Settings], ReviewGateway] = create_gateway,
        timing: Optional[ResponseTiming] = None,
    ):
        self._settings = settings or get_settings()
        self._ledger = ledger or InMemoryDedupeLedger()
        self._generator = generator or ResponseDraftGenerator(settings=self._settings)
        self._gateway = gateway
        self._gateway_factory = gateway_factory
        self._sink = sink or BroadcastNotificationSink()
        self._timing = timing or ResponseTiming.from_settings(self._settings)
        self._automation_settings = automation_settings or AutomationSettings()
        self._coordinator: Optional[AutomationCoordinator] = None
        self._scheduler: Optional[PollingScheduler] = None
        self._lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None and self._scheduler.is_running

    @property
    def automation_settings(self) -> AutomationSettings:
        return self._automation_settings

    @property
    def sink(self) -> BroadcastNotificationSink:
        return self._sink

    @property
    def ledger(self) -> DedupeLedger:
        return self._ledger

    @property
    def generator(self) -> ResponseDraftGenerator:
        return self._generator

    @property
    def coordinator(self) -> AutomationCoordinator:
        return self._ensure_pipeline()[0]

    @property
    def scheduler(self) -> PollingScheduler:
        return self._ensure_pipeline()[1]

    def get_gateway(self) -> ReviewGateway:
        """Return the review gateway, building it on first use.

        Raises:
            ConfigurationError: The configured gateway cannot be built.
        """
        if self._gateway is None:
            self._gateway = self._gateway_factory(self._settings)
        return self._gateway

    def _ensure_pipeline(self) -> tuple[AutomationCoordinator, PollingScheduler]:
        if self._coordinator is None or self._scheduler is None:
            gateway = self.get_gateway()
            self._coordinator = AutomationCoordinator(
                ledger=self._ledger,
                generator=self._generator,
                gateway=gateway,
                sink=self._sink,
                timing=self._timing,
                max_concurrency=self._settings.max_concurrent_reviews,
            )
            self._scheduler = PollingScheduler(
                coordinator=self._coordinator,
                gateway=gateway,
                settings_provider=lambda: self._automation_settings,
                interval_seconds=self._settings.poll_interval_seconds,
            )
        return self._coordinator, self._scheduler

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def _check_startable(self) -> None:
        """Raise ConfigurationError when polling could not be started."""
        if not self._generator.is_configured and not self._settings.allow_fallback_only:
            raise ConfigurationError(
                "Draft generator is not configured; set ANTHROPIC_API_KEY "
                "or ALLOW_FALLBACK_ONLY=true",
                config_key="anthropic_api_key",
            )
        self._ensure_pipeline()

    async def start(self, partial: Optional[dict[str, Any]] = None) -> AutomationStatus:
        """Merge settings and start polling.

        Raises:
            ConfigurationError: No draft backend and fallback-only mode is
                off, or the gateway cannot be built. The service stays
                stopped and the settings are left unchanged.
        """
        async with self._lock:
            merged = self._automation_settings.merge(partial) if partial else self._automation_settings

            if self.is_running:
                self._automation_settings = merged
                logger.info("automation_already_running")
                return self.get_status()

            self._check_startable()
            self._automation_settings = merged

            _, scheduler = self._ensure_pipeline()
            if not self._gateway.is_authenticated:
                logger.warning("automation_gateway_not_authenticated")

            await scheduler.start()
            logger.info(
                "automation_started",
                interval_seconds=scheduler.interval_seconds,
                auto_respond_enabled=self._automation_settings.auto_respond_enabled,
                tone=self._automation_settings.tone,
                template=self._automation_settings.response_template,
            )
            return self.get_status()

    async def stop(self) -> AutomationStatus:
        """Stop polling. Reviews already being handled run to completion."""
        async with self._lock:
            if self._scheduler is not None:
                await self._scheduler.stop()
            logger.info("automation_stopped")
            return self.get_status()

    async def update_settings(self, partial: dict[str, Any]) -> AutomationSettings:
        """Merge ``partial`` into the current settings.

        Turning ``auto_respond_enabled`` on starts polling; turning it off
        stops it. Re-sending the current values changes nothing.

        Raises:
            ConfigurationError: Enabling was requested but polling cannot
                start. Nothing in ``partial`` is applied.
        """
        updated = self._automation_settings.merge(partial)
        toggled = "auto_respond_enabled" in partial
        if toggled and updated.auto_respond_enabled and not self.is_running:
            self._check_startable()

        changed = updated != self._automation_settings
        self._automation_settings = updated

        if changed:
            logger.info("automation_settings_updated", fields=sorted(partial))

        if toggled:
            if updated.auto_respond_enabled and not self.is_running:
                await self.start()
            elif not updated.auto_respond_enabled and self.is_running:
                await self.stop()

        return self._automation_settings

    async def shutdown(self) -> None:
        """Stop polling, wait for in-flight reviews and close the gateway."""
        await self.stop()
        if self._scheduler is not None:
            await self._scheduler.wait_idle()
        if self._gateway is not None:
            await self._gateway.aclose()

    # -------------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------------

    def get_status(self) -> AutomationStatus:
        counts = (
            self._coordinator.state_counts()
            if self._coordinator is not None
            else {state: 0 for state in ReviewState}
        )
        return AutomationStatus(
            is_running=self.is_running,
            processed_count=self._ledger.size(),
            last_check_time=self._scheduler.last_check_time if self._scheduler else None,
            poll_interval_seconds=self._settings.poll_interval_seconds,
            gateway_authenticated=bool(self._gateway and self._gateway.is_authenticated),
            generator_configured=self._generator.is_configured,
            responded_count=counts[ReviewState.RESPONDED],
            skipped_count=counts[ReviewState.SKIPPED],
            failed_count=counts[ReviewState.FAILED],
            settings=self._automation_settings,
        )

    # -------------------------------------------------------------------------
    # Review entry points
    # -------------------------------------------------------------------------

    async def handle_webhook_review(self, review: Review) -> asyncio.Task:
        """Dispatch a pushed review on the urgent path.

        Raises:
            ConfigurationError: The gateway cannot be built.
        """
        _, scheduler = self._ensure_pipeline()
        logger.info("webhook_review_received", review_id=review.id, rating=review.rating)
        await self._sink.publish(
            "webhook_review_received",
            {
                "review_id": review.id,
                "rating": review.rating,
                "reviewer_name": review.reviewer_name,
                "auto_respond_enabled": self._automation_settings.auto_respond_enabled,
            },
        )
        return scheduler.dispatch(review, self._automation_settings, urgent=True)

    async def process_manually(self, review: Review) -> str:
        """Draft a reply without claiming the review or posting it."""
        result = await self._generator.draft(review, self._automation_settings)
        logger.info(
            "manual_draft_generated",
            review_id=review.id,
            used_fallback=result.used_fallback,
            confidence=result.confidence,
        )
        return result.text
