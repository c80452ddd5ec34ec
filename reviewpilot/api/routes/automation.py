"""Automation control endpoints for the ReviewPilot API.

Start and stop the polling loop, change reply settings, read status and
preview a drafted reply without posting it.
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends

from reviewpilot.api.dependencies import get_automation_service
from reviewpilot.api.models import (
    AutomationStatusResponse,
    ErrorResponse,
    SettingsResponse,
    SettingsUpdateRequest,
    StartRequest,
    TestReviewRequest,
    TestReviewResponse,
)
from reviewpilot.automation.service import AutomationService
from reviewpilot.models.schemas import AutomationStatus, Review

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/automation", tags=["Automation"])


@router.get(
    "/status",
    response_model=AutomationStatus,
    summary="Get automation status",
)
async def get_status(
    service: AutomationService = Depends(get_automation_service),
) -> AutomationStatus:
    return service.get_status()


@router.post(
    "/start",
    response_model=AutomationStatusResponse,
    responses={400: {"model": ErrorResponse}},
    summary="Start automation",
    description="Merge the given settings and start polling for new reviews.",
)
async def start_automation(
    request: Optional[StartRequest] = None,
    service: AutomationService = Depends(get_automation_service),
) -> AutomationStatusResponse:
    """
    Start the automation service.

    Fails with 400 when no draft backend is configured (and fallback-only
    mode is off) or the review gateway is misconfigured.
    """
    status = await service.start(request.settings if request else None)
    logger.info("automation_start_requested", auto_respond_enabled=status.settings.auto_respond_enabled)
    return AutomationStatusResponse(message="Automation service started", status=status)


@router.post(
    "/stop",
    response_model=AutomationStatusResponse,
    summary="Stop automation",
)
async def stop_automation(
    service: AutomationService = Depends(get_automation_service),
) -> AutomationStatusResponse:
    status = await service.stop()
    return AutomationStatusResponse(message="Automation service stopped", status=status)


@router.put(
    "/settings",
    response_model=SettingsResponse,
    responses={400: {"model": ErrorResponse}},
    summary="Update automation settings",
    description=(
        "Partially update settings. Changing auto_respond_enabled starts or "
        "stops polling."
    ),
)
async def update_settings(
    request: SettingsUpdateRequest,
    service: AutomationService = Depends(get_automation_service),
) -> SettingsResponse:
    settings = await service.update_settings(request.settings)
    return SettingsResponse(settings=settings, status=service.get_status())


@router.post(
    "/test",
    response_model=TestReviewResponse,
    summary="Preview a drafted reply",
    description="Draft a reply for a sample review. Nothing is posted or recorded.",
)
async def test_automation(
    request: TestReviewRequest,
    service: AutomationService = Depends(get_automation_service),
) -> TestReviewResponse:
    review = Review(
        id=request.review_id,
        rating=request.rating,
        text=request.text,
        reviewer_name=request.reviewer_name,
    )
    text = await service.process_manually(review)
    return TestReviewResponse(response=text)
