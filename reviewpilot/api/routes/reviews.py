"""Review browsing and manual reply endpoints for the ReviewPilot API.

Thin passthrough to the configured review gateway. Gateway errors are mapped
to HTTP responses by the application exception handlers.
"""

import structlog
from fastapi import APIRouter, Depends, Query

from reviewpilot.api.dependencies import get_automation_service
from reviewpilot.api.models import ErrorResponse, ReplyRequest, ReplyResponse
from reviewpilot.automation.service import AutomationService
from reviewpilot.gateway.base import ReviewGateway
from reviewpilot.models.schemas import Account, Location, Review

logger = structlog.get_logger(__name__)

router = APIRouter(
    prefix="/reviews",
    tags=["Reviews"],
    responses={
        401: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
)


def get_gateway(
    service: AutomationService = Depends(get_automation_service),
) -> ReviewGateway:
    return service.get_gateway()


@router.get("/accounts", response_model=list[Account], summary="List business accounts")
async def list_accounts(gateway: ReviewGateway = Depends(get_gateway)) -> list[Account]:
    return await gateway.list_accounts()


@router.get(
    "/locations/{account_id:path}",
    response_model=list[Location],
    summary="List locations of an account",
)
async def list_locations(
    account_id: str,
    gateway: ReviewGateway = Depends(get_gateway),
) -> list[Location]:
    return await gateway.list_locations(account_id)


@router.get("", response_model=list[Review], summary="List reviews of a location")
async def list_reviews(
    location_id: str = Query(..., min_length=1, description="Full location resource name"),
    gateway: ReviewGateway = Depends(get_gateway),
) -> list[Review]:
    return await gateway.list_reviews(location_id)


@router.put("/reply", response_model=ReplyResponse, summary="Post or update a reply")
async def put_reply(
    request: ReplyRequest,
    gateway: ReviewGateway = Depends(get_gateway),
) -> ReplyResponse:
    """
    Create or replace the reply to a review.

    Google treats reply creation and update as the same PUT, so this
    endpoint always goes through update_reply.
    """
    reply = await gateway.update_reply(request.review_id, request.text)
    logger.info("manual_reply_saved", review_id=request.review_id)
    return ReplyResponse(review_id=request.review_id, reply=reply)


@router.delete("/reply", response_model=ReplyResponse, summary="Delete a reply")
async def delete_reply(
    review_id: str = Query(..., min_length=1, description="Full review resource name"),
    gateway: ReviewGateway = Depends(get_gateway),
) -> ReplyResponse:
    await gateway.delete_reply(review_id)
    logger.info("manual_reply_deleted", review_id=review_id)
    return ReplyResponse(review_id=review_id)
