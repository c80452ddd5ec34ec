"""Health check endpoints for the ReviewPilot API.

Provides system health status including review gateway, draft generator and
polling scheduler status.
"""

import time
from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException

from reviewpilot import __version__
from reviewpilot.api.dependencies import get_automation_service
from reviewpilot.api.models import HealthCheckResponse, HealthStatus
from reviewpilot.automation.service import AutomationService
from reviewpilot.core.circuit_breaker import get_all_circuit_breakers

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["Health"])

# Track server start time for uptime calculation
_server_start_time: Optional[float] = None


def set_server_start_time() -> None:
    """Set the server start time. Called on application startup."""
    global _server_start_time
    _server_start_time = time.time()


def get_uptime_seconds() -> Optional[float]:
    """Get server uptime in seconds."""
    if _server_start_time is None:
        return None
    return time.time() - _server_start_time


def check_gateway_health(service: AutomationService) -> HealthStatus:
    """Check review gateway configuration and authentication."""
    try:
        gateway = service.get_gateway()
    except Exception as e:
        logger.error("gateway_health_check_failed", error=str(e))
        return HealthStatus(
            status="unhealthy",
            message=f"Gateway unavailable: {str(e)[:100]}",
        )

    open_breakers = [
        name for name, breaker in get_all_circuit_breakers().items() if breaker.is_open
    ]
    if open_breakers:
        return HealthStatus(
            status="degraded",
            message=f"Circuit open: {', '.join(open_breakers)}",
        )
    if not gateway.is_authenticated:
        return HealthStatus(
            status="degraded",
            message=f"{gateway.name} gateway is not authenticated",
        )
    return HealthStatus(status="healthy", message=f"{gateway.name} gateway authenticated")


def check_generator_health(service: AutomationService) -> HealthStatus:
    if service.generator.is_configured:
        return HealthStatus(status="healthy", message="Draft generator configured")
    return HealthStatus(
        status="degraded",
        message="No draft backend configured; fallback replies only",
    )


def check_scheduler_health(service: AutomationService) -> HealthStatus:
    """Check polling scheduler status."""
    if service.is_running:
        return HealthStatus(status="healthy", message="Polling scheduler is running")
    return HealthStatus(status="degraded", message="Polling scheduler is not running")


@router.get(
    "/health",
    response_model=HealthCheckResponse,
    summary="Health Check",
    description="Check the health status of the API and its dependencies.",
)
async def health_check(
    service: AutomationService = Depends(get_automation_service),
) -> HealthCheckResponse:
    """
    Perform a health check of all automation components.

    Returns the status of:
    - Gateway (Google Business Profile or mock)
    - Generator (Anthropic drafting backend)
    - Scheduler (APScheduler polling loop)
    """
    services = {
        "gateway": check_gateway_health(service),
        "generator": check_generator_health(service),
        "scheduler": check_scheduler_health(service),
    }

    statuses = [s.status for s in services.values()]
    if all(s == "healthy" for s in statuses):
        overall_status = "healthy"
    elif any(s == "unhealthy" for s in statuses):
        overall_status = "unhealthy"
    else:
        overall_status = "degraded"

    return HealthCheckResponse(
        status=overall_status,
        version=__version__,
        timestamp=datetime.now(timezone.utc),
        services=services,
        uptime_seconds=get_uptime_seconds(),
    )


@router.get(
    "/health/live",
    summary="Liveness Check",
    description="Simple liveness check for container orchestration.",
)
async def liveness() -> dict:
    """
    Simple liveness probe for Kubernetes/Cloud Run.

    Returns 200 if the service is alive.
    """
    return {"status": "alive", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get(
    "/health/ready",
    summary="Readiness Check",
    description="Check if the service is ready to accept traffic.",
)
async def readiness(
    service: AutomationService = Depends(get_automation_service),
) -> dict:
    """
    Readiness probe for Kubernetes/Cloud Run.

    Returns 200 only if the review gateway can be built.
    """
    gateway_status = check_gateway_health(service)

    if gateway_status.status == "unhealthy":
        raise HTTPException(
            status_code=503,
            detail="Service not ready: review gateway unavailable",
        )

    return {"status": "ready", "timestamp": datetime.now(timezone.utc).isoformat()}
