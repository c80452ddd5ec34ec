"""ReviewPilot API - Main FastAPI Application.

This module provides the main FastAPI application for ReviewPilot.
It includes:
- CORS middleware configuration
- API key authentication middleware
- API versioning (/api/v1)
- Health check endpoints
- Automation control, review passthrough and webhook endpoints
- Prometheus metrics at /metrics

Usage:
    # Run with uvicorn
    uvicorn reviewpilot.api.main:app --reload

    # Or run directly
    python -m reviewpilot.api.main
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator

import structlog
from fastapi import APIRouter, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.middleware.base import BaseHTTPMiddleware

from reviewpilot import __version__
from reviewpilot.api.dependencies import reset_dependencies, set_automation_service
from reviewpilot.api.models import ErrorResponse, ValidationErrorDetail, ValidationErrorResponse
from reviewpilot.api.routes.automation import router as automation_router
from reviewpilot.api.routes.health import router as health_router, set_server_start_time
from reviewpilot.api.routes.reviews import router as reviews_router
from reviewpilot.api.routes.webhooks import router as webhooks_router
from reviewpilot.automation.service import AutomationService
from reviewpilot.config.settings import get_settings
from reviewpilot.core.exceptions import (
    CircuitBreakerOpenError,
    ConfigurationError,
    GatewayAuthError,
    GatewayError,
    GatewayNotFoundError,
)
from reviewpilot.monitoring.metrics import get_metrics_app

logger = structlog.get_logger(__name__)

# API metadata for OpenAPI documentation
API_TITLE = "ReviewPilot API"
API_DESCRIPTION = """
## Automated replies to Google Business Profile reviews

ReviewPilot watches your business locations for new reviews and posts an
AI-drafted reply within minutes, before the review goes unanswered.

### Features

- **Polling + push**: periodic review checks plus real-time Google notifications
- **Deadline aware**: new reviews are answered inside a 10 minute window
- **Rating rules**: always answer 5 stars, optionally 4 stars and 1-3 stars
- **Fallback replies**: a safe templated reply whenever the AI backend is unavailable
- **Live feed**: Server-Sent Events stream of every reply posted or failed

### Getting Started

1. **Configure**: set `ANTHROPIC_API_KEY` and Google OAuth credentials
2. **Start**: `POST /api/v1/automation/start` with `{"settings": {"auto_respond_enabled": true}}`
3. **Watch**: subscribe to `GET /api/v1/webhooks/stream`

### Authentication

API key authentication is available. Set `API_KEY_ENABLED=true` and `API_KEY=your-secret-key`
in environment to require X-API-Key header on all requests.
"""
API_VERSION = __version__


# =============================================================================
# API Key Authentication Middleware
# =============================================================================


class APIKeyMiddleware(BaseHTTPMiddleware):
    """
    Middleware to validate API key for all requests except public endpoints.

    Enable by setting API_KEY_ENABLED=true and API_KEY=<secret> in environment.
    Google push notifications authenticate with their signature instead.
    """

    # Endpoints that don't require authentication
    PUBLIC_PATHS = {
        "/",
        "/health",
        "/health/live",
        "/health/ready",
        "/docs",
        "/redoc",
        "/openapi.json",
        "/api/v1/webhooks/google",
        "/api/v1/webhooks/google/verify",
    }

    async def dispatch(self, request: Request, call_next):
        settings = get_settings()

        # Skip auth if disabled
        if not settings.api_key_enabled:
            return await call_next(request)

        # Skip auth for public paths
        if request.url.path in self.PUBLIC_PATHS:
            return await call_next(request)

        # Validate API key
        api_key = request.headers.get("X-API-Key")
        expected_key = settings.api_key.get_secret_value() if settings.api_key else None

        if not expected_key:
            logger.error("api_key_enabled_but_not_set")
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"error": "Server misconfiguration: API key authentication enabled but no key configured"},
            )

        if not api_key:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"error": "Missing X-API-Key header"},
            )

        if api_key != expected_key:
            logger.warning("invalid_api_key_attempt", path=request.url.path)
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"error": "Invalid API key"},
            )

        return await call_next(request)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Handles startup and shutdown events:
    - Startup: build the automation service (polling starts via the API)
    - Shutdown: stop polling, drain in-flight reviews, close the gateway
    """
    # Startup
    logger.info("application_starting")
    set_server_start_time()

    service = AutomationService(get_settings())
    set_automation_service(service)

    logger.info("application_started")

    yield

    # Shutdown
    logger.info("application_stopping")

    try:
        await service.shutdown()
        logger.info("automation_service_shutdown")
    except Exception as e:
        logger.error("automation_shutdown_error", error=str(e))

    reset_dependencies()
    logger.info("application_stopped")


# Create FastAPI application
app = FastAPI(
    title=API_TITLE,
    description=API_DESCRIPTION,
    version=API_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    openapi_tags=[
        {
            "name": "Health",
            "description": "System health and status endpoints",
        },
        {
            "name": "Automation",
            "description": "Start/stop automatic replies, settings and status",
        },
        {
            "name": "Reviews",
            "description": "Browse accounts, locations and reviews; manage replies by hand",
        },
        {
            "name": "Webhooks",
            "description": "Google push notifications and the live event stream",
        },
    ],
)

# Configure CORS middleware (from settings)
_settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_allowed_origins,
    allow_credentials=_settings.cors_allow_credentials,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-API-Key", "Accept"],
)

# Add API Key authentication middleware
app.add_middleware(APIKeyMiddleware)


# =============================================================================
# Exception Handlers
# =============================================================================


def _error_response(
    request: Request,
    status_code: int,
    error: str,
    message: str,
    detail: str | None = None,
) -> JSONResponse:
    response = ErrorResponse(
        error=error,
        message=message,
        detail=detail,
        path=request.url.path,
        timestamp=datetime.now(timezone.utc),
    )
    return JSONResponse(status_code=status_code, content=response.model_dump(mode="json"))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors with detailed response."""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        errors.append(ValidationErrorDetail(
            field=field,
            message=error["msg"],
            value=error.get("input"),
        ))

    response = ValidationErrorResponse(
        errors=errors,
        timestamp=datetime.now(timezone.utc),
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=response.model_dump(mode="json"),
    )


@app.exception_handler(ValidationError)
async def settings_validation_exception_handler(
    request: Request, exc: ValidationError
) -> JSONResponse:
    """Handle invalid settings payloads rejected during merge."""
    errors = [
        ValidationErrorDetail(
            field=".".join(str(loc) for loc in error["loc"]),
            message=error["msg"],
            value=error.get("input"),
        )
        for error in exc.errors()
    ]
    response = ValidationErrorResponse(errors=errors, timestamp=datetime.now(timezone.utc))
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=response.model_dump(mode="json"),
    )


@app.exception_handler(ConfigurationError)
async def configuration_exception_handler(
    request: Request, exc: ConfigurationError
) -> JSONResponse:
    logger.warning("configuration_error", path=request.url.path, error=exc.message)
    return _error_response(
        request,
        status.HTTP_400_BAD_REQUEST,
        "configuration_error",
        exc.message,
        detail=exc.config_key,
    )


@app.exception_handler(CircuitBreakerOpenError)
async def circuit_open_exception_handler(
    request: Request, exc: CircuitBreakerOpenError
) -> JSONResponse:
    return _error_response(
        request,
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "service_unavailable",
        exc.message,
    )


@app.exception_handler(GatewayError)
async def gateway_exception_handler(
    request: Request, exc: GatewayError
) -> JSONResponse:
    """Map review gateway failures to HTTP responses."""
    if isinstance(exc, GatewayAuthError):
        status_code, error = status.HTTP_401_UNAUTHORIZED, "gateway_auth_error"
    elif isinstance(exc, GatewayNotFoundError):
        status_code, error = status.HTTP_404_NOT_FOUND, "not_found"
    else:
        status_code, error = status.HTTP_502_BAD_GATEWAY, "gateway_error"

    logger.warning(
        "gateway_error",
        path=request.url.path,
        upstream_status=exc.status_code,
        error=exc.message,
    )
    return _error_response(
        request,
        status_code,
        error,
        exc.message,
        detail=f"upstream status {exc.status_code}" if exc.status_code else None,
    )


@app.exception_handler(Exception)
async def generic_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__,
    )

    return _error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "internal_server_error",
        "An unexpected error occurred",
        detail=str(exc) if get_settings().debug else None,
    )


# =============================================================================
# Root Endpoints
# =============================================================================


@app.get("/", include_in_schema=False)
async def root() -> dict:
    """Root endpoint - points at API documentation."""
    return {
        "name": API_TITLE,
        "version": API_VERSION,
        "docs": "/docs",
        "health": "/health",
        "api": "/api/v1",
    }


# =============================================================================
# Include Routers
# =============================================================================

# Health endpoints at root level
app.include_router(health_router)

# Create API v1 router for versioned endpoints
api_v1_router = APIRouter(prefix="/api/v1")
api_v1_router.include_router(automation_router)
api_v1_router.include_router(reviews_router)
api_v1_router.include_router(webhooks_router)

# Include the versioned router
app.include_router(api_v1_router)

# Prometheus scrape endpoint
app.mount("/metrics", get_metrics_app())


@app.get("/api/v1", include_in_schema=False)
async def api_v1_root() -> dict:
    """API v1 root - shows available endpoints."""
    return {
        "version": "v1",
        "endpoints": {
            "automation": "/api/v1/automation",
            "reviews": "/api/v1/reviews",
            "webhooks": "/api/v1/webhooks",
        },
        "documentation": "/docs",
    }


# =============================================================================
# Development Server
# =============================================================================


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "reviewpilot.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
        log_level=settings.log_level.lower(),
    )
