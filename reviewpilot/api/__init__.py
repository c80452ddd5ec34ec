"""
ReviewPilot FastAPI Application.

This module contains the REST API for ReviewPilot:

- main: FastAPI application entry point and configuration
- routes/: API endpoint definitions organized by domain
- models: Pydantic request/response models
- dependencies: FastAPI dependency injection providers

API Structure:
- /health - Health check and readiness probes
- /api/v1/automation - Start/stop, settings, status, reply preview
- /api/v1/reviews - Accounts, locations, reviews and manual replies
- /api/v1/webhooks - Google push notifications and the SSE event stream
- /metrics - Prometheus metrics

Example:
    from reviewpilot.api.main import app

    # Run with: uvicorn reviewpilot.api.main:app --reload
"""

from reviewpilot.api.main import app

__all__ = ["app"]
