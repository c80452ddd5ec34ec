"""API route modules."""

from reviewpilot.api.routes.automation import router as automation_router
from reviewpilot.api.routes.health import router as health_router
from reviewpilot.api.routes.reviews import router as reviews_router
from reviewpilot.api.routes.webhooks import router as webhooks_router

__all__ = [
    "automation_router",
    "health_router",
    "reviews_router",
    "webhooks_router",
]
