"""Gateway selection by configuration."""

from typing import Optional

import structlog

from reviewpilot.config.settings import Settings, get_settings
from reviewpilot.core.exceptions import ConfigurationError
from reviewpilot.gateway.base import ReviewGateway
from reviewpilot.gateway.google_business import LiveGateway
from reviewpilot.gateway.mock import MockGateway

logger = structlog.get_logger(__name__)


def create_gateway(settings: Optional[Settings] = None) -> ReviewGateway:
    """Build the gateway named by ``settings.gateway_mode``.

    Raises:
        ConfigurationError: Live mode without OAuth client credentials.
    """
    settings = settings or get_settings()

    if settings.gateway_mode == "mock":
        logger.info("gateway_created", mode="mock")
        return MockGateway()

    if not settings.google_client_id or not settings.google_client_secret:
        raise ConfigurationError(
            "Live gateway requires GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET",
            config_key="google_client_id",
        )
    if not settings.google_refresh_token:
        # Tokens may still be installed later through set_tokens()
        logger.warning("live_gateway_without_refresh_token")

    logger.info("gateway_created", mode="live")
    return LiveGateway(settings=settings)
