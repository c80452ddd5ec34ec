"""
Review gateway adapters.

- base: ReviewGateway interface
- mock: in-memory gateway for development and tests
- google_business: live Google Business Profile client
- factory: create_gateway() selects one by GATEWAY_MODE
"""

from reviewpilot.gateway.base import ReviewGateway
from reviewpilot.gateway.factory import create_gateway
from reviewpilot.gateway.google_business import LiveGateway, parse_google_review
from reviewpilot.gateway.mock import MockGateway

__all__ = [
    "LiveGateway",
    "MockGateway",
    "ReviewGateway",
    "create_gateway",
    "parse_google_review",
]
