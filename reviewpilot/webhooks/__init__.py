"""Inbound webhook handling."""

from reviewpilot.webhooks.google import (
    SIGNATURE_HEADER,
    get_event_type,
    parse_review_notification,
    verify_signature,
)

__all__ = [
    "SIGNATURE_HEADER",
    "get_event_type",
    "parse_review_notification",
    "verify_signature",
]
