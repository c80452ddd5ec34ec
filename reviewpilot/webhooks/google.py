"""Google Business Profile push notifications.

Helpers for the webhook endpoint:
- verify_signature(): HMAC-SHA256 check of the raw request body
- parse_review_notification(): turn a review.create / review.updated
  notification into a Review ready for the urgent automation path

Notification shape (Pub/Sub push or direct):

    {
        "eventType": "review.create",          # or message.attributes.eventType
        "message": {
            "data": "<base64 JSON review> | {...}",
            "attributes": {"reviewName": "...", "locationName": "..."}
        }
    }
"""

import base64
import binascii
import hashlib
import hmac
import json
from typing import Any, Optional

import structlog

from reviewpilot.gateway.google_business import parse_google_review
from reviewpilot.models.schemas import Review, utc_now

logger = structlog.get_logger(__name__)

SIGNATURE_HEADER = "X-Goog-Signature"
SIGNATURE_PREFIX = "sha256="

REVIEW_EVENT_TYPES = frozenset({"review.create", "review.updated"})


def verify_signature(body: bytes, signature_header: Optional[str], secret: str) -> bool:
    """Check an HMAC-SHA256 hex signature over the raw body.

    The header value may carry a ``sha256=`` prefix.
    """
    if not signature_header or not secret:
        return False
    provided = signature_header.strip()
    if provided.startswith(SIGNATURE_PREFIX):
        provided = provided[len(SIGNATURE_PREFIX):]
    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, provided.lower())


def get_event_type(payload: dict[str, Any]) -> Optional[str]:
    message = payload.get("message") or {}
    attributes = message.get("attributes") or {}
    return payload.get("eventType") or attributes.get("eventType")


def _decode_data(raw: Any) -> Optional[dict[str, Any]]:
    if isinstance(raw, dict):
        return raw
    if not isinstance(raw, str):
        return None
    try:
        decoded = json.loads(base64.b64decode(raw, validate=True))
    except (binascii.Error, ValueError):
        try:
            decoded = json.loads(raw)
        except ValueError:
            return None
    return decoded if isinstance(decoded, dict) else None


def parse_review_notification(payload: dict[str, Any]) -> Optional[Review]:
    """Extract the review carried by a notification.

    Returns:
        The Review, or None when the notification is not a review event,
        the review already has a reply, or it has no id or rating.
    """
    event_type = get_event_type(payload)
    if event_type not in REVIEW_EVENT_TYPES:
        logger.debug("webhook_event_ignored", event_type=event_type)
        return None

    message = payload.get("message") or {}
    attributes = message.get("attributes") or {}
    data = _decode_data(message.get("data") or payload.get("data"))
    if data is None:
        logger.warning("webhook_review_data_missing", event_type=event_type)
        return None

    if data.get("reviewReply") or data.get("reply"):
        logger.debug("webhook_review_already_replied", review_name=attributes.get("reviewName"))
        return None

    data = {**data, "createTime": data.get("createTime") or utc_now().isoformat()}
    return parse_google_review(
        data,
        location_id=attributes.get("locationName"),
        review_id=attributes.get("reviewName"),
    )
