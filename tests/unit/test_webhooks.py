"""Unit tests for Google webhook parsing and signature verification."""

import base64
import hashlib
import hmac
import json
from datetime import datetime, timezone

import pytest

from reviewpilot.webhooks.google import (
    get_event_type,
    parse_review_notification,
    verify_signature,
)

REVIEW_NAME = "accounts/1/locations/9/reviews/abc"
LOCATION_NAME = "accounts/1/locations/9"


def _payload(data, event_type="review.create", as_base64=False, attributes=True):
    if as_base64:
        data = base64.b64encode(json.dumps(data).encode()).decode()
    message = {"data": data}
    if attributes:
        message["attributes"] = {"reviewName": REVIEW_NAME, "locationName": LOCATION_NAME}
    return {"eventType": event_type, "message": message}


class TestVerifySignature:
    """Test HMAC-SHA256 signature checks."""

    SECRET = "webhook-secret"
    BODY = b'{"eventType":"review.create"}'

    def _sign(self, body: bytes) -> str:
        return hmac.new(self.SECRET.encode(), body, hashlib.sha256).hexdigest()

    def test_valid_signature(self):
        assert verify_signature(self.BODY, self._sign(self.BODY), self.SECRET) is True

    def test_valid_signature_with_prefix(self):
        assert verify_signature(self.BODY, f"sha256={self._sign(self.BODY)}", self.SECRET) is True

    def test_tampered_body_rejected(self):
        signature = self._sign(self.BODY)

        assert verify_signature(self.BODY + b" ", signature, self.SECRET) is False

    def test_wrong_secret_rejected(self):
        signature = hmac.new(b"other", self.BODY, hashlib.sha256).hexdigest()

        assert verify_signature(self.BODY, signature, self.SECRET) is False

    @pytest.mark.parametrize("header", [None, "", "sha256=", "not-hex"])
    def test_missing_or_malformed_header_rejected(self, header):
        assert verify_signature(self.BODY, header, self.SECRET) is False


class TestParseReviewNotification:
    """Test extraction of reviews from notifications."""

    def test_plain_json_data(self):
        review = parse_review_notification(_payload({
            "starRating": "FIVE",
            "comment": "Great food!",
            "reviewer": {"displayName": "Ana"},
            "createTime": "2024-01-15T12:00:00Z",
        }))

        assert review.id == REVIEW_NAME
        assert review.location_id == LOCATION_NAME
        assert review.rating == 5
        assert review.text == "Great food!"
        assert review.reviewer_name == "Ana"
        assert review.created_at == datetime(2024, 1, 15, 12, tzinfo=timezone.utc)

    def test_base64_data(self):
        review = parse_review_notification(_payload({"starRating": 3}, as_base64=True))

        assert review.rating == 3
        assert review.id == REVIEW_NAME

    def test_event_type_from_attributes(self):
        payload = {
            "message": {
                "data": {"starRating": "FOUR"},
                "attributes": {"eventType": "review.updated", "reviewName": REVIEW_NAME},
            }
        }

        assert get_event_type(payload) == "review.updated"
        assert parse_review_notification(payload).rating == 4

    def test_review_name_from_data(self):
        review = parse_review_notification(
            _payload({"name": REVIEW_NAME, "starRating": "TWO"}, attributes=False)
        )

        assert review.id == REVIEW_NAME
        assert review.location_id == LOCATION_NAME

    def test_missing_create_time_defaults_to_now(self):
        before = datetime.now(timezone.utc)

        review = parse_review_notification(_payload({"starRating": "FIVE"}))

        assert review.created_at >= before

    def test_replied_review_ignored(self):
        payload = _payload({"starRating": "FIVE", "reviewReply": {"comment": "Thanks!"}})

        assert parse_review_notification(payload) is None

    def test_unrated_review_ignored(self):
        assert parse_review_notification(_payload({"comment": "no rating"})) is None

    def test_non_review_event_ignored(self):
        assert parse_review_notification(_payload({"starRating": 5}, event_type="location.updated")) is None

    def test_missing_data_ignored(self):
        assert parse_review_notification({"eventType": "review.create", "message": {}}) is None

    def test_undecodable_data_ignored(self):
        assert parse_review_notification(_payload("%%%not-base64%%%")) is None

    def test_missing_review_name_ignored(self):
        assert parse_review_notification(_payload({"starRating": 5}, attributes=False)) is None
