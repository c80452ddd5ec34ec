"""Unit tests for the live Google Business Profile gateway.

HTTP traffic is served by httpx.MockTransport; no network access.
"""

import json
from datetime import datetime, timezone

import httpx
import pytest
from tenacity import wait_none

from reviewpilot.core.circuit_breaker import CircuitBreaker, get_circuit_breaker
from reviewpilot.core.exceptions import (
    GatewayAuthError,
    GatewayNotFoundError,
    GatewayUnavailableError,
    PostingError,
)
from reviewpilot.gateway.google_business import (
    REVIEWS_API_BASE,
    TOKEN_URL,
    LiveGateway,
    parse_google_review,
    parse_timestamp,
)

REVIEW_NAME = "accounts/1/locations/9/reviews/abc"


def _gateway(handler, settings, **kwargs) -> LiveGateway:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    kwargs.setdefault("access_token", "tok")
    return LiveGateway(http_client=client, settings=settings, **kwargs)


class TestParsing:
    """Test conversion of Google resources."""

    def test_parse_timestamp_nanoseconds(self):
        parsed = parse_timestamp("2024-01-15T12:00:00.123456789Z")

        assert parsed == datetime(2024, 1, 15, 12, 0, 0, 123456, tzinfo=timezone.utc)

    def test_parse_timestamp_missing_is_now(self):
        before = datetime.now(timezone.utc)

        assert parse_timestamp(None) >= before

    def test_parse_review(self):
        review = parse_google_review({
            "name": REVIEW_NAME,
            "starRating": "FOUR",
            "comment": "Lovely staff",
            "reviewer": {"displayName": "Ana"},
            "createTime": "2024-01-15T12:00:00Z",
            "reviewReply": {"comment": "Thanks Ana!"},
        })

        assert review.id == REVIEW_NAME
        assert review.location_id == "accounts/1/locations/9"
        assert review.rating == 4
        assert review.reviewer_name == "Ana"
        assert review.existing_reply == "Thanks Ana!"

    def test_parse_review_defaults(self):
        review = parse_google_review({"name": REVIEW_NAME, "starRating": "FIVE"})

        assert review.text == ""
        assert review.reviewer_name == "Anonymous"
        assert review.has_reply is False

    @pytest.mark.parametrize("rating", [None, "STAR_RATING_UNSPECIFIED", 0, 7])
    def test_unrated_review_dropped(self, rating):
        assert parse_google_review({"name": REVIEW_NAME, "starRating": rating}) is None


class TestLiveGateway:
    """Test API calls against a mocked transport."""

    @pytest.mark.asyncio
    async def test_list_accounts_paginates(self, settings):
        seen_tokens = []

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["Authorization"] == "Bearer tok"
            page_token = request.url.params.get("pageToken")
            seen_tokens.append(page_token)
            if page_token is None:
                return httpx.Response(200, json={
                    "accounts": [{"name": "accounts/1", "accountName": "Paws Spa"}],
                    "nextPageToken": "p2",
                })
            return httpx.Response(200, json={"accounts": [{"name": "accounts/2"}]})

        gateway = _gateway(handler, settings)
        accounts = await gateway.list_accounts()

        assert [a.id for a in accounts] == ["accounts/1", "accounts/2"]
        assert accounts[0].name == "Paws Spa"
        assert accounts[1].name == "Unnamed Business"
        assert seen_tokens == [None, "p2"]
        await gateway.aclose()

    @pytest.mark.asyncio
    async def test_list_locations_qualifies_ids(self, settings):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["readMask"]
            return httpx.Response(200, json={"locations": [{
                "name": "locations/9",
                "title": "Paws Spa Downtown",
                "storefrontAddress": {
                    "addressLines": ["1 Main St"],
                    "locality": "Springfield",
                    "postalCode": "12345",
                },
                "categories": {"primaryCategory": {"displayName": "Pet groomer"}},
            }]})

        gateway = _gateway(handler, settings)
        locations = await gateway.list_locations("accounts/1")

        assert locations[0].id == "accounts/1/locations/9"
        assert locations[0].name == "Paws Spa Downtown"
        assert locations[0].address == "1 Main St, Springfield, 12345"
        assert locations[0].primary_category == "Pet groomer"

    @pytest.mark.asyncio
    async def test_list_reviews(self, settings):
        def handler(request: httpx.Request) -> httpx.Response:
            assert str(request.url).startswith(f"{REVIEWS_API_BASE}/accounts/1/locations/9/reviews")
            return httpx.Response(200, json={"reviews": [
                {"name": REVIEW_NAME, "starRating": "FIVE", "comment": "Great!"},
                {"name": f"{REVIEW_NAME}-unrated"},
            ]})

        gateway = _gateway(handler, settings)
        reviews = await gateway.list_reviews("accounts/1/locations/9")

        assert len(reviews) == 1
        assert reviews[0].rating == 5
        assert reviews[0].location_id == "accounts/1/locations/9"

    @pytest.mark.asyncio
    async def test_post_reply_puts_comment(self, settings):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"comment": "Thanks!", "updateTime": "2024-01-15T12:05:00Z"})

        gateway = _gateway(handler, settings)
        result = await gateway.post_reply(REVIEW_NAME, "Thanks!")

        assert result["comment"] == "Thanks!"
        assert requests[0].method == "PUT"
        assert str(requests[0].url) == f"{REVIEWS_API_BASE}/{REVIEW_NAME}/reply"
        assert json.loads(requests[0].content) == {"comment": "Thanks!"}

    @pytest.mark.asyncio
    async def test_refreshes_access_token(self, settings):
        def handler(request: httpx.Request) -> httpx.Response:
            if str(request.url) == TOKEN_URL:
                assert b"grant_type=refresh_token" in request.content
                return httpx.Response(200, json={"access_token": "fresh", "expires_in": 3600})
            assert request.headers["Authorization"] == "Bearer fresh"
            return httpx.Response(200, json={"accounts": []})

        gateway = _gateway(
            handler,
            settings,
            access_token=None,
            client_id="cid",
            client_secret="secret",
            refresh_token="refresh",
        )

        assert gateway.is_authenticated is True
        assert await gateway.list_accounts() == []

    @pytest.mark.asyncio
    async def test_rejected_refresh_token_is_auth_error(self, settings):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": "invalid_grant"})

        gateway = _gateway(
            handler,
            settings,
            access_token=None,
            client_id="cid",
            client_secret="secret",
            refresh_token="revoked",
        )

        with pytest.raises(GatewayAuthError):
            await gateway.list_accounts()

    @pytest.mark.asyncio
    async def test_no_credentials_is_auth_error(self, settings):
        gateway = _gateway(lambda request: httpx.Response(200), settings, access_token=None)

        assert gateway.is_authenticated is False
        with pytest.raises(GatewayAuthError):
            await gateway.list_accounts()

    @pytest.mark.asyncio
    async def test_401_maps_to_auth_error_and_drops_token(self, settings):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"error": {"message": "Token expired"}})

        gateway = _gateway(handler, settings)

        with pytest.raises(GatewayAuthError) as exc_info:
            await gateway.list_accounts()

        assert exc_info.value.status_code == 401
        assert "Token expired" in exc_info.value.message
        assert gateway.is_authenticated is False

    @pytest.mark.asyncio
    async def test_404_maps_to_not_found(self, settings):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"error": {"message": "Review not found"}})

        gateway = _gateway(handler, settings)

        with pytest.raises(GatewayNotFoundError):
            await gateway.update_reply(REVIEW_NAME, "Updated")

    @pytest.mark.asyncio
    async def test_rejected_reply_is_posting_error(self, settings):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": {"message": "Reply too long"}})

        gateway = _gateway(handler, settings)

        with pytest.raises(PostingError) as exc_info:
            await gateway.post_reply(REVIEW_NAME, "x" * 5000)

        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_non_json_error_body(self, settings):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, text="<html>Bad Request</html>")

        gateway = _gateway(handler, settings)

        with pytest.raises(PostingError) as exc_info:
            await gateway.post_reply(REVIEW_NAME, "Thanks")

        assert "Bad Request" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_delete_reply(self, settings):
        methods = []

        def handler(request: httpx.Request) -> httpx.Response:
            methods.append((request.method, str(request.url)))
            return httpx.Response(200, json={})

        gateway = _gateway(handler, settings)
        await gateway.delete_reply(REVIEW_NAME)

        assert methods == [("DELETE", f"{REVIEWS_API_BASE}/{REVIEW_NAME}/reply")]

    @pytest.mark.asyncio
    async def test_open_breaker_blocks_requests(self, settings, monkeypatch):
        monkeypatch.setattr(LiveGateway._request.retry, "wait", wait_none())
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"accounts": []})

        breaker = CircuitBreaker("google_business_isolated", failure_threshold=1)
        await breaker.record_failure()
        gateway = _gateway(handler, settings, breaker=breaker)

        with pytest.raises(GatewayUnavailableError):
            await gateway.list_accounts()

        assert requests == []
        assert get_circuit_breaker("google_business").is_open is False
        await gateway.aclose()
