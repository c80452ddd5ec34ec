"""Tests for the HTTP API, driven in-process through httpx's ASGI transport."""

import base64
import hashlib
import hmac
import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import pytest_asyncio
from pydantic import SecretStr

from reviewpilot.api.dependencies import set_automation_service
from reviewpilot.api.main import app
from reviewpilot.api.routes.webhooks import _event_stream
from reviewpilot.automation.service import AutomationService
from reviewpilot.config.settings import get_settings
from reviewpilot.gateway.mock import MockGateway
from reviewpilot.models.schemas import AutomationSettings
from reviewpilot.services.response_generator import FALLBACK_RESPONSES

REVIEW_ID = "accounts/1/locations/2/reviews/r1"


def _notification(review_name: str, rating: str = "FIVE") -> dict:
    data = {"starRating": rating, "comment": "Lovely!", "reviewer": {"displayName": "Jo"}}
    return {
        "eventType": "review.create",
        "message": {
            "data": base64.b64encode(json.dumps(data).encode()).decode(),
            "attributes": {
                "reviewName": review_name,
                "locationName": review_name.split("/reviews/")[0],
            },
        },
    }


@pytest.fixture
def gateway(make_review):
    return MockGateway(reviews=[make_review(review_id=REVIEW_ID)])


@pytest_asyncio.fixture
async def service(settings, gateway):
    service = AutomationService(settings, gateway=gateway)
    set_automation_service(service)
    yield service
    await service.shutdown()


@pytest_asyncio.fixture
async def client(service):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


class TestHealth:
    @pytest.mark.asyncio
    async def test_liveness(self, client):
        response = await client.get("/health/live")

        assert response.status_code == 200
        assert response.json()["status"] == "alive"

    @pytest.mark.asyncio
    async def test_health_reports_components(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert set(body["services"]) == {"gateway", "generator", "scheduler"}
        assert body["services"]["gateway"]["status"] == "healthy"
        # No draft backend and polling stopped
        assert body["status"] == "degraded"

    @pytest.mark.asyncio
    async def test_metrics_exposed(self, client):
        response = await client.get("/metrics/")

        assert response.status_code == 200


class TestAutomationRoutes:
    """Test start/stop, settings and preview endpoints."""

    @pytest.mark.asyncio
    async def test_status_before_start(self, client):
        response = await client.get("/api/v1/automation/status")

        assert response.status_code == 200
        body = response.json()
        assert body["is_running"] is False
        assert body["processed_count"] == 0
        assert body["settings"]["auto_respond_enabled"] is False

    @pytest.mark.asyncio
    async def test_start_and_stop(self, client, service, gateway):
        response = await client.post(
            "/api/v1/automation/start",
            json={"settings": {"auto_respond_enabled": True}},
        )
        await service.scheduler.wait_idle()

        assert response.status_code == 200
        assert response.json()["status"]["is_running"] is True
        assert gateway.post_calls == [(REVIEW_ID, FALLBACK_RESPONSES[5])]

        response = await client.post("/api/v1/automation/stop")

        assert response.status_code == 200
        assert response.json()["status"]["is_running"] is False

    @pytest.mark.asyncio
    async def test_start_without_body(self, client):
        response = await client.post("/api/v1/automation/start")

        assert response.status_code == 200
        assert response.json()["status"]["is_running"] is True

    @pytest.mark.asyncio
    async def test_start_without_backend_is_400(self, settings, gateway):
        strict = settings.model_copy(update={"allow_fallback_only": False})
        set_automation_service(AutomationService(strict, gateway=gateway))

        async with httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        ) as client:
            response = await client.post("/api/v1/automation/start", json={"settings": {}})

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "configuration_error"
        assert body["detail"] == "anthropic_api_key"

    @pytest.mark.asyncio
    async def test_update_settings(self, client):
        response = await client.put(
            "/api/v1/automation/settings",
            json={"settings": {"tone": "warm", "business_info": {"name": "Cafe Uno"}}},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["settings"]["tone"] == "warm"
        assert body["settings"]["business_info"]["name"] == "Cafe Uno"
        assert body["status"]["is_running"] is False

    @pytest.mark.asyncio
    async def test_update_settings_rejects_bad_value(self, client):
        response = await client.put(
            "/api/v1/automation/settings",
            json={"settings": {"auto_respond_enabled": "sometimes"}},
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_update_settings_requires_body(self, client):
        response = await client.put("/api/v1/automation/settings", json={})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_preview_draft_posts_nothing(self, client, service, gateway):
        response = await client.post(
            "/api/v1/automation/test",
            json={"rating": 1, "text": "Cold food."},
        )

        assert response.status_code == 200
        assert response.json()["response"] == FALLBACK_RESPONSES[1]
        assert gateway.post_calls == []
        assert service.ledger.size() == 0

    @pytest.mark.asyncio
    async def test_preview_rejects_bad_rating(self, client):
        response = await client.post("/api/v1/automation/test", json={"rating": 6})

        assert response.status_code == 422


class TestReviewRoutes:
    """Test gateway passthrough endpoints and error mapping."""

    @pytest.mark.asyncio
    async def test_list_accounts_and_locations(self, client):
        accounts = await client.get("/api/v1/reviews/accounts")
        locations = await client.get("/api/v1/reviews/locations/accounts/1")

        assert [a["id"] for a in accounts.json()] == ["accounts/1"]
        assert [loc["id"] for loc in locations.json()] == ["accounts/1/locations/2"]

    @pytest.mark.asyncio
    async def test_list_reviews(self, client):
        response = await client.get(
            "/api/v1/reviews", params={"location_id": "accounts/1/locations/2"}
        )

        assert response.status_code == 200
        assert [r["id"] for r in response.json()] == [REVIEW_ID]

    @pytest.mark.asyncio
    async def test_put_and_delete_reply(self, client, gateway):
        response = await client.put(
            "/api/v1/reviews/reply", json={"review_id": REVIEW_ID, "text": "Thank you!"}
        )

        assert response.status_code == 200
        assert response.json()["reply"]["comment"] == "Thank you!"
        assert gateway.replies[REVIEW_ID] == "Thank you!"

        response = await client.delete("/api/v1/reviews/reply", params={"review_id": REVIEW_ID})

        assert response.status_code == 200
        assert REVIEW_ID not in gateway.replies

    @pytest.mark.asyncio
    async def test_unknown_review_is_404(self, client):
        response = await client.put(
            "/api/v1/reviews/reply",
            json={"review_id": "accounts/1/locations/2/reviews/missing", "text": "Hi"},
        )

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_unauthenticated_gateway_is_401(self, client, gateway):
        gateway.authenticated = False

        response = await client.get("/api/v1/reviews/accounts")

        assert response.status_code == 401
        assert response.json()["error"] == "gateway_auth_error"


class TestWebhookRoutes:
    """Test push notifications, verification and the event stream."""

    @pytest.mark.asyncio
    async def test_review_notification_is_answered(self, settings, gateway):
        service = AutomationService(
            settings,
            gateway=gateway,
            automation_settings=AutomationSettings(auto_respond_enabled=True),
        )
        set_automation_service(service)
        review_name = "accounts/1/locations/2/reviews/pushed"

        async with httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        ) as client:
            response = await client.post(
                "/api/v1/webhooks/google", json=_notification(review_name)
            )
        await service.scheduler.wait_idle()

        assert response.status_code == 200
        assert response.json()["status"] == "received"
        assert response.json()["review_id"] == review_name
        assert [call[0] for call in gateway.post_calls] == [review_name]
        await service.shutdown()

    @pytest.mark.asyncio
    async def test_non_review_event_acknowledged(self, client, service):
        client_id, queue = service.sink.subscribe()

        response = await client.post(
            "/api/v1/webhooks/google",
            json={"eventType": "location.updated", "message": {"data": {"name": "x"}}},
        )

        assert response.json()["status"] == "received"
        assert queue.get_nowait()["type"] == "location_updated"
        service.sink.unsubscribe(client_id)

    @pytest.mark.asyncio
    async def test_unparseable_body_still_acknowledged(self, client):
        response = await client.post(
            "/api/v1/webhooks/google",
            content=b"not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 200
        assert response.json()["status"] == "error"

    @pytest.mark.asyncio
    async def test_invalid_signature_rejected(self, client, settings):
        signed = settings.model_copy(update={"google_webhook_secret": SecretStr("s3cret")})
        app.dependency_overrides[get_settings] = lambda: signed

        response = await client.post(
            "/api/v1/webhooks/google",
            json=_notification(REVIEW_ID),
            headers={"X-Goog-Signature": "sha256=deadbeef"},
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_valid_signature_accepted(self, client, settings):
        signed = settings.model_copy(update={"google_webhook_secret": SecretStr("s3cret")})
        app.dependency_overrides[get_settings] = lambda: signed
        body = json.dumps(_notification(REVIEW_ID)).encode()
        signature = hmac.new(b"s3cret", body, hashlib.sha256).hexdigest()

        response = await client.post(
            "/api/v1/webhooks/google",
            content=body,
            headers={"Content-Type": "application/json", "X-Goog-Signature": f"sha256={signature}"},
        )

        assert response.status_code == 200
        assert response.json()["status"] == "received"

    @pytest.mark.asyncio
    async def test_verify_echoes_challenge(self, client):
        response = await client.get(
            "/api/v1/webhooks/google/verify", params={"challenge": "abc123"}
        )

        assert response.status_code == 200
        assert response.text == "abc123"

    @pytest.mark.asyncio
    async def test_simulated_review(self, client):
        response = await client.post("/api/v1/webhooks/test")

        assert response.status_code == 200
        assert response.json()["review_id"].startswith(
            "accounts/test-account/locations/test-location/reviews/test-"
        )

    @pytest.mark.asyncio
    async def test_stats(self, client):
        response = await client.get("/api/v1/webhooks/stats")

        assert response.status_code == 200
        assert response.json()["subscribers"] == 0

    @pytest.mark.asyncio
    async def test_event_stream_frames(self, service):
        request = MagicMock()
        request.is_disconnected = AsyncMock(side_effect=[False, True])
        stream = _event_stream(request, service)

        connected = await stream.__anext__()
        await service.sink.publish("automation_success", {"review_id": REVIEW_ID})
        frame = await stream.__anext__()

        assert connected.startswith("event: connected\n")
        assert "event: automation_success\n" in frame
        assert REVIEW_ID in frame

        with pytest.raises(StopAsyncIteration):
            await stream.__anext__()
        assert service.sink.get_stats()["subscribers"] == 0
