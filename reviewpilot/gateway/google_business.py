"""Google Business Profile review gateway.

Talks to the Business Profile REST APIs with an OAuth access token that is
refreshed from a stored refresh token:

- Account Management v1: list accounts
- Business Information v1: list locations of an account
- My Business v4: list reviews, put/delete review replies

The authorization-code exchange that produces the refresh token happens
outside this service; pass the resulting tokens in via settings or
set_tokens().
"""

import re
import time
from datetime import datetime, timezone
from typing import Any, Optional

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from reviewpilot.config.settings import Settings, get_settings
from reviewpilot.core.circuit_breaker import CircuitBreaker, get_circuit_breaker
from reviewpilot.core.exceptions import (
    CircuitBreakerOpenError,
    GatewayAuthError,
    GatewayError,
    GatewayNotFoundError,
    GatewayRateLimitError,
    GatewayUnavailableError,
    PostingError,
)
from reviewpilot.gateway.base import ReviewGateway
from reviewpilot.models.schemas import STAR_RATING_MAP, Account, Location, Review
from reviewpilot.monitoring.metrics import track_gateway_operation

logger = structlog.get_logger(__name__)


# =============================================================================
# Constants
# =============================================================================

ACCOUNT_API_BASE = "https://mybusinessaccountmanagement.googleapis.com/v1"
BUSINESS_INFO_API_BASE = "https://mybusinessbusinessinformation.googleapis.com/v1"
REVIEWS_API_BASE = "https://mybusiness.googleapis.com/v4"
TOKEN_URL = "https://oauth2.googleapis.com/token"
BREAKER_NAME = "google_business"

LOCATION_READ_MASK = "name,title,storefrontAddress,categories"
REVIEWS_PAGE_SIZE = 50

# Refresh the access token this many seconds before Google expires it
TOKEN_EXPIRY_MARGIN = 60

_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


# =============================================================================
# Parsing
# =============================================================================


def parse_timestamp(value: Optional[str]) -> datetime:
    """Parse an RFC 3339 timestamp from Google (nanosecond precision allowed).

    Missing or unparseable values are treated as "now".
    """
    if not value:
        return datetime.now(timezone.utc)
    normalized = _FRACTION_RE.sub(r"\1", value.strip()).replace("Z", "+00:00")
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError:
        logger.warning("google_timestamp_unparseable", value=value)
        return datetime.now(timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_google_review(
    data: dict[str, Any],
    location_id: Optional[str] = None,
    review_id: Optional[str] = None,
) -> Optional[Review]:
    """Convert a v4 review resource into a Review.

    Returns None for reviews without a usable star rating or identifier.
    """
    name = review_id or data.get("name")
    if not name:
        logger.warning("google_review_missing_name")
        return None

    raw_rating = data.get("starRating")
    if isinstance(raw_rating, str):
        rating = STAR_RATING_MAP.get(raw_rating.upper())
    elif isinstance(raw_rating, int) and 1 <= raw_rating <= 5:
        rating = raw_rating
    else:
        rating = None
    if rating is None:
        logger.warning("google_review_unrated", review_id=name, star_rating=raw_rating)
        return None

    if location_id is None:
        location_id = name.split("/reviews/")[0] if "/reviews/" in name else ""

    reply = data.get("reviewReply") or data.get("reply") or {}
    reply_text = reply.get("comment") if isinstance(reply, dict) else reply

    return Review(
        id=name,
        location_id=location_id,
        rating=rating,
        text=data.get("comment") or "",
        reviewer_name=(data.get("reviewer") or {}).get("displayName"),
        created_at=parse_timestamp(data.get("createTime")),
        existing_reply=reply_text or None,
    )


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json() if response.content else {}
    except ValueError:
        return response.text[:200] or "Unknown error"
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict):
        return error.get("message", "Unknown error")
    return str(error) if error else "Unknown error"


def _format_address(address: dict[str, Any]) -> str:
    parts = list(address.get("addressLines") or [])
    for key in ("locality", "administrativeArea", "postalCode"):
        if address.get(key):
            parts.append(address[key])
    return ", ".join(parts) or "Address not available"


# =============================================================================
# Live Gateway
# =============================================================================


class LiveGateway(ReviewGateway):
    """Async client for the Google Business Profile review APIs.

    Example:
        gateway = LiveGateway()
        accounts = await gateway.list_accounts()
        locations = await gateway.list_locations(accounts[0].id)
        reviews = await gateway.list_reviews(locations[0].id)
        await gateway.post_reply(reviews[0].id, "Thanks for visiting!")
        await gateway.aclose()
    """

    name = "live"

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        refresh_token: Optional[str] = None,
        access_token: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        settings: Optional[Settings] = None,
        breaker: Optional[CircuitBreaker] = None,
    ):
        """Initialize the gateway.

        Args:
            client_id: OAuth client ID. Defaults to settings.
            client_secret: OAuth client secret. Defaults to settings.
            refresh_token: OAuth refresh token. Defaults to settings.
            access_token: Pre-issued access token (optional).
            timeout: Request timeout in seconds. Defaults to settings.
            http_client: Injected httpx client (tests use a MockTransport).
            breaker: Circuit breaker guarding API calls. Defaults to the
                shared "google_business" breaker.
        """
        settings = settings or get_settings()
        self._client_id = client_id or settings.google_client_id
        self._client_secret = client_secret or (
            settings.google_client_secret.get_secret_value()
            if settings.google_client_secret
            else None
        )
        self._refresh_token = refresh_token or (
            settings.google_refresh_token.get_secret_value()
            if settings.google_refresh_token
            else None
        )
        self._access_token = access_token
        self._token_expires_at: Optional[float] = None
        self._timeout = timeout or settings.gateway_timeout_seconds
        self._client = http_client
        self._breaker = breaker or get_circuit_breaker(
            BREAKER_NAME, failure_threshold=5, recovery_timeout=60
        )

    @property
    def is_authenticated(self) -> bool:
        return bool(self._access_token or self._refresh_token)

    def set_tokens(
        self,
        access_token: str,
        refresh_token: Optional[str] = None,
        expires_in: Optional[int] = None,
    ) -> None:
        """Install tokens obtained from the OAuth code exchange."""
        self._access_token = access_token
        if refresh_token:
            self._refresh_token = refresh_token
        self._token_expires_at = time.time() + expires_in if expires_in else None
        logger.info("google_tokens_set", has_refresh_token=bool(self._refresh_token))

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _token_valid(self) -> bool:
        if not self._access_token:
            return False
        if self._token_expires_at is None:
            return True
        return time.time() < self._token_expires_at - TOKEN_EXPIRY_MARGIN

    async def _get_access_token(self) -> str:
        """Return a valid access token, refreshing it when needed."""
        if self._token_valid():
            return self._access_token

        if not (self._refresh_token and self._client_id and self._client_secret):
            raise GatewayAuthError("Not authenticated with Google", status_code=401)

        client = self._ensure_client()
        try:
            response = await client.post(
                TOKEN_URL,
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": self._refresh_token,
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                },
            )
        except httpx.RequestError as e:
            raise GatewayUnavailableError(f"Token refresh failed: {e}", status_code=0) from e

        if response.status_code != 200:
            logger.error("google_token_refresh_failed", status_code=response.status_code)
            raise GatewayAuthError(
                "Google rejected the refresh token",
                status_code=response.status_code,
            )

        payload = response.json()
        self._access_token = payload["access_token"]
        expires_in = payload.get("expires_in")
        self._token_expires_at = time.time() + expires_in if expires_in else None
        logger.info("google_access_token_refreshed", expires_in=expires_in)
        return self._access_token

    @retry(
        retry=retry_if_exception_type((GatewayRateLimitError, GatewayUnavailableError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json_data: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """Make an API request with circuit breaker protection and retries.

        Raises:
            GatewayUnavailableError: Circuit open, network failure, or 5xx.
            GatewayRateLimitError: When rate limited.
            GatewayAuthError: On 401/403.
            GatewayNotFoundError: On 404.
            GatewayError: On other API errors.
        """
        try:
            self._breaker.guard()
        except CircuitBreakerOpenError as e:
            logger.warning("google_business_circuit_open", recovery_time=e.recovery_time, url=url)
            raise GatewayUnavailableError(str(e), status_code=503) from e

        token = await self._get_access_token()
        client = self._ensure_client()

        try:
            response = await client.request(
                method,
                url,
                params=params,
                json=json_data,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.TimeoutException as e:
            await self._breaker.record_failure()
            logger.error("google_business_timeout", url=url, error=str(e))
            raise GatewayUnavailableError(f"Request timeout: {e}", status_code=0) from e
        except httpx.RequestError as e:
            await self._breaker.record_failure()
            logger.error("google_business_request_error", url=url, error=str(e))
            raise GatewayUnavailableError(f"Request failed: {e}", status_code=0) from e

        status_code = response.status_code
        if status_code < 400:
            await self._breaker.record_success()
            return response.json() if response.content else {}

        error_msg = _error_message(response)
        details = {"url": url, "status_code": status_code}

        if status_code in (401, 403):
            if status_code == 401:
                # Force a refresh on the next call
                self._access_token = None
            raise GatewayAuthError(f"Google auth error: {error_msg}", status_code, details)
        if status_code == 404:
            raise GatewayNotFoundError(f"Resource not found: {error_msg}", status_code, details)
        if status_code == 429:
            await self._breaker.record_failure()
            logger.warning("google_business_rate_limited", url=url)
            raise GatewayRateLimitError("Rate limited by Google", status_code, details)
        if status_code >= 500:
            await self._breaker.record_failure()
            raise GatewayUnavailableError(f"Google API error {status_code}: {error_msg}", status_code, details)

        logger.error("google_business_api_error", status_code=status_code, error=error_msg, url=url)
        raise GatewayError(f"Google API error {status_code}: {error_msg}", status_code, details)

    async def _paginate(
        self, url: str, key: str, params: Optional[dict[str, Any]] = None,
    ) -> list[dict[str, Any]]:
        """Collect every page of a list endpoint."""
        items: list[dict[str, Any]] = []
        params = dict(params or {})
        while True:
            page = await self._request("GET", url, params=params)
            items.extend(page.get(key) or [])
            token = page.get("nextPageToken")
            if not token:
                return items
            params["pageToken"] = token

    # -------------------------------------------------------------------------
    # Public API Methods
    # -------------------------------------------------------------------------

    async def list_accounts(self) -> list[Account]:
        with track_gateway_operation(self.name, "list_accounts"):
            raw = await self._paginate(f"{ACCOUNT_API_BASE}/accounts", "accounts")
        accounts = [
            Account(
                id=a["name"],
                name=a.get("accountName") or "Unnamed Business",
                type=a.get("type") or "BUSINESS",
            )
            for a in raw
            if a.get("name")
        ]
        logger.info("google_accounts_listed", count=len(accounts))
        return accounts

    async def list_locations(self, account_id: str) -> list[Location]:
        with track_gateway_operation(self.name, "list_locations"):
            raw = await self._paginate(
                f"{BUSINESS_INFO_API_BASE}/{account_id}/locations",
                "locations",
                params={"readMask": LOCATION_READ_MASK},
            )
        locations = []
        for loc in raw:
            if not loc.get("name"):
                continue
            category = (loc.get("categories") or {}).get("primaryCategory") or {}
            locations.append(Location(
                # The v4 reviews API needs the account-qualified name
                id=f"{account_id}/{loc['name']}",
                account_id=account_id,
                name=loc.get("title") or loc["name"],
                primary_category=category.get("displayName") or "Business",
                address=_format_address(loc.get("storefrontAddress") or {}),
            ))
        logger.info("google_locations_listed", account_id=account_id, count=len(locations))
        return locations

    async def list_reviews(self, location_id: str) -> list[Review]:
        with track_gateway_operation(self.name, "list_reviews"):
            raw = await self._paginate(
                f"{REVIEWS_API_BASE}/{location_id}/reviews",
                "reviews",
                params={"pageSize": REVIEWS_PAGE_SIZE, "orderBy": "updateTime desc"},
            )
        reviews = [
            review for review in (parse_google_review(r, location_id) for r in raw)
            if review is not None
        ]
        logger.info("google_reviews_listed", location_id=location_id, count=len(reviews))
        return reviews

    async def post_reply(self, review_id: str, text: str) -> dict[str, Any]:
        logger.info("google_reply_posting", review_id=review_id, preview=text[:100])
        try:
            with track_gateway_operation(self.name, "post_reply"):
                return await self._request(
                    "PUT", f"{REVIEWS_API_BASE}/{review_id}/reply", json_data={"comment": text},
                )
        except (GatewayAuthError, GatewayNotFoundError, GatewayRateLimitError, GatewayUnavailableError):
            raise
        except GatewayError as e:
            raise PostingError(e.message, e.status_code, e.details) from e

    async def update_reply(self, review_id: str, text: str) -> dict[str, Any]:
        with track_gateway_operation(self.name, "update_reply"):
            return await self._request(
                "PUT", f"{REVIEWS_API_BASE}/{review_id}/reply", json_data={"comment": text},
            )

    async def delete_reply(self, review_id: str) -> None:
        with track_gateway_operation(self.name, "delete_reply"):
            await self._request("DELETE", f"{REVIEWS_API_BASE}/{review_id}/reply")
