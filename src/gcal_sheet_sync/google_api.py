"""
Authenticated JSON transport shared by the Calendar and Sheets clients.
"""

import asyncio
import logging
from typing import Any

import httpx

from gcal_sheet_sync.models import CalendarSyncError

logger = logging.getLogger(__name__)

# Retry on 429 Too Many Requests and 503 Service Unavailable with exponential backoff.
RATE_LIMIT_RETRY_STATUS_CODES = {429, 503}
RATE_LIMIT_MAX_RETRIES = 3
RATE_LIMIT_BASE_BACKOFF_SECONDS = 1.0

DEFAULT_TIMEOUT_SECONDS = 30.0


class GoogleAPIError(CalendarSyncError):
    """Raised when a Google API request fails or returns a non-2xx status."""

    def __init__(self, *, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"Google API request failed ({status_code}): {message}")


def safe_error_message(response: httpx.Response) -> str:
    """Extract a short, single-line error message from a Google error payload."""
    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        error_payload = payload.get("error")
        if isinstance(error_payload, dict):
            message = error_payload.get("message")
            if isinstance(message, str) and message.strip():
                return " ".join(message.split())[:200]
        if isinstance(error_payload, str) and error_payload.strip():
            return " ".join(error_payload.split())[:200]

    raw_text = response.text.strip()
    if raw_text:
        return " ".join(raw_text.split())[:200]
    return "Request failed without an error payload"


class GoogleAPIClient:
    """Bearer-token JSON client for one Google API base URL."""

    base_url = ""

    def __init__(
        self,
        access_token: str,
        http_client: httpx.AsyncClient | None = None,
        backoff_seconds: float = RATE_LIMIT_BASE_BACKOFF_SECONDS,
    ):
        self._access_token = access_token
        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=DEFAULT_TIMEOUT_SECONDS)
        self._backoff_seconds = backoff_seconds

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http_client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Send a request, retrying rate-limited responses."""
        url = f"{self.base_url}{path if path.startswith('/') else '/' + path}"

        attempt = 0
        response = await self._request_once(method, url, params=params, json_body=json_body)
        while (
            response.status_code in RATE_LIMIT_RETRY_STATUS_CODES
            and attempt < RATE_LIMIT_MAX_RETRIES
        ):
            backoff = self._retry_delay(response, attempt)
            logger.warning(
                "Google API rate-limited (status=%d), retrying in %.1fs (attempt %d/%d)",
                response.status_code,
                backoff,
                attempt + 1,
                RATE_LIMIT_MAX_RETRIES,
            )
            await asyncio.sleep(backoff)
            attempt += 1
            response = await self._request_once(method, url, params=params, json_body=json_body)
        return response

    def _retry_delay(self, response: httpx.Response, attempt: int) -> float:
        backoff = self._backoff_seconds * (2**attempt)
        # For 429 responses, respect the Retry-After header when present.
        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            if retry_after is not None:
                try:
                    backoff = float(retry_after)
                except ValueError:
                    pass
        return backoff

    async def _request_once(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None,
        json_body: dict[str, Any] | None,
    ) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self._access_token}"}
        try:
            return await self._http_client.request(
                method, url, params=params, json=json_body, headers=headers
            )
        except httpx.HTTPError as exc:
            raise GoogleAPIError(status_code=0, message=f"{type(exc).__name__}: {exc}") from exc

    async def _request_json(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        response = await self._request(method, path, params=params, json_body=json_body)
        return self._json_or_raise(response)

    @staticmethod
    def _json_or_raise(response: httpx.Response) -> dict[str, Any]:
        if response.status_code < 200 or response.status_code >= 300:
            raise GoogleAPIError(
                status_code=response.status_code,
                message=safe_error_message(response),
            )
        if response.status_code == 204 or not response.content:
            return {}
        try:
            payload = response.json()
        except ValueError as exc:
            raise GoogleAPIError(
                status_code=response.status_code,
                message="Google API returned invalid JSON for a successful response",
            ) from exc
        if not isinstance(payload, dict):
            raise GoogleAPIError(
                status_code=response.status_code,
                message="Google API returned an unexpected JSON payload shape",
            )
        return payload
