"""HTTP client for the Intervals.icu API."""

import logging
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import httpx

from khepri_gateway.config import settings
from khepri_gateway.errors import ErrorCode, IntervalsApiError

logger = logging.getLogger(__name__)

# Intervals.icu personal API keys use a fixed Basic-auth username.
API_KEY_USERNAME = "API_KEY"


@dataclass(frozen=True)
class Credentials:
    """Decrypted Intervals.icu credentials. Lives for a single request only."""

    external_athlete_id: str
    api_key: str = field(repr=False)


def _raise_for_status(response: httpx.Response) -> None:
    status = response.status_code
    if 200 <= status < 300:
        return
    if status in (401, 403):
        raise IntervalsApiError(
            "Invalid or expired Intervals.icu credentials", status, ErrorCode.INVALID_CREDENTIALS
        )
    if status == 429:
        retry_after = response.headers.get("Retry-After")
        suffix = f" (retry after {retry_after}s)" if retry_after else ""
        raise IntervalsApiError(f"Intervals.icu rate limit exceeded{suffix}", status, ErrorCode.RATE_LIMITED)
    raise IntervalsApiError(f"Intervals.icu API error: {status} - {response.text}", status, ErrorCode.API_ERROR)


def _expect_list(payload: Any, what: str) -> list[dict]:
    if not isinstance(payload, list):
        raise IntervalsApiError(f"Intervals.icu returned an unexpected {what} payload", 200, ErrorCode.API_ERROR)
    return payload


class IntervalsClient:
    """Thin async wrapper around the athlete-scoped Intervals.icu endpoints.

    Every failure surfaces as ``IntervalsApiError``; nothing is retried here.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.intervals_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.http_timeout
        self._transport = transport

    async def request(
        self,
        credentials: Credentials,
        method: str,
        path: str = "",
        params: dict | None = None,
        json: dict | None = None,
    ) -> Any:
        """Make an authenticated call below ``/athlete/{id}``."""
        athlete = quote(credentials.external_athlete_id, safe="")
        url = f"{self.base_url}/athlete/{athlete}{path}"
        auth = httpx.BasicAuth(API_KEY_USERNAME, credentials.api_key)
        headers = {"Accept": "application/json"}
        if json is not None:
            headers["Content-Type"] = "application/json"

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                if method == "GET":
                    response = await client.get(url, headers=headers, params=params, auth=auth)
                else:
                    response = await client.request(method, url, headers=headers, json=json, auth=auth)
        except httpx.HTTPError as e:
            logger.warning(f"Intervals.icu {method} {path or '/'} failed: {type(e).__name__}")
            raise IntervalsApiError(
                f"Intervals.icu network error: {e or 'connection failed'}", 0, ErrorCode.NETWORK_ERROR
            ) from e

        _raise_for_status(response)

        try:
            return response.json()
        except ValueError as e:
            raise IntervalsApiError(
                "Intervals.icu returned invalid JSON", response.status_code, ErrorCode.API_ERROR
            ) from e

    # --- Read endpoints ---

    async def fetch_activities(self, credentials: Credentials, oldest: str, newest: str) -> list[dict]:
        payload = await self.request(credentials, "GET", "/activities", params={"oldest": oldest, "newest": newest})
        return _expect_list(payload, "activities")

    async def fetch_wellness(self, credentials: Credentials, oldest: str, newest: str) -> list[dict]:
        payload = await self.request(credentials, "GET", "/wellness", params={"oldest": oldest, "newest": newest})
        return _expect_list(payload, "wellness")

    async def fetch_events(self, credentials: Credentials, oldest: str, newest: str) -> list[dict]:
        payload = await self.request(credentials, "GET", "/events", params={"oldest": oldest, "newest": newest})
        return _expect_list(payload, "events")

    # --- Write endpoints ---

    async def create_event(self, credentials: Credentials, event: dict) -> dict:
        return await self.request(credentials, "POST", "/events", json=event)

    async def update_event(self, credentials: Credentials, event_id: str, updates: dict) -> dict:
        return await self.request(credentials, "PUT", f"/events/{quote(event_id, safe='')}", json=updates)

    async def validate_credentials(self, credentials: Credentials) -> dict:
        """Fetch the athlete profile once to prove the key works."""
        return await self.request(credentials, "GET")
