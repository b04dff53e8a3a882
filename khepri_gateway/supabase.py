"""Request-scoped client for Supabase auth, PostgREST and edge functions.

The client forwards the caller's own Authorization header so row-level
security applies to every query, mirroring how the mobile app talks to the
database.
"""

import logging
from typing import Any

import httpx

from khepri_gateway.config import settings

logger = logging.getLogger(__name__)

# PostgREST code for "single row requested, zero rows returned"
NO_ROWS_CODE = "PGRST116"
SINGLE_OBJECT = "application/vnd.pgrst.object+json"


class SupabaseError(Exception):
    def __init__(self, message: str, status_code: int = 0, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


class RowNotFoundError(SupabaseError):
    pass


class AuthError(SupabaseError):
    pass


def _error_from_response(response: httpx.Response) -> SupabaseError:
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    code = body.get("code")
    message = body.get("message") or body.get("msg") or body.get("error") or response.text or "request failed"
    if code == NO_ROWS_CODE:
        return RowNotFoundError(str(message), response.status_code, code)
    return SupabaseError(str(message), response.status_code, code)


class SupabaseClient:
    def __init__(
        self,
        authorization: str,
        url: str | None = None,
        anon_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = (url if url is not None else settings.supabase_url).rstrip("/")
        self.anon_key = anon_key if anon_key is not None else settings.supabase_anon_key
        self.timeout = timeout if timeout is not None else settings.http_timeout
        self._authorization = authorization
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.url and self.anon_key)

    async def _call(
        self,
        method: str,
        path: str,
        params: dict | None = None,
        json: Any = None,
        headers: dict | None = None,
    ) -> httpx.Response:
        request_headers = {
            "apikey": self.anon_key,
            "Authorization": self._authorization,
            "Content-Type": "application/json",
        }
        request_headers.update(headers or {})
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                return await client.request(
                    method, f"{self.url}{path}", params=params, json=json, headers=request_headers
                )
        except httpx.HTTPError as e:
            raise SupabaseError(f"Supabase request failed: {type(e).__name__}") from e

    # --- Auth ---

    async def get_user(self) -> dict:
        """Resolve the caller's JWT to an auth user."""
        response = await self._call("GET", "/auth/v1/user")
        if response.status_code != 200:
            raise AuthError("Unauthorized", response.status_code)
        user = response.json()
        if not isinstance(user, dict) or not user.get("id"):
            raise AuthError("Unauthorized", response.status_code)
        return user

    # --- PostgREST ---

    async def select_one(self, table: str, columns: str, filters: dict[str, Any]) -> dict:
        params = {"select": columns}
        params.update({column: f"eq.{value}" for column, value in filters.items()})
        response = await self._call("GET", f"/rest/v1/{table}", params=params, headers={"Accept": SINGLE_OBJECT})
        if response.status_code != 200:
            raise _error_from_response(response)
        return response.json()

    async def insert_one(self, table: str, row: dict) -> dict:
        response = await self._call(
            "POST",
            f"/rest/v1/{table}",
            json=row,
            headers={"Accept": SINGLE_OBJECT, "Prefer": "return=representation"},
        )
        if response.status_code not in (200, 201):
            raise _error_from_response(response)
        return response.json()

    async def upsert(self, table: str, row: dict, on_conflict: str) -> None:
        response = await self._call(
            "POST",
            f"/rest/v1/{table}",
            params={"on_conflict": on_conflict},
            json=row,
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
        )
        if response.status_code not in (200, 201, 204):
            raise _error_from_response(response)

    async def delete(self, table: str, filters: dict[str, Any]) -> None:
        params = {column: f"eq.{value}" for column, value in filters.items()}
        response = await self._call("DELETE", f"/rest/v1/{table}", params=params)
        if response.status_code not in (200, 204):
            raise _error_from_response(response)

    # --- Edge functions ---

    async def invoke_function(self, name: str, body: dict) -> Any:
        response = await self._call("POST", f"/functions/v1/{name}", json=body)
        if response.status_code != 200:
            raise _error_from_response(response)
        try:
            return response.json()
        except ValueError as e:
            raise SupabaseError(f"{name} returned invalid JSON", response.status_code) from e


async def find_athlete(client: SupabaseClient, auth_user_id: str, columns: str = "id") -> dict | None:
    """Athlete row linked to an auth user, or None when there is none."""
    try:
        return await client.select_one("athletes", columns, {"auth_user_id": auth_user_id})
    except RowNotFoundError:
        return None
