"""Shared fixtures: an in-memory data store and a fake Intervals.icu API."""

import json
from datetime import date

import httpx
import pytest

from khepri_gateway.intervals import Credentials, IntervalsClient
from khepri_gateway.plan_service import PlanService
from khepri_gateway.supabase import AuthError, RowNotFoundError, SupabaseError
from khepri_gateway.tools._base import ToolContext
from khepri_gateway.vault import CredentialVault

TODAY = date(2026, 2, 13)
ENCRYPTION_KEY = "0123456789abcdef" * 4
ATHLETE_ID = "athlete-1"
INTERVALS_BASE_URL = "https://intervals.test/api/v1"


class FakeStore:
    """Stands in for SupabaseClient: rows per table, filtered by equality."""

    def __init__(self, configured: bool = True):
        self.configured = configured
        self.tables: dict[str, list[dict]] = {}
        self.user: dict | None = {"id": "auth-user-1"}
        self.function_calls: list[tuple[str, dict]] = []
        self.function_response = {"results": []}
        self.fail_with: SupabaseError | None = None

    def add(self, table: str, row: dict) -> None:
        self.tables.setdefault(table, []).append(dict(row))

    def _rows(self, table: str, filters: dict) -> list[dict]:
        return [
            row
            for row in self.tables.get(table, [])
            if all(str(row.get(k)) == str(v) for k, v in filters.items())
        ]

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    async def get_user(self) -> dict:
        if self.user is None:
            raise AuthError("Unauthorized", 401)
        return self.user

    async def select_one(self, table: str, columns: str, filters: dict) -> dict:
        self._check()
        rows = self._rows(table, filters)
        if len(rows) != 1:
            raise RowNotFoundError("JSON object requested, multiple (or no) rows returned", 406, "PGRST116")
        wanted = columns.split(",")
        return {k: v for k, v in rows[0].items() if k in wanted}

    async def insert_one(self, table: str, row: dict) -> dict:
        self._check()
        created = {"id": f"{table}-{len(self.tables.get(table, [])) + 1}", **row}
        self.add(table, created)
        return created

    async def upsert(self, table: str, row: dict, on_conflict: str) -> None:
        self._check()
        rows = self.tables.setdefault(table, [])
        for existing in rows:
            if existing.get(on_conflict) == row[on_conflict]:
                existing.update(row)
                return
        rows.append({"created_at": "2026-02-01T00:00:00+00:00", **row})

    async def delete(self, table: str, filters: dict) -> None:
        self._check()
        self.tables[table] = [r for r in self.tables.get(table, []) if r not in self._rows(table, filters)]

    async def invoke_function(self, name: str, body: dict):
        self._check()
        self.function_calls.append((name, body))
        return self.function_response


class FakeIntervals:
    """Records requests and answers them from a route table."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.routes: dict[tuple[str, str], httpx.Response] = {}

    def respond(self, method: str, path: str, status_code: int = 200, json_body=None, **kwargs) -> None:
        if json_body is not None:
            kwargs["json"] = json_body
        self.routes[(method, path)] = httpx.Response(status_code, **kwargs)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/api/v1")
        response = self.routes.get((request.method, path))
        if response is None:
            return httpx.Response(404, text="not found")
        return response

    def json_bodies(self) -> list:
        return [json.loads(r.content) for r in self.requests if r.content]


@pytest.fixture
def store() -> FakeStore:
    store = FakeStore()
    store.add("athletes", {"id": ATHLETE_ID, "auth_user_id": "auth-user-1", "display_name": "Sam"})
    return store


@pytest.fixture
def intervals_api() -> FakeIntervals:
    return FakeIntervals()


@pytest.fixture
def vault(store) -> CredentialVault:
    return CredentialVault(store, ENCRYPTION_KEY)


@pytest.fixture
def ctx(store, vault, intervals_api) -> ToolContext:
    return ToolContext(
        store=store,
        vault=vault,
        intervals=IntervalsClient(base_url=INTERVALS_BASE_URL, transport=httpx.MockTransport(intervals_api.handler)),
        plans=PlanService(store, today=lambda: TODAY),
        today=lambda: TODAY,
    )


@pytest.fixture
def connected(store, vault) -> Credentials:
    """Store encrypted credentials for the test athlete."""
    credentials = Credentials(external_athlete_id="i12345", api_key="secret-key")
    store.add(
        "intervals_credentials",
        {
            "athlete_id": ATHLETE_ID,
            "intervals_athlete_id": credentials.external_athlete_id,
            "encrypted_api_key": vault.encrypt(credentials.api_key),
        },
    )
    return credentials
