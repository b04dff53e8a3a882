"""Tests for the Intervals.icu HTTP client and its error taxonomy."""

import base64
import json

import httpx
import pytest

from khepri_gateway.errors import ErrorCode, IntervalsApiError
from khepri_gateway.intervals import Credentials, IntervalsClient

CREDENTIALS = Credentials(external_athlete_id="i12345", api_key="secret-key")


def make_client(handler) -> IntervalsClient:
    return IntervalsClient(base_url="https://intervals.test/api/v1", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_basic_auth_uses_fixed_username():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"id": "i12345"})

    await make_client(handler).validate_credentials(CREDENTIALS)

    header = seen[0].headers["Authorization"]
    assert header.startswith("Basic ")
    assert base64.b64decode(header[6:]).decode() == "API_KEY:secret-key"


def test_credentials_repr_hides_api_key():
    assert "secret-key" not in repr(CREDENTIALS)


@pytest.mark.asyncio
async def test_get_sends_auth_and_query():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=[{"id": 1}])

    result = await make_client(handler).fetch_activities(CREDENTIALS, "2026-01-14", "2026-02-13")

    assert result == [{"id": 1}]
    request = seen[0]
    assert request.url.path == "/api/v1/athlete/i12345/activities"
    assert request.url.params["oldest"] == "2026-01-14"
    assert request.url.params["newest"] == "2026-02-13"
    assert request.headers["Authorization"] == "Basic " + base64.b64encode(b"API_KEY:secret-key").decode()


@pytest.mark.asyncio
async def test_put_sends_json_body():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"id": 42, "name": "Updated"})

    result = await make_client(handler).update_event(CREDENTIALS, "42", {"name": "Updated"})

    assert result["id"] == 42
    assert seen[0].method == "PUT"
    assert seen[0].url.path == "/api/v1/athlete/i12345/events/42"
    assert json.loads(seen[0].content) == {"name": "Updated"}


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [401, 403])
async def test_auth_failures_are_invalid_credentials(status):
    client = make_client(lambda request: httpx.Response(status, text="denied"))
    with pytest.raises(IntervalsApiError) as exc_info:
        await client.fetch_events(CREDENTIALS, "2026-02-13", "2026-02-27")
    assert exc_info.value.code == ErrorCode.INVALID_CREDENTIALS
    assert exc_info.value.status_code == status


@pytest.mark.asyncio
async def test_rate_limit_embeds_retry_after():
    client = make_client(lambda request: httpx.Response(429, headers={"Retry-After": "30"}))
    with pytest.raises(IntervalsApiError) as exc_info:
        await client.fetch_wellness(CREDENTIALS, "2026-02-06", "2026-02-13")
    assert exc_info.value.code == ErrorCode.RATE_LIMITED
    assert "30" in exc_info.value.message


@pytest.mark.asyncio
async def test_other_errors_carry_status_and_body():
    client = make_client(lambda request: httpx.Response(500, text="upstream exploded"))
    with pytest.raises(IntervalsApiError) as exc_info:
        await client.create_event(CREDENTIALS, {"name": "x"})
    assert exc_info.value.code == ErrorCode.API_ERROR
    assert exc_info.value.status_code == 500
    assert "upstream exploded" in exc_info.value.message


@pytest.mark.asyncio
async def test_invalid_json_is_api_error():
    client = make_client(lambda request: httpx.Response(200, text="<html>not json</html>"))
    with pytest.raises(IntervalsApiError) as exc_info:
        await client.validate_credentials(CREDENTIALS)
    assert exc_info.value.code == ErrorCode.API_ERROR
    assert "invalid JSON" in exc_info.value.message


@pytest.mark.asyncio
async def test_network_failure_has_status_zero():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(IntervalsApiError) as exc_info:
        await make_client(handler).fetch_activities(CREDENTIALS, "2026-01-14", "2026-02-13")
    assert exc_info.value.code == ErrorCode.NETWORK_ERROR
    assert exc_info.value.status_code == 0


@pytest.mark.asyncio
async def test_non_list_payload_is_rejected():
    client = make_client(lambda request: httpx.Response(200, json={"unexpected": True}))
    with pytest.raises(IntervalsApiError) as exc_info:
        await client.fetch_activities(CREDENTIALS, "2026-01-14", "2026-02-13")
    assert exc_info.value.code == ErrorCode.API_ERROR


@pytest.mark.asyncio
async def test_athlete_id_is_escaped_in_path():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"id": "x"})

    await make_client(handler).validate_credentials(Credentials(external_athlete_id="../admin", api_key="k"))
    assert "/athlete/..%2Fadmin" in seen[0].url.raw_path.decode()
