"""create_event / update_event: validation, credentials and API mapping."""

import pytest

from khepri_gateway.errors import ErrorCode
from khepri_gateway.tools.events import handle_create_event, handle_update_event

from conftest import ATHLETE_ID

VALID_EVENT = {
    "name": "Tempo Run",
    "type": "workout",
    "start_date_local": "2026-02-20T07:00:00",
    "category": "Run",
    "moving_time": 3600,
    "distance": 10000,
}


# --- create_event ---

@pytest.mark.asyncio
async def test_create_without_credentials_never_uses_mock(ctx, intervals_api):
    result = await handle_create_event(VALID_EVENT, ATHLETE_ID, ctx)

    assert result.success is False
    assert result.code == ErrorCode.NO_CREDENTIALS
    assert intervals_api.requests == []


@pytest.mark.asyncio
async def test_create_sends_api_shape(ctx, intervals_api, connected):
    intervals_api.respond("POST", "/athlete/i12345/events", json_body={
        "id": 555, "name": "Tempo Run", "type": "WORKOUT", "start_date_local": "2026-02-20T07:00:00",
        "category": "Run", "moving_time": 3600, "distance": 10000,
    })

    result = await handle_create_event(
        {**VALID_EVENT, "type": "Workout", "planned_tss": 60, "unexpected": "dropped"}, ATHLETE_ID, ctx
    )

    assert result.success is True
    assert intervals_api.json_bodies() == [{
        "name": "Tempo Run",
        "type": "WORKOUT",
        "start_date_local": "2026-02-20T07:00:00",
        "category": "Run",
        "moving_time": 3600,
        "icu_training_load": 60,
        "distance": 10000,
    }]
    assert result.data["event"]["id"] == "555"
    assert result.data["event"]["type"] == "workout"
    assert result.data["message"] == 'Event "Tempo Run" created successfully'


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "override, code",
    [
        ({"name": "  "}, ErrorCode.INVALID_INPUT),
        ({"type": "intervals"}, ErrorCode.INVALID_EVENT_TYPE),
        ({"start_date_local": None}, ErrorCode.INVALID_DATE),
        ({"start_date_local": "2026-02-30"}, ErrorCode.INVALID_DATE),
        ({"end_date_local": "tomorrow"}, ErrorCode.INVALID_DATE),
        ({"event_priority": "D"}, ErrorCode.INVALID_PRIORITY),
        ({"moving_time": -60}, ErrorCode.INVALID_INPUT),
        ({"distance": float("inf")}, ErrorCode.INVALID_INPUT),
        ({"icu_training_load": float("nan")}, ErrorCode.INVALID_INPUT),
        ({"indoor": "yes"}, ErrorCode.INVALID_INPUT),
        ({"description": 42}, ErrorCode.INVALID_INPUT),
    ],
)
async def test_create_validation_happens_before_io(ctx, intervals_api, connected, override, code):
    result = await handle_create_event({**VALID_EVENT, **override}, ATHLETE_ID, ctx)
    assert result.success is False
    assert result.code == code
    assert intervals_api.requests == []


@pytest.mark.asyncio
async def test_create_accepts_calendar_field_names(ctx, intervals_api, connected):
    intervals_api.respond("POST", "/athlete/i12345/events", json_body={"id": 1, "name": "A race"})
    result = await handle_create_event(
        {"name": "A race", "type": "RACE", "start_date": "2026-05-01", "priority": "A", "planned_duration": 7200},
        ATHLETE_ID,
        ctx,
    )
    assert result.success is True
    body = intervals_api.json_bodies()[0]
    assert body["start_date_local"] == "2026-05-01"
    assert body["event_priority"] == "A"
    assert body["moving_time"] == 7200


# --- update_event ---

@pytest.mark.asyncio
async def test_update_rejects_non_numeric_id_without_io(ctx, intervals_api, connected):
    result = await handle_update_event({"event_id": "abc"}, ATHLETE_ID, ctx)
    assert result.success is False
    assert result.code == ErrorCode.INVALID_INPUT
    assert result.error == "event_id must be a numeric value"
    assert intervals_api.requests == []


@pytest.mark.asyncio
async def test_update_requires_a_field_before_credentials(ctx):
    # no credentials stored: the empty update is reported, not NO_CREDENTIALS
    result = await handle_update_event({"event_id": "123"}, ATHLETE_ID, ctx)
    assert result.code == ErrorCode.INVALID_INPUT
    assert result.error == "At least one field must be provided to update"


@pytest.mark.asyncio
async def test_update_without_credentials(ctx, intervals_api):
    result = await handle_update_event({"event_id": "123", "name": "Moved"}, ATHLETE_ID, ctx)
    assert result.code == ErrorCode.NO_CREDENTIALS
    assert intervals_api.requests == []


@pytest.mark.asyncio
async def test_update_sends_only_given_fields(ctx, intervals_api, connected):
    intervals_api.respond("PUT", "/athlete/i12345/events/123", json_body={
        "id": 123, "name": "Moved", "type": "NOTE", "start_date_local": "2026-02-22",
    })

    result = await handle_update_event(
        {"event_id": " 123 ", "name": "Moved", "type": "note", "start_date_local": "2026-02-22"}, ATHLETE_ID, ctx
    )

    assert result.success is True
    assert intervals_api.requests[0].method == "PUT"
    assert intervals_api.json_bodies() == [{"name": "Moved", "type": "NOTE", "start_date_local": "2026-02-22"}]
    assert result.data["event"]["type"] == "note"
    assert result.data["message"] == 'Event "Moved" updated successfully'


@pytest.mark.asyncio
async def test_update_maps_upstream_not_found(ctx, intervals_api, connected):
    result = await handle_update_event({"event_id": "999", "name": "Ghost"}, ATHLETE_ID, ctx)
    assert result.success is False
    assert result.code == ErrorCode.API_ERROR
    assert "404" in result.error
