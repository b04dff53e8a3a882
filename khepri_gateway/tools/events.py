"""Calendar event tools: read, create and update planned events."""

import logging

from khepri_gateway.errors import ErrorCode, ToolFailure, ToolResult, ToolSuccess, failure
from khepri_gateway.event_fields import (
    EVENT_TYPES,
    PRIORITIES,
    event_from_api,
    event_to_api_payload,
    normalize_input_field_names,
)
from khepri_gateway.sources import filter_events, resolve_date_range
from khepri_gateway.tools._base import ToolContext, ToolDefinition, ToolEntry
from khepri_gateway.validators import (
    normalize_event_type,
    validate_date_field,
    validate_event_id,
    validate_event_type,
    validate_non_empty_string,
    validate_non_negative_number,
    validate_priority,
)

logger = logging.getLogger(__name__)

DEFAULT_DAYS_FORWARD = 14

EVENT_PROPERTIES = {
    "name": {"type": "string", "description": "Event name"},
    "type": {
        "type": "string",
        "enum": [t.upper() for t in EVENT_TYPES],
        "description": "Event type",
    },
    "start_date_local": {"type": "string", "description": "Start date/time in ISO 8601 format"},
    "end_date_local": {"type": "string", "description": "End date/time for multi-day events (ISO 8601)"},
    "description": {"type": "string", "description": "Workout description or notes"},
    "category": {"type": "string", "description": "Activity category (Ride, Run, Swim, etc.)"},
    "moving_time": {"type": "number", "description": "Planned duration in seconds"},
    "icu_training_load": {"type": "number", "description": "Planned training load (TSS)"},
    "distance": {"type": "number", "description": "Planned distance in meters"},
    "indoor": {"type": "boolean", "description": "Whether this is an indoor workout"},
    "event_priority": {"type": "string", "enum": list(PRIORITIES), "description": "Race priority (A, B or C)"},
}

GET_EVENTS = ToolDefinition(
    name="get_events",
    description=(
        "Get upcoming calendar events from the athlete's Intervals.icu account. "
        "Returns planned workouts, races, rest days, and notes."
    ),
    properties={
        "oldest": {
            "type": "string",
            "description": "Start date for events (ISO 8601, e.g. 2026-02-14). Defaults to today.",
        },
        "newest": {
            "type": "string",
            "description": "End date for events (ISO 8601, e.g. 2026-02-28). Defaults to 14 days from today.",
        },
        "types": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Filter by event types: workout, race, note, rest_day, travel",
        },
        "category": {"type": "string", "description": "Filter by activity category (Ride, Run, Swim, etc.)"},
    },
)

CREATE_EVENT = ToolDefinition(
    name="create_event",
    description=(
        "Create a new event on the athlete's Intervals.icu calendar. "
        "Use this to schedule workouts, races, rest days, or notes."
    ),
    properties=EVENT_PROPERTIES,
    required=("name", "type", "start_date_local"),
)

UPDATE_EVENT = ToolDefinition(
    name="update_event",
    description=(
        "Update an existing event on the athlete's Intervals.icu calendar. "
        "Use this to modify scheduled workouts, change dates, or update descriptions."
    ),
    properties={
        "event_id": {"type": "string", "description": "The numeric ID of the event to update"},
        **EVENT_PROPERTIES,
    },
    required=("event_id",),
)


# --- get_events ---

def _parse_types(value) -> list[str] | None:
    """Known event types from the filter, lower-cased; unknown entries are dropped."""
    types = [t.lower() for t in value if isinstance(t, str) and t.lower() in EVENT_TYPES]
    return types or None


async def handle_get_events(tool_input: dict, athlete_id: str, ctx: ToolContext) -> ToolResult:
    error = (
        validate_date_field(tool_input.get("oldest"), "oldest", False)
        or validate_date_field(tool_input.get("newest"), "newest", False)
        or validate_non_empty_string(tool_input.get("category"), "category", False)
    )
    if error:
        return error
    raw_types = tool_input.get("types")
    if raw_types is not None and not isinstance(raw_types, list):
        return failure("types must be an array of event types")

    types = _parse_types(raw_types) if raw_types is not None else None
    category = tool_input.get("category")
    date_range = resolve_date_range(
        tool_input.get("oldest"),
        tool_input.get("newest"),
        ctx.today(),
        days_back=0,
        days_forward=DEFAULT_DAYS_FORWARD,
    )

    try:
        source = await ctx.data_source(athlete_id)
        events = filter_events(await source.events(date_range), date_range, types, category)
    except Exception as e:
        logger.warning(f"get_events failed for athlete {athlete_id}: {type(e).__name__}")
        return ToolFailure.from_exception(e, ErrorCode.GET_EVENTS_ERROR)

    return ToolSuccess(data={
        "events": [e.to_dict() for e in events],
        "total": len(events),
        "source": source.name,
        "date_range": {"oldest": date_range.oldest, "newest": date_range.newest},
        "filters_applied": {"types": types, "category": category},
    })


# --- create_event / update_event ---

def _validate_optional_fields(event: dict) -> ToolFailure | None:
    for key in ("description", "category"):
        if key in event and event[key] is not None and not isinstance(event[key], str):
            return failure(f"{key} must be a string")
    if event.get("indoor") is not None and not isinstance(event["indoor"], bool):
        return failure("indoor must be a boolean")
    return (
        validate_date_field(event.get("end_date_local"), "end_date_local", False)
        or validate_priority(event.get("event_priority"))
        or validate_non_negative_number(event.get("moving_time"), "moving_time", "seconds")
        or validate_non_negative_number(event.get("icu_training_load"), "icu_training_load")
        or validate_non_negative_number(event.get("distance"), "distance", "meters")
    )


def _event_response(raw: dict, action: str) -> ToolSuccess:
    event = event_from_api(raw if isinstance(raw, dict) else {})
    return ToolSuccess(data={"event": event.to_dict(), "message": f'Event "{event.name}" {action} successfully'})


def _no_credentials(verb: str) -> ToolFailure:
    return failure(
        f"Intervals.icu credentials not configured. Cannot {verb} events without API access.",
        ErrorCode.NO_CREDENTIALS,
    )


async def handle_create_event(tool_input: dict, athlete_id: str, ctx: ToolContext) -> ToolResult:
    event = normalize_input_field_names(tool_input)
    error = (
        validate_non_empty_string(event.get("name"), "name", True)
        or validate_event_type(event.get("type"))
        or validate_date_field(event.get("start_date_local"), "start_date_local", True)
        or _validate_optional_fields(event)
    )
    if error:
        return error

    event["type"] = normalize_event_type(event["type"])
    payload = event_to_api_payload(event)

    try:
        credentials = await ctx.vault.resolve(athlete_id)
        if credentials is None:
            return _no_credentials("create")
        created = await ctx.intervals.create_event(credentials, payload)
    except Exception as e:
        logger.warning(f"create_event failed for athlete {athlete_id}: {type(e).__name__}")
        return ToolFailure.from_exception(e, ErrorCode.CREATE_EVENT_ERROR)

    logger.info(f"Created Intervals.icu event for athlete {athlete_id}")
    return _event_response(created, "created")


async def handle_update_event(tool_input: dict, athlete_id: str, ctx: ToolContext) -> ToolResult:
    updates = normalize_input_field_names(tool_input)
    error = validate_event_id(updates.get("event_id"))
    if error:
        return error

    if updates.get("type") is not None:
        error = validate_event_type(updates["type"])
        if error:
            return error
        updates["type"] = normalize_event_type(updates["type"])

    error = (
        validate_non_empty_string(updates.get("name"), "name", False)
        or validate_date_field(updates.get("start_date_local"), "start_date_local", False)
        or _validate_optional_fields(updates)
    )
    if error:
        return error

    payload = event_to_api_payload(updates)
    if not payload:
        return failure("At least one field must be provided to update")

    event_id = str(updates["event_id"]).strip()
    if not isinstance(updates["event_id"], str):
        event_id = str(int(updates["event_id"]))

    try:
        credentials = await ctx.vault.resolve(athlete_id)
        if credentials is None:
            return _no_credentials("update")
        updated = await ctx.intervals.update_event(credentials, event_id, payload)
    except Exception as e:
        logger.warning(f"update_event failed for athlete {athlete_id}: {type(e).__name__}")
        return ToolFailure.from_exception(e, ErrorCode.UPDATE_EVENT_ERROR)

    logger.info(f"Updated Intervals.icu event {event_id} for athlete {athlete_id}")
    return _event_response(updated, "updated")


EVENT_TOOLS = [
    ToolEntry(GET_EVENTS, handle_get_events),
    ToolEntry(CREATE_EVENT, handle_create_event),
    ToolEntry(UPDATE_EVENT, handle_update_event),
]
