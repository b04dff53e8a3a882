"""Calendar event shape and its mapping to the Intervals.icu event shape."""

from typing import Literal, Optional

from pydantic import BaseModel

EventType = Literal["workout", "race", "note", "rest_day", "travel"]
Priority = Literal["A", "B", "C"]

EVENT_TYPES: tuple[str, ...] = ("workout", "race", "note", "rest_day", "travel")
PRIORITIES: tuple[str, ...] = ("A", "B", "C")

# CalendarEvent field -> Intervals.icu field
CALENDAR_TO_API: dict[str, str] = {
    "id": "id",
    "name": "name",
    "type": "type",
    "start_date": "start_date_local",
    "end_date": "end_date_local",
    "description": "description",
    "category": "category",
    "planned_duration": "moving_time",
    "planned_tss": "icu_training_load",
    "planned_distance": "distance",
    "indoor": "indoor",
    "priority": "event_priority",
}

API_TO_CALENDAR: dict[str, str] = {api: name for name, api in CALENDAR_TO_API.items()}

if len(API_TO_CALENDAR) != len(CALENDAR_TO_API):
    raise RuntimeError("CalendarEvent field map must be one-to-one")

# Fields accepted in POST/PUT bodies; id lives in the URL path
WRITABLE_API_FIELDS: tuple[str, ...] = tuple(api for api in CALENDAR_TO_API.values() if api != "id")
STRING_API_FIELDS = frozenset(
    {"name", "type", "start_date_local", "end_date_local", "description", "category", "event_priority"}
)
NUMBER_API_FIELDS = frozenset({"moving_time", "icu_training_load", "distance"})
BOOLEAN_API_FIELDS = frozenset({"indoor"})


class CalendarEvent(BaseModel):
    """Event shape exposed to the calling agent."""

    id: str
    name: str
    type: EventType
    start_date: str
    end_date: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    planned_duration: Optional[float] = None  # seconds
    planned_tss: Optional[float] = None
    planned_distance: Optional[float] = None  # meters
    indoor: Optional[bool] = None
    priority: Optional[Priority] = None

    def to_dict(self) -> dict:
        return self.model_dump(exclude_none=True)


def to_api_field(name: str) -> str:
    return CALENDAR_TO_API[name]


def from_api_field(api_name: str) -> str:
    return API_TO_CALENDAR[api_name]


def type_to_api(event_type: str) -> str:
    """Caller-facing lowercase type -> Intervals.icu uppercase type."""
    return event_type.upper()


def type_from_api(api_type: str | None) -> str:
    """Intervals.icu uppercase type -> caller-facing lowercase type.

    Unknown types fall back to ``workout``.
    """
    lowered = (api_type or "").lower()
    return lowered if lowered in EVENT_TYPES else "workout"


def event_from_api(raw: dict) -> CalendarEvent:
    """Map an Intervals.icu event dict onto a CalendarEvent."""
    fields = {}
    for api_name, value in raw.items():
        name = API_TO_CALENDAR.get(api_name)
        if name is None or value is None:
            continue
        fields[name] = value

    fields["id"] = str(raw.get("id", ""))
    fields["name"] = raw.get("name") or ""
    fields["start_date"] = raw.get("start_date_local") or ""
    fields["type"] = type_from_api(raw.get("type"))
    if fields.get("priority") not in PRIORITIES:
        fields.pop("priority", None)
    return CalendarEvent(**fields)


def normalize_input_field_names(tool_input: dict) -> dict:
    """Accept CalendarEvent names from the agent and rename them to API names.

    When both spellings are present the API name wins.
    """
    normalized = dict(tool_input)
    for name, api_name in CALENDAR_TO_API.items():
        if name == api_name or name not in tool_input:
            continue
        value = normalized.pop(name)
        normalized.setdefault(api_name, value)
    return normalized


def event_to_api_payload(tool_input: dict) -> dict:
    """Build a POST/PUT body from (already validated) API-named input.

    Only known fields of the right JSON type are copied; ``type`` is
    upper-cased for the API.
    """
    payload = {}
    for key in WRITABLE_API_FIELDS:
        value = tool_input.get(key)
        if key in STRING_API_FIELDS and isinstance(value, str):
            payload[key] = value
        elif key in NUMBER_API_FIELDS and isinstance(value, (int, float)) and not isinstance(value, bool):
            payload[key] = value
        elif key in BOOLEAN_API_FIELDS and isinstance(value, bool):
            payload[key] = value
    if "type" in payload:
        payload["type"] = type_to_api(payload["type"])
    return payload
