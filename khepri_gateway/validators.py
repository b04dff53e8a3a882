"""Shared input validators for tool schemas.

Each validator returns ``None`` when the value is acceptable, or a
``ToolFailure`` describing the first problem found. They never raise and
never perform I/O, so tools can chain them with ``or`` and short-circuit on
the first failure before touching the network.
"""

import math
import re
from datetime import date, datetime, timedelta

from khepri_gateway.errors import ErrorCode, ToolFailure, failure
from khepri_gateway.event_fields import EVENT_TYPES, PRIORITIES

DATE_ONLY_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}", re.ASCII)
ISO_DATETIME_PATTERN = re.compile(
    r"(?P<date>\d{4}-\d{2}-\d{2})"
    r"(?:T(?P<hour>\d{2}):(?P<minute>\d{2})"
    r"(?::(?P<second>\d{2})(?P<fraction>\.\d{1,6})?)?"
    r"(?P<offset>Z|[+-]\d{2}:\d{2})?)?",
    re.ASCII,
)
EVENT_ID_PATTERN = re.compile(r"\d+", re.ASCII)

_DATE_EXAMPLE = '(e.g., "2026-02-20" or "2026-02-20T07:00:00")'


def parse_date(value: str) -> date | None:
    """Parse a strict YYYY-MM-DD string; None for anything else (including 2026-02-30)."""
    if not isinstance(value, str) or not DATE_ONLY_PATTERN.fullmatch(value):
        return None
    try:
        parsed = date.fromisoformat(value)
    except ValueError:
        return None
    return parsed if parsed.isoformat() == value else None


def _is_real_instant(match: re.Match) -> bool:
    date_part = match.group("date")
    if parse_date(date_part) is None:
        return False
    if match.group("hour") is None:
        return True

    hour, minute = int(match.group("hour")), int(match.group("minute"))
    second = int(match.group("second") or 0)
    try:
        parsed = datetime.fromisoformat(f"{date_part}T{hour:02d}:{minute:02d}:{second:02d}")
    except ValueError:
        return False
    if parsed.strftime("%H:%M:%S") != f"{hour:02d}:{minute:02d}:{second:02d}":
        return False

    offset = match.group("offset")
    if offset and offset != "Z":
        offset_hours, offset_minutes = int(offset[1:3]), int(offset[4:6])
        if offset_minutes >= 60 or timedelta(hours=offset_hours, minutes=offset_minutes) > timedelta(hours=18):
            return False
    return True


def validate_date_field(value, field_name: str, required: bool) -> ToolFailure | None:
    if value is None:
        if required:
            return failure(f"{field_name} is required in ISO 8601 format {_DATE_EXAMPLE}", ErrorCode.INVALID_DATE)
        return None

    match = ISO_DATETIME_PATTERN.fullmatch(value) if isinstance(value, str) else None
    if match is None:
        return failure(f"{field_name} must be in ISO 8601 format {_DATE_EXAMPLE}", ErrorCode.INVALID_DATE)

    if not _is_real_instant(match):
        return failure(f"Invalid date: {value}", ErrorCode.INVALID_DATE)
    return None


def normalize_event_type(value: str, outbound: bool = False) -> str:
    """Canonical spelling of an already-validated event type.

    Inbound (towards Intervals.icu) is upper case; outbound (towards the
    caller) is lower case.
    """
    return value.lower() if outbound else value.upper()


def validate_event_type(value) -> ToolFailure | None:
    if not isinstance(value, str) or value.lower() not in EVENT_TYPES:
        allowed = ", ".join(t.upper() for t in EVENT_TYPES)
        return failure(f"Invalid event type: {value}. Must be one of: {allowed}", ErrorCode.INVALID_EVENT_TYPE)
    return None


def validate_priority(value) -> ToolFailure | None:
    if value is None:
        return None
    if not isinstance(value, str) or value not in PRIORITIES:
        return failure(f"Invalid event priority: {value}. Must be A, B, or C", ErrorCode.INVALID_PRIORITY)
    return None


def is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_non_negative_number(value, field_name: str, unit: str | None = None) -> ToolFailure | None:
    if value is None:
        return None
    if not is_number(value) or math.isnan(value) or math.isinf(value) or value < 0:
        suffix = f" ({unit})" if unit else ""
        return failure(f"{field_name} must be a non-negative number{suffix}")
    return None


def validate_non_empty_string(value, field_name: str, required: bool) -> ToolFailure | None:
    if value is None and not required:
        return None
    if not isinstance(value, str) or not value.strip():
        if required:
            return failure(f"{field_name} is required and must be a non-empty string")
        return failure(f"{field_name} must be a non-empty string")
    return None


def validate_event_id(value) -> ToolFailure | None:
    """event_id ends up in a URL path segment, so only plain digits pass."""
    if is_number(value) and float(value).is_integer() and value >= 0:
        value = str(int(value))
    if not isinstance(value, str) or not value.strip():
        return failure("event_id is required and must be a non-empty string")
    if not EVENT_ID_PATTERN.fullmatch(value.strip()):
        return failure("event_id must be a numeric value")
    return None
