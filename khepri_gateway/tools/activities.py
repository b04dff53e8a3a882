"""Completed activities from Intervals.icu."""

import logging
import math

from khepri_gateway.errors import ErrorCode, ToolFailure, ToolResult, ToolSuccess, failure
from khepri_gateway.sources import filter_activities, resolve_date_range
from khepri_gateway.tools._base import DATE_RANGE_PROPERTIES, ToolContext, ToolDefinition, ToolEntry
from khepri_gateway.validators import is_number, validate_date_field, validate_non_empty_string

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10
MAX_LIMIT = 50
DEFAULT_DAYS_BACK = 30

GET_ACTIVITIES = ToolDefinition(
    name="get_activities",
    description=(
        "Get recent activities from the athlete's Intervals.icu account. "
        "Returns activity list with type, duration, distance, and training metrics."
    ),
    properties={
        "limit": {"type": "number", "description": "Maximum number of activities to return (default: 10, max: 50)"},
        **DATE_RANGE_PROPERTIES,
        "activity_type": {"type": "string", "description": "Filter by activity type (Ride, Run, Swim, etc.)"},
    },
)


def _validate(tool_input: dict) -> ToolFailure | None:
    limit = tool_input.get("limit")
    if limit is not None and (not is_number(limit) or not math.isfinite(limit)):
        return failure("limit must be a number")
    return (
        validate_date_field(tool_input.get("oldest"), "oldest", False)
        or validate_date_field(tool_input.get("newest"), "newest", False)
        or validate_non_empty_string(tool_input.get("activity_type"), "activity_type", False)
    )


async def handle_get_activities(tool_input: dict, athlete_id: str, ctx: ToolContext) -> ToolResult:
    error = _validate(tool_input)
    if error:
        return error

    limit = tool_input.get("limit")
    limit = DEFAULT_LIMIT if limit is None else min(max(1, math.floor(limit)), MAX_LIMIT)
    activity_type = tool_input.get("activity_type")
    date_range = resolve_date_range(
        tool_input.get("oldest"), tool_input.get("newest"), ctx.today(), days_back=DEFAULT_DAYS_BACK
    )

    try:
        source = await ctx.data_source(athlete_id)
        activities = filter_activities(await source.activities(date_range), date_range, activity_type, limit)
    except Exception as e:
        logger.warning(f"get_activities failed for athlete {athlete_id}: {type(e).__name__}")
        return ToolFailure.from_exception(e, ErrorCode.GET_ACTIVITIES_ERROR)

    return ToolSuccess(data={
        "activities": activities,
        "total": len(activities),
        "source": source.name,
        "date_range": {"oldest": date_range.oldest, "newest": date_range.newest},
        "filters_applied": {"limit": limit, "activity_type": activity_type},
    })


ACTIVITY_TOOLS = [ToolEntry(GET_ACTIVITIES, handle_get_activities)]
