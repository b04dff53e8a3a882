"""Daily wellness metrics (fitness, fatigue, form, sleep, HRV)."""

import logging

from khepri_gateway.errors import ErrorCode, ToolFailure, ToolResult, ToolSuccess
from khepri_gateway.sources import filter_wellness, resolve_date_range
from khepri_gateway.tools._base import ToolContext, ToolDefinition, ToolEntry
from khepri_gateway.validators import validate_date_field

logger = logging.getLogger(__name__)

DEFAULT_DAYS_BACK = 7

GET_WELLNESS_DATA = ToolDefinition(
    name="get_wellness_data",
    description=(
        "Get wellness metrics from the athlete's Intervals.icu account. Returns daily wellness data "
        "including CTL/ATL/TSB (fitness/fatigue/form), resting HR, HRV, sleep, weight, and subjective metrics."
    ),
    properties={
        "oldest": {
            "type": "string",
            "description": "Start date for wellness data (ISO 8601, e.g. 2026-02-01). Defaults to 7 days ago.",
        },
        "newest": {
            "type": "string",
            "description": "End date for wellness data (ISO 8601, e.g. 2026-02-13). Defaults to today.",
        },
    },
)


def form_status(tsb: float) -> str:
    if tsb > 5:
        return "fresh"
    if tsb < -10:
        return "fatigued"
    return "optimal"


def _average(days: list[dict], key: str) -> float | None:
    values = [d[key] for d in days if d.get(key) is not None]
    if not values:
        return None
    return sum(values) / len(values)


def summarize(days: list[dict]) -> dict | None:
    if not days:
        return None
    latest = days[-1]
    avg_sleep = _average(days, "sleep_hours")
    avg_hrv = _average(days, "hrv")
    tsb = latest.get("tsb")
    return {
        "current_ctl": latest.get("ctl"),
        "current_atl": latest.get("atl"),
        "current_tsb": tsb,
        "form_status": form_status(tsb) if tsb is not None else None,
        "avg_sleep_hours": round(avg_sleep, 1) if avg_sleep is not None else None,
        "avg_hrv": round(avg_hrv) if avg_hrv is not None else None,
        "days_included": len(days),
    }


async def handle_get_wellness(tool_input: dict, athlete_id: str, ctx: ToolContext) -> ToolResult:
    error = validate_date_field(tool_input.get("oldest"), "oldest", False) or validate_date_field(
        tool_input.get("newest"), "newest", False
    )
    if error:
        return error

    date_range = resolve_date_range(
        tool_input.get("oldest"), tool_input.get("newest"), ctx.today(), days_back=DEFAULT_DAYS_BACK
    )

    try:
        source = await ctx.data_source(athlete_id)
        days = filter_wellness(await source.wellness(date_range), date_range)
    except Exception as e:
        logger.warning(f"get_wellness_data failed for athlete {athlete_id}: {type(e).__name__}")
        return ToolFailure.from_exception(e, ErrorCode.GET_WELLNESS_ERROR)

    days.sort(key=lambda d: d.get("date") or "")
    return ToolSuccess(data={
        "wellness": days,
        "summary": summarize(days),
        "source": source.name,
        "date_range": {"oldest": date_range.oldest, "newest": date_range.newest},
    })


WELLNESS_TOOLS = [ToolEntry(GET_WELLNESS_DATA, handle_get_wellness)]
