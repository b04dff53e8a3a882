"""Training plan generation tool."""

import logging
import math
import re

from khepri_gateway.errors import ErrorCode, ToolFailure, ToolResult, ToolSuccess, failure
from khepri_gateway.periodization import MAX_WEEKS, MIN_WEEKS
from khepri_gateway.tools._base import ToolContext, ToolDefinition, ToolEntry
from khepri_gateway.validators import DATE_ONLY_PATTERN, is_number, parse_date

logger = logging.getLogger(__name__)

UUID_PATTERN = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", re.IGNORECASE | re.ASCII
)

GENERATE_PLAN = ToolDefinition(
    name="generate_plan",
    description=(
        "Generate a personalized training plan based on athlete goals, current fitness, and "
        "periodization science. Creates a structured multi-week plan with progressive overload "
        "and recovery cycles."
    ),
    properties={
        "goal_id": {
            "type": "string",
            "description": "UUID of the goal to build the plan toward. If omitted, generates a general fitness plan.",
        },
        "start_date": {
            "type": "string",
            "description": "Plan start date in YYYY-MM-DD format. Defaults to today if omitted.",
        },
        "total_weeks": {
            "type": "number",
            "description": (
                "Plan duration in weeks (4-52). If omitted, derived from goal target date "
                "or defaults to 12 weeks."
            ),
        },
    },
)


def _validate(tool_input: dict) -> ToolFailure | None:
    goal_id = tool_input.get("goal_id")
    if goal_id is not None and (not isinstance(goal_id, str) or not UUID_PATTERN.fullmatch(goal_id)):
        return failure("goal_id must be a valid UUID string")

    start_date = tool_input.get("start_date")
    if start_date is not None and (
        not isinstance(start_date, str)
        or not DATE_ONLY_PATTERN.fullmatch(start_date)
        or parse_date(start_date) is None
    ):
        return failure("start_date must be a valid date in YYYY-MM-DD format")

    total_weeks = tool_input.get("total_weeks")
    if total_weeks is not None:
        if not is_number(total_weeks) or not math.isfinite(total_weeks):
            return failure(f"total_weeks must be a number between {MIN_WEEKS} and {MAX_WEEKS}")
        if not float(total_weeks).is_integer() or not MIN_WEEKS <= total_weeks <= MAX_WEEKS:
            return failure(f"total_weeks must be an integer between {MIN_WEEKS} and {MAX_WEEKS}")
    return None


def _as_str(value, fallback: str = "") -> str:
    return value if isinstance(value, str) else fallback


def plan_summary(plan: dict) -> dict:
    """The fields the agent needs to describe a plan, without the weekly detail."""
    periodization = plan.get("periodization") or {}
    phases = periodization.get("phases") if isinstance(periodization, dict) else None
    return {
        "id": _as_str(plan.get("id")),
        "name": _as_str(plan.get("name")),
        "start_date": _as_str(plan.get("start_date")),
        "end_date": _as_str(plan.get("end_date")),
        "total_weeks": plan.get("total_weeks") if is_number(plan.get("total_weeks")) else 0,
        "status": _as_str(plan.get("status")),
        "goal_id": plan.get("goal_id") if isinstance(plan.get("goal_id"), str) else None,
        "phases": [
            {
                "phase": _as_str(p.get("phase")),
                "weeks": p.get("weeks") if is_number(p.get("weeks")) else 0,
                "focus": _as_str(p.get("focus")),
            }
            for p in (phases if isinstance(phases, list) else [])
            if isinstance(p, dict)
        ],
    }


async def handle_generate_plan(tool_input: dict, athlete_id: str, ctx: ToolContext) -> ToolResult:
    error = _validate(tool_input)
    if error:
        return error

    payload = {
        key: tool_input[key]
        for key in ("goal_id", "start_date", "total_weeks")
        if tool_input.get(key) is not None
    }
    if "total_weeks" in payload:
        payload["total_weeks"] = int(payload["total_weeks"])

    try:
        result = await ctx.plans.create_plan(athlete_id, payload)
    except Exception as e:
        logger.error(f"Plan creation failed for athlete {athlete_id}: {e}", exc_info=True)
        return failure(f"Plan generation failed: {e}", ErrorCode.GENERATE_PLAN_ERROR)

    if not isinstance(result, dict):
        return failure("Plan generation returned an unexpected response", ErrorCode.GENERATE_PLAN_ERROR)
    if result.get("success") is False and result.get("error"):
        return failure(f"Plan generation failed: {result['error']}", ErrorCode.GENERATE_PLAN_ERROR)
    if result.get("success") is not True or not isinstance(result.get("plan"), dict):
        return failure("Plan generation returned an unexpected response", ErrorCode.GENERATE_PLAN_ERROR)

    summary = plan_summary(result["plan"])
    return ToolSuccess(data={
        "message": f'Training plan "{summary["name"]}" created successfully',
        "plan": summary,
    })


PLAN_TOOLS = [ToolEntry(GENERATE_PLAN, handle_generate_plan)]
