"""Plan creation: look up context, run periodization, persist the plan."""

import logging
from collections.abc import Callable
from datetime import date

from khepri_gateway.periodization import (
    MAX_WEEKS,
    MIN_WEEKS,
    build_training_plan,
    calculate_periodization,
    resolve_total_weeks,
)
from khepri_gateway.sources import utc_today
from khepri_gateway.supabase import RowNotFoundError, SupabaseClient, SupabaseError
from khepri_gateway.validators import is_number, parse_date

logger = logging.getLogger(__name__)

GOAL_COLUMNS = "id,title,goal_type,target_date,race_event_name,race_distance,priority"


def validate_plan_request(request: dict) -> str | None:
    """Error message for a malformed plan request, or None."""
    goal_id = request.get("goal_id")
    if goal_id is not None and not isinstance(goal_id, str):
        return "goal_id must be a string"

    start_date = request.get("start_date")
    if start_date is not None and parse_date(start_date) is None:
        return "start_date must be a valid date in YYYY-MM-DD format"

    total_weeks = request.get("total_weeks")
    if total_weeks is not None:
        if not is_number(total_weeks) or not float(total_weeks).is_integer():
            return "total_weeks must be an integer"
        if total_weeks < MIN_WEEKS or total_weeks > MAX_WEEKS:
            return f"total_weeks must be between {MIN_WEEKS} and {MAX_WEEKS}"
    return None


class PlanService:
    """Creates and stores a training plan for one athlete.

    Results are ``{"success": True, "plan": row}`` or
    ``{"success": False, "error": message}``.
    """

    def __init__(self, store: SupabaseClient, today: Callable[[], date] = utc_today):
        self.store = store
        self.today = today

    async def _load_goal(self, athlete_id: str, goal_id: str) -> dict | None:
        try:
            # scoped to the athlete so a foreign goal id looks like a missing one
            return await self.store.select_one("goals", GOAL_COLUMNS, {"id": goal_id, "athlete_id": athlete_id})
        except RowNotFoundError:
            return None

    async def create_plan(self, athlete_id: str, request: dict) -> dict:
        error = validate_plan_request(request)
        if error:
            return {"success": False, "error": error}

        try:
            athlete = await self.store.select_one("athletes", "id,display_name", {"id": athlete_id})
        except RowNotFoundError:
            return {"success": False, "error": "Athlete profile not found"}

        goal = None
        if request.get("goal_id") is not None:
            goal = await self._load_goal(athlete_id, request["goal_id"])
            if goal is None:
                return {"success": False, "error": "Goal not found or does not belong to this athlete"}

        start_date = request.get("start_date") or self.today().isoformat()
        requested_weeks = request.get("total_weeks")
        total_weeks = resolve_total_weeks(
            int(requested_weeks) if requested_weeks is not None else None, start_date, goal
        )

        periodization = calculate_periodization(total_weeks)
        plan = build_training_plan(athlete, goal, start_date, total_weeks, periodization)

        try:
            created = await self.store.insert_one("training_plans", plan)
        except SupabaseError as e:
            logger.error(f"Failed to save plan for athlete {athlete_id}: {e.message}")
            return {"success": False, "error": f"Failed to save plan: {e.message}"}

        logger.info(f"Created {total_weeks}-week plan for athlete {athlete_id}")
        return {"success": True, "plan": created}
