"""Training-plan periodization.

Pure functions, no I/O. A plan is split into phases (base, build, peak,
taper) and every week gets a volume multiplier following a 3:1 wave:
three progressively harder weeks, then a recovery week.
"""

from dataclasses import asdict, dataclass
from datetime import date, timedelta

from khepri_gateway.validators import parse_date

MIN_WEEKS = 4
MAX_WEEKS = 52
DEFAULT_WEEKS = 12

# phase -> (focus, (low, moderate, high) intensity %)
PHASE_PROFILES: dict[str, tuple[str, tuple[int, int, int]]] = {
    "base": ("aerobic_endurance", (80, 15, 5)),
    "build": ("threshold_work", (70, 20, 10)),
    "peak": ("race_specific", (60, 25, 15)),
    "taper": ("recovery", (90, 5, 5)),
    "recovery": ("recovery", (95, 5, 0)),
}

PHASE_BASE_MULTIPLIER: dict[str, float] = {
    "base": 0.8,
    "build": 1.0,
    "peak": 1.1,
    "taper": 0.5,
    "recovery": 0.6,
}

# week-in-phase position (1, 2, 3, then every 4th) -> factor
WAVE_FACTORS = (0.70, 0.85, 0.95, 1.05)
TAPER_FLOOR = 0.6


@dataclass(frozen=True)
class Phase:
    phase: str
    weeks: int
    focus: str
    intensity_distribution: tuple[int, int, int]


@dataclass(frozen=True)
class WeekVolume:
    week: int
    volume_multiplier: float
    phase: str


@dataclass(frozen=True)
class PeriodizationPlan:
    total_weeks: int
    phases: list[Phase]
    weekly_volumes: list[WeekVolume]

    def to_dict(self) -> dict:
        data = asdict(self)
        for phase in data["phases"]:
            phase["intensity_distribution"] = list(phase["intensity_distribution"])
        return data


def make_phase(name: str, weeks: int) -> Phase:
    focus, distribution = PHASE_PROFILES[name]
    return Phase(phase=name, weeks=weeks, focus=focus, intensity_distribution=distribution)


# --- Plan length ---

def weeks_until_goal(start_date: str, target_date: str) -> int | None:
    """Whole weeks from start to target, clamped to [4, 52].

    None when either date is invalid or the target is not after the start.
    """
    start, target = parse_date(start_date), parse_date(target_date)
    if start is None or target is None or target <= start:
        return None
    weeks = (target - start).days // 7
    return max(MIN_WEEKS, min(MAX_WEEKS, weeks))


def resolve_total_weeks(requested_weeks: int | None, start_date: str, goal: dict | None) -> int:
    """Explicit weeks win, then the goal's target date, then 12."""
    if requested_weeks is not None:
        return max(MIN_WEEKS, min(MAX_WEEKS, int(requested_weeks)))
    if goal and goal.get("target_date"):
        derived = weeks_until_goal(start_date, goal["target_date"])
        if derived is not None:
            return derived
    return DEFAULT_WEEKS


def calculate_end_date(start_date: str, total_weeks: int) -> str:
    """Last day of the final week, inclusive."""
    start = date.fromisoformat(start_date)
    return (start + timedelta(days=total_weeks * 7 - 1)).isoformat()


# --- Phases and volumes ---

def _check_weeks(total_weeks: int) -> None:
    if isinstance(total_weeks, bool) or not isinstance(total_weeks, int):
        raise TypeError(f"Total weeks must be an integer, got {total_weeks!r}")
    if total_weeks < MIN_WEEKS or total_weeks > MAX_WEEKS:
        raise ValueError(f"Total weeks must be between {MIN_WEEKS} and {MAX_WEEKS}, got {total_weeks}")


def calculate_phase_breakdown(total_weeks: int) -> list[Phase]:
    """Split a plan into phases whose weeks add up to ``total_weeks``.

    Up to 8 weeks: base, build, taper. Longer plans add a peak phase.
    Build absorbs whatever the fixed-ratio phases leave over.
    """
    _check_weeks(total_weeks)

    if total_weeks <= 8:
        base = max(2, int(total_weeks * 0.4))
        taper = min(2, int(total_weeks * 0.2))
        build = total_weeks - base - taper
        phases = [make_phase("base", base), make_phase("build", build), make_phase("taper", taper)]
    else:
        base = max(3, int(total_weeks * 0.35))
        taper = min(2, int(total_weeks * 0.15))
        peak = max(2, int(total_weeks * 0.15))
        build = total_weeks - base - peak - taper
        phases = [
            make_phase("base", base),
            make_phase("build", build),
            make_phase("peak", peak),
            make_phase("taper", taper),
        ]

    return [p for p in phases if p.weeks > 0]


def _phase_multipliers(phase: Phase) -> list[float]:
    base = PHASE_BASE_MULTIPLIER.get(phase.phase, PHASE_BASE_MULTIPLIER["base"])
    if phase.phase == "taper":
        # linear decay from the base multiplier towards 60% of it
        return [base * (1 - (i / phase.weeks) * (1 - TAPER_FLOOR)) for i in range(phase.weeks)]
    return [base * WAVE_FACTORS[week_in_phase % 4] for week_in_phase in range(1, phase.weeks + 1)]


def calculate_weekly_volumes(phases: list[Phase]) -> list[WeekVolume]:
    volumes = []
    week = 1
    for phase in phases:
        for multiplier in _phase_multipliers(phase):
            volumes.append(WeekVolume(week=week, volume_multiplier=round(multiplier, 2), phase=phase.phase))
            week += 1
    return volumes


def calculate_periodization(total_weeks: int) -> PeriodizationPlan:
    phases = calculate_phase_breakdown(total_weeks)
    return PeriodizationPlan(
        total_weeks=total_weeks,
        phases=phases,
        weekly_volumes=calculate_weekly_volumes(phases),
    )


# --- Plan payload ---

def generate_plan_name(total_weeks: int, goal: dict | None, phases: list[Phase]) -> str:
    if goal and goal.get("race_event_name"):
        return f"{total_weeks}-Week Plan: {goal['race_event_name']}"
    if goal and goal.get("title"):
        return f"{total_weeks}-Week Plan: {goal['title']}"
    phase_names = " → ".join(p.phase.capitalize() for p in phases)
    return f"{total_weeks}-Week {phase_names}"


def _describe(goal: dict | None, total_weeks: int) -> str:
    if not goal:
        return f"{total_weeks}-week general training plan"
    if not goal.get("target_date"):
        return f"Training plan targeting {goal.get('title')}"
    return f"Training plan targeting {goal.get('title')} on {goal['target_date']}"


def build_training_plan(
    athlete: dict,
    goal: dict | None,
    start_date: str,
    total_weeks: int,
    periodization: PeriodizationPlan,
) -> dict:
    """Assemble the training_plans row. All lookups happen before this call."""
    _check_weeks(total_weeks)
    return {
        "athlete_id": athlete["id"],
        "name": generate_plan_name(total_weeks, goal, periodization.phases),
        "description": _describe(goal, total_weeks),
        "start_date": start_date,
        "end_date": calculate_end_date(start_date, total_weeks),
        "total_weeks": total_weeks,
        "status": "active",
        "goal_id": goal.get("id") if goal else None,
        "periodization": periodization.to_dict(),
        "weekly_template": None,
        "adaptations": [],
    }
