"""Tests for the periodization engine."""

import pytest

from khepri_gateway.periodization import (
    DEFAULT_WEEKS,
    build_training_plan,
    calculate_end_date,
    calculate_periodization,
    calculate_phase_breakdown,
    calculate_weekly_volumes,
    generate_plan_name,
    resolve_total_weeks,
    weeks_until_goal,
)

ATHLETE = {"id": "athlete-1", "display_name": "Sam"}


@pytest.mark.parametrize("total_weeks", range(4, 53))
def test_phases_and_volumes_cover_every_week(total_weeks):
    plan = calculate_periodization(total_weeks)

    assert sum(p.weeks for p in plan.phases) == total_weeks
    assert [v.week for v in plan.weekly_volumes] == list(range(1, total_weeks + 1))
    assert all(p.weeks > 0 for p in plan.phases)
    for phase in plan.phases:
        assert len(phase.intensity_distribution) == 3
        assert sum(phase.intensity_distribution) == 100
        assert all(share >= 0 for share in phase.intensity_distribution)


def test_short_plan_has_no_peak():
    phases = calculate_phase_breakdown(6)
    assert [(p.phase, p.weeks) for p in phases] == [("base", 2), ("build", 3), ("taper", 1)]


def test_four_week_plan_drops_empty_taper():
    phases = calculate_phase_breakdown(4)
    assert [(p.phase, p.weeks) for p in phases] == [("base", 2), ("build", 2)]


def test_long_plan_breakdown():
    phases = calculate_phase_breakdown(12)
    assert [(p.phase, p.weeks) for p in phases] == [("base", 4), ("build", 5), ("peak", 2), ("taper", 1)]
    assert phases[0].focus == "aerobic_endurance"
    assert phases[2].focus == "race_specific"


def test_year_long_plan_caps_taper():
    phases = {p.phase: p.weeks for p in calculate_phase_breakdown(52)}
    assert phases["taper"] == 2
    assert phases["base"] == 18
    assert phases["peak"] == 7
    assert phases["build"] == 25


@pytest.mark.parametrize("total_weeks", [3, 53, 0, -1])
def test_breakdown_rejects_out_of_range_weeks(total_weeks):
    with pytest.raises(ValueError):
        calculate_phase_breakdown(total_weeks)


def test_breakdown_rejects_non_integer_weeks():
    with pytest.raises(TypeError):
        calculate_phase_breakdown(6.5)


def test_weekly_volume_wave_and_recovery_week():
    volumes = calculate_weekly_volumes(calculate_phase_breakdown(12))
    multipliers = [v.volume_multiplier for v in volumes]

    # base phase at 0.8: three building weeks then a recovery week
    assert multipliers[:4] == [0.68, 0.76, 0.84, 0.56]
    # build phase at 1.0
    assert multipliers[4:9] == [0.85, 0.95, 1.05, 0.7, 0.85]
    assert volumes[-1].phase == "taper"
    assert multipliers[-1] == 0.5


def test_taper_decays_towards_sixty_percent():
    phases = calculate_phase_breakdown(20)
    taper = [v.volume_multiplier for v in calculate_weekly_volumes(phases) if v.phase == "taper"]
    assert taper == [0.5, 0.4]


def test_calculate_end_date():
    assert calculate_end_date("2026-01-01", 12) == "2026-03-25"
    assert calculate_end_date("2026-01-01", 4) == "2026-01-28"


def test_weeks_until_goal():
    assert weeks_until_goal("2026-01-01", "2026-03-26") == 12
    assert weeks_until_goal("2026-06-01", "2026-01-01") is None
    assert weeks_until_goal("2026-01-01", "2026-01-15") == 4
    assert weeks_until_goal("2026-01-01", "2028-01-01") == 52
    assert weeks_until_goal("2026-01-01", "2026-01-01") is None
    assert weeks_until_goal("2026-02-30", "2026-06-01") is None


def test_resolve_total_weeks():
    goal = {"target_date": "2026-03-26"}
    assert resolve_total_weeks(8, "2026-01-01", goal) == 8
    assert resolve_total_weeks(80, "2026-01-01", None) == 52
    assert resolve_total_weeks(None, "2026-01-01", goal) == 12
    assert resolve_total_weeks(None, "2026-01-01", {"target_date": "2025-01-01"}) == DEFAULT_WEEKS
    assert resolve_total_weeks(None, "2026-01-01", None) == DEFAULT_WEEKS


def test_plan_name_prefers_event_name_then_title():
    phases = calculate_phase_breakdown(12)
    race = {"title": "Spring A race", "race_event_name": "Boston Marathon"}
    assert generate_plan_name(12, race, phases) == "12-Week Plan: Boston Marathon"
    assert generate_plan_name(12, {"title": "Get faster"}, phases) == "12-Week Plan: Get faster"
    assert generate_plan_name(12, None, phases) == "12-Week Base → Build → Peak → Taper"


def test_build_training_plan_without_goal():
    periodization = calculate_periodization(6)
    plan = build_training_plan(ATHLETE, None, "2026-03-02", 6, periodization)

    assert plan["athlete_id"] == "athlete-1"
    assert plan["name"] == "6-Week Base → Build → Taper"
    assert plan["description"] == "6-week general training plan"
    assert plan["end_date"] == "2026-04-12"
    assert plan["status"] == "active"
    assert plan["goal_id"] is None
    assert plan["weekly_template"] is None
    assert plan["adaptations"] == []
    assert plan["periodization"]["phases"][0]["intensity_distribution"] == [80, 15, 5]
    assert len(plan["periodization"]["weekly_volumes"]) == 6


def test_build_training_plan_descriptions():
    periodization = calculate_periodization(12)
    with_date = {"id": "goal-1", "title": "Half Marathon PR", "target_date": "2026-05-24"}
    without_date = {"id": "goal-2", "title": "Base fitness"}

    plan = build_training_plan(ATHLETE, with_date, "2026-03-02", 12, periodization)
    assert plan["description"] == "Training plan targeting Half Marathon PR on 2026-05-24"
    assert plan["goal_id"] == "goal-1"

    plan = build_training_plan(ATHLETE, without_date, "2026-03-02", 12, periodization)
    assert plan["description"] == "Training plan targeting Base fitness"
