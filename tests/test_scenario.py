"""Tests for what-if scenario projections."""

import math

import pytest

from squad_analytics.analytics.kpis import compute_kpis
from squad_analytics.analytics.projection import (
    SCENARIO_MISSION_BUNDLE_POINTS,
    ScenarioInputs,
    average_daily_delta,
    build_projection_intermediate,
    collect_team_history,
    compute_scenario,
    cross_team_average_pace,
    ensure_chronological_history,
    project_scenarios,
)
from squad_analytics.models.dataset import DEFAULT_CONSTANTS, Dataset, HistoryEntry
from squad_analytics.models.team import TeamSnapshot

END_DATE = "2025-09-30T08:00:00Z"


def team_a(day):
    return TeamSnapshot(
        name="A",
        steps=100000 + 10000 * day,
        activity_km=50 + 5 * day,
        missions=10 + day,
        team_points=1000 + 100 * day,
    )


@pytest.fixture
def dataset():
    team_b = TeamSnapshot(name="B", steps=50000, activity_km=30, missions=5, team_points=800)
    return Dataset(as_of="2025-09-27T08:00:00Z", teams=[team_a(2), team_b])


@pytest.fixture
def history():
    return [
        HistoryEntry(as_of="2025-09-25T08:00:00Z", teams=[team_a(0)], constants=DEFAULT_CONSTANTS),
        HistoryEntry(as_of="2025-09-26T08:00:00Z", teams=[team_a(1)], constants=DEFAULT_CONSTANTS),
    ]


@pytest.fixture
def chronological(dataset, history):
    return ensure_chronological_history(dataset, history)


def test_collect_team_history_measures_days_from_first_sample(chronological):
    samples = collect_team_history(chronological, "A", 7, DEFAULT_CONSTANTS)
    assert [s.days_from_start for s in samples] == pytest.approx([0.0, 1.0, 2.0])
    assert [s.points for s in samples] == [1000, 1100, 1200]
    assert average_daily_delta(samples, "steps") == pytest.approx(10000.0)
    assert average_daily_delta(samples, "activity_km") == pytest.approx(5.0)


def test_collect_team_history_respects_lookback(chronological):
    samples = collect_team_history(chronological, "A", 1, DEFAULT_CONSTANTS)
    assert [s.as_of for s in samples] == ["2025-09-26T08:00:00Z", "2025-09-27T08:00:00Z"]


def test_base_pace_from_regression(dataset, chronological):
    team = dataset.teams[0]
    intermediate = build_projection_intermediate(
        team, compute_kpis(team, DEFAULT_CONSTANTS), chronological, 7, DEFAULT_CONSTANTS, fallback_pace=0.0
    )
    assert intermediate.base_pace == pytest.approx(100.0)
    assert intermediate.steps_per_day == pytest.approx(10000.0)
    assert intermediate.activity_km_per_day == pytest.approx(5.0)


def test_scenario_deltas(dataset, chronological):
    team = dataset.teams[0]
    kpis = compute_kpis(team, DEFAULT_CONSTANTS)
    assert kpis.logging_rate == pytest.approx(0.675)
    assert kpis.missions_per_100k == pytest.approx(10.0)

    intermediate = build_projection_intermediate(team, kpis, chronological, 7, DEFAULT_CONSTANTS, 0.0)
    outcome = compute_scenario(
        intermediate,
        ScenarioInputs(logging_target=0.9, bike_share_delta=0.1, missions_target=15),
        DEFAULT_CONSTANTS,
    )
    assert outcome.delta_logging == pytest.approx(0.225 * (10000 / 1350) * 14)
    assert outcome.delta_bike == pytest.approx(3.5)
    assert outcome.delta_missions == pytest.approx(0.1 * 5 * SCENARIO_MISSION_BUNDLE_POINTS)
    assert outcome.scenario_pace == pytest.approx(
        100 + outcome.delta_logging + outcome.delta_bike + outcome.delta_missions
    )


def test_targets_below_current_add_nothing(dataset, chronological):
    team = dataset.teams[0]
    kpis = compute_kpis(team, DEFAULT_CONSTANTS)
    intermediate = build_projection_intermediate(team, kpis, chronological, 7, DEFAULT_CONSTANTS, 0.0)
    outcome = compute_scenario(
        intermediate,
        ScenarioInputs(logging_target=0.1, bike_share_delta=-0.5, missions_target=1),
        DEFAULT_CONSTANTS,
    )
    assert (outcome.delta_logging, outcome.delta_bike, outcome.delta_missions) == (0.0, 0.0, 0.0)
    assert outcome.scenario_pace == pytest.approx(outcome.base_pace)


def test_cross_team_fallback_uses_teams_with_history(dataset, chronological):
    teams = [(team, compute_kpis(team, DEFAULT_CONSTANTS)) for team in dataset.teams]
    assert cross_team_average_pace(teams, chronological, 7, DEFAULT_CONSTANTS) == pytest.approx(100.0)


def test_cross_team_fallback_without_history_uses_mean_points(dataset):
    teams = [(team, compute_kpis(team, DEFAULT_CONSTANTS)) for team in dataset.teams]
    live_only = ensure_chronological_history(dataset, [])
    assert cross_team_average_pace(teams, live_only, 7, DEFAULT_CONSTANTS) == pytest.approx(1000.0)


def test_short_history_team_borrows_fallback_rates(dataset, chronological):
    team = dataset.teams[1]
    kpis = compute_kpis(team, DEFAULT_CONSTANTS)
    intermediate = build_projection_intermediate(team, kpis, chronological, 7, DEFAULT_CONSTANTS, 100.0)
    assert intermediate.base_pace == 100.0
    assert intermediate.steps_per_day == pytest.approx(100.0 * 1350 / 60)
    assert intermediate.activity_km_per_day == pytest.approx(2250.0 / kpis.logging_rate)


def test_project_scenarios_with_rival_gap(dataset, history):
    results = project_scenarios(dataset, history, ScenarioInputs(missions_target=15), END_DATE)
    by_name = {r.name: r for r in results}

    a = by_name["A"]
    assert a.days_remaining == 3
    assert a.history_count == 3
    assert a.current_points == 1200
    assert a.base_projection == pytest.approx(1500.0)
    assert a.scenario_projection == pytest.approx(1200 + 3 * (100 + 55))
    # rival defaults to the first team, advanced at this team's base pace
    assert a.rival_gap == pytest.approx(a.scenario_projection - 1500.0)

    b = by_name["B"]
    assert b.history_count == 1
    assert b.scenario.base_pace == pytest.approx(100.0)
    assert b.rival_gap == pytest.approx(b.scenario_projection - (1200 + 3 * 100.0))


def test_project_scenarios_named_rival(dataset, history):
    results = project_scenarios(dataset, history, ScenarioInputs(), END_DATE, rival_team="B")
    a = next(r for r in results if r.name == "A")
    assert a.scenario_projection == pytest.approx(a.base_projection)
    assert a.rival_gap == pytest.approx(1500.0 - (800 + 3 * 100.0))
    assert a.to_dict()["rivalGap"] == pytest.approx(400.0)


def test_zero_baseline_fallback_stays_finite():
    constants = DEFAULT_CONSTANTS.merged({"ptsPer10kStepsBaseline": 0})
    team = TeamSnapshot(name="A", steps=1000, activity_km=1, team_points=100)
    kpis = compute_kpis(team, constants)
    intermediate = build_projection_intermediate(team, kpis, [], 7, constants, fallback_pace=100.0)
    assert intermediate.steps_per_day == pytest.approx(100.0 * 1350)
    assert math.isfinite(intermediate.activity_km_per_day)


@pytest.mark.parametrize(
    "overrides",
    [
        {"ptsPer10kStepsBaseline": 0},
        {"stepMissionPts": {"fiveK": 0, "eightK": 0, "tenK": 0}},
        {"ptsPerKmRunWalk": 0, "ptsPerKmBike": 0},
        {"stepsPerKmFoot": 0.5, "ptsPer10kStepsBaseline": 0},
    ],
)
def test_project_scenarios_total_for_degenerate_constants(overrides):
    dataset = Dataset(
        as_of="2025-09-27T08:00:00Z",
        teams=[
            TeamSnapshot(name="A", steps=1000, activity_km=1, team_points=100),
            TeamSnapshot(name="Idle", steps=0, activity_km=0),
        ],
    ).with_constants(overrides)

    results = project_scenarios(
        dataset, [], ScenarioInputs(logging_target=1.0, bike_share_delta=0.2, missions_target=5), END_DATE
    )
    assert len(results) == 2
    for result in results:
        for key, value in result.to_dict().items():
            if isinstance(value, float):
                assert math.isfinite(value), key
