"""
Pace estimation and end-date projection.

Two entry points share the same building blocks:

- :func:`project_standings` fits a per-team pace over a lookback window of the
  calendar-day series and ranks teams by projected points at the end date.
- :func:`project_scenarios` layers what-if adjustments (logging rate, bike
  share, mission density) on top of a regression pace fitted over the raw
  snapshot samples.

Pace falls back deterministically when history is short: regression over the
window, then a two-point slope over the whole series, then 0 flagged as
insufficient data. In the scenario path a team without enough history borrows
the cross-team average pace.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..models.dataset import (
    DEFAULT_TIMEZONE,
    Dataset,
    DatasetConstants,
    HistoryEntry,
    Timestamp,
    calendar_day,
    days_between,
    parse_timestamp,
    sort_history,
)
from ..models.team import TeamSnapshot
from .kpis import TeamKPIs, compute_kpis, resolve_team_points
from .number import round_half_up

logger = logging.getLogger(__name__)

DEFAULT_LOOKBACK_DAYS = 7
REGRESSION_EPSILON = 1e-6

PACE_FAST = 300.0
PACE_MODERATE = 150.0

# Flat mission-bundle value used only by the scenario path. It is independent
# of DatasetConstants.mission_bundle_points, which the KPI estimate uses.
SCENARIO_MISSION_BUNDLE_POINTS = 110.0
MIN_LOGGING_RATE = 0.01


@dataclass
class ProjectionConfig:
    """Knobs shared by the standings and scenario projections."""

    end_date: str
    lookback_days: int = DEFAULT_LOOKBACK_DAYS
    timezone: str = DEFAULT_TIMEZONE

    def __post_init__(self):
        if self.lookback_days < 0:
            raise ValueError(f"lookback_days must be >= 0, got {self.lookback_days}")
        parse_timestamp(self.end_date)


@dataclass
class SeriesPoint:
    date: date
    points: float
    estimated: bool = False


@dataclass
class PaceComputation:
    pace_per_day: float
    used_estimates: bool
    insufficient_data: bool


@dataclass
class TeamProjection:
    """Projected standing of one team at the end date."""

    name: str
    current: float
    pace_per_day: float
    days_remaining: int
    projected: float
    used_estimates: bool
    insufficient_data: bool
    pace_bracket: str
    rank: int = 0
    delta_to_leader: float = 0.0
    history: List[SeriesPoint] = field(default_factory=list)
    projection: List[SeriesPoint] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "rank": self.rank,
            "current": self.current,
            "pacePerDay": self.pace_per_day,
            "daysRemaining": self.days_remaining,
            "projected": self.projected,
            "deltaToLeader": self.delta_to_leader,
            "usedEstimates": self.used_estimates,
            "insufficientData": self.insufficient_data,
            "paceBracket": self.pace_bracket,
        }


# ---------------------------------------------------------------------------
# Shared fitting helpers
# ---------------------------------------------------------------------------

def two_point_slope(first_x: float, first_y: float, last_x: float, last_y: float) -> float:
    """Slope between two samples; spans shorter than a day count as one day."""
    return (last_y - first_y) / max(last_x - first_x, 1.0)


def ols_slope(xs: Sequence[float], ys: Sequence[float]) -> float:
    """
    Ordinary-least-squares slope of ``ys`` against ``xs``.

    When the denominator ``n*sum(x^2) - sum(x)^2`` is ~0 (all x equal) the
    slope falls back to the two-point slope between the first and last
    sample. Non-finite results are coerced to 0.
    """
    if len(xs) < 2:
        return 0.0

    x = np.asarray(xs, dtype=float)
    y = np.asarray(ys, dtype=float)
    n = x.size
    sum_x = x.sum()
    sum_y = y.sum()
    denominator = n * np.dot(x, x) - sum_x ** 2

    if abs(denominator) > REGRESSION_EPSILON:
        slope = (n * np.dot(x, y) - sum_x * sum_y) / denominator
    else:
        logger.debug("Degenerate regression (denominator=%s); using two-point slope", denominator)
        slope = two_point_slope(x[0], y[0], x[-1], y[-1])

    slope = float(slope)
    return slope if math.isfinite(slope) else 0.0


# ---------------------------------------------------------------------------
# Standings projection
# ---------------------------------------------------------------------------

def ensure_chronological_history(dataset: Dataset, history: Sequence[HistoryEntry]) -> List[HistoryEntry]:
    """Merge the live dataset into history (keyed by ``asOf``) and sort ascending."""
    merged: Dict[str, HistoryEntry] = {entry.as_of: entry for entry in history}
    merged[dataset.as_of] = HistoryEntry.from_dataset(dataset, saved_at=dataset.as_of)
    return sort_history(list(merged.values()))


def get_team_series(
    history: Sequence[HistoryEntry],
    team_name: str,
    constants: DatasetConstants,
    tz: str = DEFAULT_TIMEZONE,
) -> List[SeriesPoint]:
    """One point per calendar day for ``team_name``; the latest entry of a day wins."""
    by_day: Dict[date, SeriesPoint] = {}
    for entry in sort_history(list(history)):
        team = entry.find_team(team_name)
        if team is None:
            continue
        kpis = compute_kpis(team, entry.resolve_constants(constants))
        points, estimated = resolve_team_points(team, kpis)
        day = calendar_day(entry.as_of, tz)
        by_day[day] = SeriesPoint(date=day, points=round_half_up(points), estimated=estimated)
    return [by_day[day] for day in sorted(by_day)]


def compute_pace(series: Sequence[SeriesPoint], lookback_days: int, as_of: date) -> PaceComputation:
    """
    Estimate points per day for a calendar-day series.

    Args:
        series: Team series, oldest first
        lookback_days: Trailing window length in days
        as_of: Calendar day the window ends on (inclusive)

    Returns:
        PaceComputation; ``insufficient_data`` is set iff the whole series
        has fewer than two points
    """
    if len(series) < 2:
        return PaceComputation(
            pace_per_day=0.0,
            used_estimates=any(point.estimated for point in series),
            insufficient_data=True,
        )

    window_start = as_of - timedelta(days=lookback_days)
    window = [point for point in series if window_start <= point.date <= as_of]

    if len(window) < 2:
        first, last = series[0], series[-1]
        slope = two_point_slope(0.0, first.points, float((last.date - first.date).days), last.points)
        logger.debug("Fewer than two points in %d-day window; using whole-series slope", lookback_days)
        return PaceComputation(
            pace_per_day=slope if math.isfinite(slope) else 0.0,
            used_estimates=first.estimated or last.estimated,
            insufficient_data=False,
        )

    origin = window[0].date
    slope = ols_slope(
        [float((point.date - origin).days) for point in window],
        [point.points for point in window],
    )
    return PaceComputation(
        pace_per_day=slope,
        used_estimates=any(point.estimated for point in window),
        insufficient_data=False,
    )


def project_team(current: float, pace_per_day: float, days_remaining: float) -> float:
    return current + pace_per_day * days_remaining


def days_remaining(as_of: Timestamp, end_date: Timestamp) -> int:
    """Whole days left until ``end_date``, rounded up and never negative."""
    return max(0, math.ceil(days_between(as_of, end_date)))


def pace_bracket(pace_per_day: float) -> str:
    if pace_per_day > PACE_FAST:
        return "fast"
    if pace_per_day >= PACE_MODERATE:
        return "moderate"
    return "slow"


def build_projection_series(current: float, pace_per_day: float, as_of: date, days: int) -> List[SeriesPoint]:
    """Daily projected points from ``as_of`` (day 0) through ``days`` ahead."""
    return [
        SeriesPoint(date=as_of + timedelta(days=offset), points=project_team(current, pace_per_day, offset))
        for offset in range(max(days, 0) + 1)
    ]


def rank_projections(projections: Sequence[TeamProjection]) -> List[TeamProjection]:
    """Sort by projected points (descending) and fill rank and delta to leader."""
    if not projections:
        return []
    leader = max(p.projected for p in projections)
    ordered = sorted(projections, key=lambda p: p.projected, reverse=True)
    return [
        replace(p, rank=idx + 1, delta_to_leader=max(0.0, leader - p.projected))
        for idx, p in enumerate(ordered)
    ]


def project_standings(
    dataset: Dataset,
    history: Sequence[HistoryEntry],
    end_date: str,
    lookback_days: int = DEFAULT_LOOKBACK_DAYS,
    tz: str = DEFAULT_TIMEZONE,
) -> List[TeamProjection]:
    """
    Project every team of ``dataset`` to ``end_date`` and rank them.

    The live dataset is merged into history first so the current snapshot
    always contributes to the series.
    """
    config = ProjectionConfig(end_date=end_date, lookback_days=lookback_days, timezone=tz)
    chronological = ensure_chronological_history(dataset, history)
    as_of_day = calendar_day(dataset.as_of, config.timezone)
    remaining = days_remaining(dataset.as_of, config.end_date)

    projections = []
    for team in dataset.teams:
        series = get_team_series(chronological, team.name, dataset.constants, config.timezone)
        pace = compute_pace(series, config.lookback_days, as_of_day)
        current = series[-1].points if series else 0.0
        projections.append(
            TeamProjection(
                name=team.name,
                current=current,
                pace_per_day=pace.pace_per_day,
                days_remaining=remaining,
                projected=project_team(current, pace.pace_per_day, remaining),
                used_estimates=pace.used_estimates or any(point.estimated for point in series),
                insufficient_data=pace.insufficient_data,
                pace_bracket=pace_bracket(pace.pace_per_day),
                history=series,
                projection=build_projection_series(current, pace.pace_per_day, as_of_day, remaining),
            )
        )
    return rank_projections(projections)


# ---------------------------------------------------------------------------
# Scenario projection
# ---------------------------------------------------------------------------

@dataclass
class TeamHistorySample:
    as_of: str
    days_from_start: float
    points: float
    steps: float
    activity_km: float
    kpis: TeamKPIs
    estimated: bool = False


@dataclass
class ScenarioInputs:
    """What-if targets. Targets below the current value have no effect."""

    logging_target: float = 0.0
    bike_share_delta: float = 0.0
    missions_target: float = 0.0


@dataclass
class ProjectionIntermediate:
    team: TeamSnapshot
    kpis: TeamKPIs
    samples: List[TeamHistorySample]
    base_pace: float
    steps_per_day: float
    activity_km_per_day: float


@dataclass
class ProjectionScenario:
    base_pace: float
    scenario_pace: float
    delta_logging: float
    delta_bike: float
    delta_missions: float
    steps_per_day: float
    activity_km_per_day: float


@dataclass
class ScenarioProjection:
    """Base and what-if projection for one team."""

    name: str
    days_remaining: int
    current_points: float
    base_projection: float
    scenario_projection: float
    scenario: ProjectionScenario
    rival_gap: Optional[float] = None
    history_count: int = 0

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "daysRemaining": self.days_remaining,
            "currentPoints": self.current_points,
            "baseProjection": self.base_projection,
            "scenarioProjection": self.scenario_projection,
            "basePace": self.scenario.base_pace,
            "scenarioPace": self.scenario.scenario_pace,
            "deltaLogging": self.scenario.delta_logging,
            "deltaBike": self.scenario.delta_bike,
            "deltaMissions": self.scenario.delta_missions,
            "rivalGap": self.rival_gap,
            "historyCount": self.history_count,
        }


def collect_team_history(
    history: Sequence[HistoryEntry],
    team_name: str,
    lookback_days: int,
    fallback_constants: DatasetConstants,
    tz: str = DEFAULT_TIMEZONE,
) -> List[TeamHistorySample]:
    """
    Raw snapshot samples for a team within the lookback window.

    The window ends at the team's latest entry and includes every entry on
    or after the calendar day the window starts. ``days_from_start`` is
    measured in fractional days from the first sample in the window.
    """
    matches: List[Tuple[HistoryEntry, TeamSnapshot]] = []
    for entry in sort_history(list(history)):
        team = entry.find_team(team_name)
        if team is not None:
            matches.append((entry, team))
    if not matches:
        return []

    end = parse_timestamp(matches[-1][0].as_of)
    window_start_day = calendar_day(end - timedelta(days=lookback_days), tz)
    windowed = [(entry, team) for entry, team in matches if calendar_day(entry.as_of, tz) >= window_start_day]
    baseline = windowed[0][0].as_of

    samples = []
    for entry, team in windowed:
        kpis = compute_kpis(team, entry.resolve_constants(fallback_constants))
        points, estimated = resolve_team_points(team, kpis)
        samples.append(
            TeamHistorySample(
                as_of=entry.as_of,
                days_from_start=days_between(baseline, entry.as_of),
                points=points,
                steps=team.steps,
                activity_km=team.activity_km,
                kpis=kpis,
                estimated=estimated,
            )
        )
    return samples


def linear_regression_slope(samples: Sequence[TeamHistorySample]) -> float:
    return ols_slope([s.days_from_start for s in samples], [s.points for s in samples])


def average_daily_delta(samples: Sequence[TeamHistorySample], attribute: str) -> float:
    """Average daily change of ``steps`` or ``activity_km`` between first and last sample."""
    if len(samples) < 2:
        return 0.0
    first, last = samples[0], samples[-1]
    days = max(last.days_from_start - first.days_from_start, 1.0)
    return (getattr(last, attribute) - getattr(first, attribute)) / days


def cross_team_average_pace(
    teams: Sequence[Tuple[TeamSnapshot, TeamKPIs]],
    history: Sequence[HistoryEntry],
    lookback_days: int,
    constants: DatasetConstants,
    tz: str = DEFAULT_TIMEZONE,
) -> float:
    """
    Fallback pace for teams without enough history.

    Mean of the regression paces of every team with at least two samples.
    When no team qualifies this degrades to the mean current point total.
    """
    paces = []
    for team, _ in teams:
        samples = collect_team_history(history, team.name, lookback_days, constants, tz)
        if len(samples) >= 2:
            paces.append(linear_regression_slope(samples))

    if paces:
        return float(np.mean(paces))

    logger.info("No team has two history samples; falling back to mean current points")
    totals = [resolve_team_points(team, kpis)[0] for team, kpis in teams]
    totals = [value for value in totals if math.isfinite(value)]
    return float(np.mean(totals)) if totals else 0.0


def build_projection_intermediate(
    team: TeamSnapshot,
    kpis: TeamKPIs,
    history: Sequence[HistoryEntry],
    lookback_days: int,
    constants: DatasetConstants,
    fallback_pace: float,
    tz: str = DEFAULT_TIMEZONE,
) -> ProjectionIntermediate:
    """Base pace and daily step/distance rates feeding the scenario deltas."""
    samples = collect_team_history(history, team.name, lookback_days, constants, tz)

    if len(samples) >= 2:
        base_pace = linear_regression_slope(samples)
        steps_per_day = average_daily_delta(samples, "steps")
        activity_km_per_day = average_daily_delta(samples, "activity_km")
    else:
        logger.debug("Team %s has %d samples; using fallback pace %.1f", team.name, len(samples), fallback_pace)
        base_pace = fallback_pace
        steps_per_day = fallback_pace * (constants.steps_per_km_foot / max(constants.pts_per_10k_steps_baseline, 1.0))
        activity_km_per_day = steps_per_day / max(kpis.logging_rate, MIN_LOGGING_RATE)

    return ProjectionIntermediate(
        team=team,
        kpis=kpis,
        samples=samples,
        base_pace=base_pace,
        steps_per_day=steps_per_day,
        activity_km_per_day=activity_km_per_day,
    )


def compute_scenario(
    intermediate: ProjectionIntermediate,
    scenario: ScenarioInputs,
    constants: DatasetConstants,
) -> ProjectionScenario:
    """
    Add what-if point contributions on top of the base pace.

    Args:
        intermediate: Base pace and daily rates for the team
        scenario: Target logging rate, bike-share delta and missions/100k
        constants: Scoring constants

    Returns:
        ProjectionScenario with each incremental contribution broken out
    """
    kpis = intermediate.kpis
    steps_per_day = intermediate.steps_per_day

    current_logging = kpis.logging_rate
    logging_target = max(scenario.logging_target, current_logging)
    foot_km_per_day = steps_per_day / max(constants.steps_per_km_foot, 1.0)
    delta_logging = max(0.0, (logging_target - current_logging) * foot_km_per_day * constants.pts_per_km_run_walk)

    if intermediate.activity_km_per_day > 0:
        effective_activity = intermediate.activity_km_per_day
    else:
        effective_activity = foot_km_per_day / max(current_logging, MIN_LOGGING_RATE)
    delta_bike = effective_activity * max(0.0, scenario.bike_share_delta) * constants.pts_per_km_bike

    current_missions = kpis.missions_per_100k
    missions_gap = max(0.0, max(scenario.missions_target, current_missions) - current_missions)
    delta_missions = (steps_per_day / 100_000) * missions_gap * SCENARIO_MISSION_BUNDLE_POINTS

    return ProjectionScenario(
        base_pace=intermediate.base_pace,
        scenario_pace=intermediate.base_pace + delta_logging + delta_bike + delta_missions,
        delta_logging=delta_logging,
        delta_bike=delta_bike,
        delta_missions=delta_missions,
        steps_per_day=steps_per_day,
        activity_km_per_day=effective_activity,
    )


def project_scenarios(
    dataset: Dataset,
    history: Sequence[HistoryEntry],
    scenario: ScenarioInputs,
    end_date: str,
    lookback_days: int = DEFAULT_LOOKBACK_DAYS,
    rival_team: Optional[str] = None,
    tz: str = DEFAULT_TIMEZONE,
) -> List[ScenarioProjection]:
    """
    Base and what-if projections for every team in ``dataset``.

    ``rival_gap`` compares a team's scenario projection with the rival's
    current points advanced at this team's base pace. The rival defaults to
    the first team in the dataset.
    """
    config = ProjectionConfig(end_date=end_date, lookback_days=lookback_days, timezone=tz)
    constants = dataset.constants
    chronological = ensure_chronological_history(dataset, history)
    teams = [(team, compute_kpis(team, constants)) for team in dataset.teams]

    fallback_pace = cross_team_average_pace(teams, chronological, config.lookback_days, constants, config.timezone)
    intermediates = [
        build_projection_intermediate(team, kpis, chronological, config.lookback_days, constants, fallback_pace, config.timezone)
        for team, kpis in teams
    ]
    remaining = days_remaining(dataset.as_of, config.end_date)

    rival = None
    if rival_team is not None:
        rival = next((item for item in intermediates if item.team.name == rival_team), None)
    elif intermediates:
        rival = intermediates[0]

    results = []
    for intermediate in intermediates:
        outcome = compute_scenario(intermediate, scenario, constants)
        current, _ = resolve_team_points(intermediate.team, intermediate.kpis)
        scenario_projection = project_team(current, outcome.scenario_pace, remaining)

        rival_gap = None
        if rival is not None:
            rival_current, _ = resolve_team_points(rival.team, rival.kpis)
            rival_gap = scenario_projection - project_team(rival_current, outcome.base_pace, remaining)

        results.append(
            ScenarioProjection(
                name=intermediate.team.name,
                days_remaining=remaining,
                current_points=current,
                base_projection=project_team(current, outcome.base_pace, remaining),
                scenario_projection=scenario_projection,
                scenario=outcome,
                rival_gap=rival_gap,
                history_count=len(intermediate.samples),
            )
        )
    return results
