"""
KPI engine for team snapshots.

Maps one team's raw counters and the dataset constants onto normalized
performance ratios and an estimated point total. Every function here is pure
and total: zero denominators resolve to ``inf`` (or 0 where a ratio has a
defined empty value) and data-quality problems surface as ``notes``.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple
import math

import numpy as np

from ..models.dataset import DEFAULT_CHALLENGE_START, Dataset, DatasetConstants, days_between
from ..models.team import TeamSnapshot
from .number import clamp, round_half_up, safe_divide

CV_THRESHOLD = 1e-6

NOTE_ZERO_ACTIVITY = "Activity km is zero, steps per km set to Infinity"
NOTE_ZERO_STEPS = "Step count is zero - check data quality"


@dataclass
class TeamKPIs:
    """Derived performance ratios for one team in one snapshot."""

    steps_per_km: float
    km_per_10k_steps: float
    logging_rate: float
    bike_share: float
    missions_per_100k: float
    quiz_per_100k: float
    photo_per_100k: float
    pts_per_10k_steps: float
    pts_per_km: float
    est_points: float
    foot_km_estimate: float
    bike_km_estimate: float
    balance_cv: Optional[float] = None
    boost_coverage: Optional[float] = None
    notes: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "stepsPerKm": self.steps_per_km,
            "kmPer10kSteps": self.km_per_10k_steps,
            "loggingRate": self.logging_rate,
            "bikeShare": self.bike_share,
            "missionsPer100k": self.missions_per_100k,
            "quizPer100k": self.quiz_per_100k,
            "photoPer100k": self.photo_per_100k,
            "ptsPer10kSteps": self.pts_per_10k_steps,
            "ptsPerKm": self.pts_per_km,
            "estPoints": self.est_points,
            "balanceCV": self.balance_cv,
            "boostCoverage": self.boost_coverage,
            "notes": list(self.notes),
        }


@dataclass
class DailyStats:
    """Per-day averages since the start of the challenge."""

    days_so_far: int
    total_points: float
    points_per_day: float
    km_per_day: float
    steps_per_day: float
    is_estimated: bool


def foot_km_estimate(steps: float, constants: DatasetConstants) -> float:
    """Distance the step count would cover purely on foot."""
    return safe_divide(steps, constants.steps_per_km_foot)


def _per_100k(count: float, steps: float) -> float:
    if steps == 0:
        return 0.0
    return safe_divide(count, safe_divide(steps, 100_000))


def estimate_points(
    team: TeamSnapshot,
    constants: DatasetConstants,
    foot_km: float,
    bike_km: float,
) -> float:
    """
    Estimate a team's point total from its raw counters.

    The mission term scales missions-per-100k back up by the team's own
    steps/100k and the full 5k+8k+10k bundle value, i.e. every mission is
    paid as a complete bundle. With zero steps the mission rate is 0.

    Args:
        team: Raw counters
        constants: Scoring constants in effect for the snapshot
        foot_km: Foot-distance estimate from steps
        bike_km: Recorded distance not explained by steps

    Returns:
        Estimated point total
    """
    steps_factor = team.steps / 10_000
    from_steps = constants.pts_per_10k_steps_baseline * steps_factor
    from_run_walk = constants.pts_per_km_run_walk * min(team.activity_km, foot_km)
    from_bike = constants.pts_per_km_bike * bike_km

    hundred_k = team.steps / 100_000
    from_missions = _per_100k(team.missions, team.steps) * hundred_k * constants.mission_bundle_points

    return from_steps + from_run_walk + from_bike + from_missions


def balance_cv(team: TeamSnapshot) -> Optional[float]:
    """Coefficient of variation of member point contributions."""
    if not team.members:
        return None

    points = np.array([m.points for m in team.members], dtype=float)
    points = points[np.isfinite(points)]
    if points.size == 0:
        return None

    mean = float(points.mean())
    if abs(mean) < CV_THRESHOLD:
        return None

    # population standard deviation
    return float(points.std()) / mean


def boost_coverage(team: TeamSnapshot) -> Optional[float]:
    """Share of members holding an active boost, clamped to [0, 1]."""
    if not team.members or team.boost_active_count is None:
        return None
    return clamp(team.boost_active_count / team.member_count, 0.0, 1.0)


def compute_kpis(team: TeamSnapshot, constants: DatasetConstants) -> TeamKPIs:
    """
    Compute the KPI set for one team snapshot.

    Args:
        team: Raw counters for the team
        constants: Scoring constants the snapshot was recorded under

    Returns:
        TeamKPIs with fraction ratios clamped to [0, 1]
    """
    notes: List[str] = []

    steps_per_km = math.inf if team.activity_km == 0 else safe_divide(team.steps, team.activity_km)
    km_per_10k_steps = 0.0 if team.steps == 0 else safe_divide(team.activity_km, team.steps / 10_000)

    foot_km = foot_km_estimate(team.steps, constants)
    logging_rate = clamp(0.0 if team.activity_km == 0 else safe_divide(team.activity_km, foot_km), 0.0, 1.0)

    bike_km = max(0.0, team.activity_km - foot_km)
    bike_share = clamp(safe_divide(bike_km, team.activity_km), 0.0, 1.0) if team.activity_km > 0 else 0.0

    est_points = estimate_points(team, constants, foot_km, bike_km)

    points_for_yield = team.team_points if team.team_points is not None else est_points
    steps_factor = team.steps / 10_000
    pts_per_10k_steps = 0.0 if steps_factor == 0 else safe_divide(points_for_yield, steps_factor)
    pts_per_km = 0.0 if team.activity_km == 0 else safe_divide(points_for_yield, team.activity_km)

    if not math.isfinite(steps_per_km):
        notes.append(NOTE_ZERO_ACTIVITY)
    if team.steps == 0:
        notes.append(NOTE_ZERO_STEPS)

    return TeamKPIs(
        steps_per_km=steps_per_km,
        km_per_10k_steps=km_per_10k_steps,
        logging_rate=logging_rate,
        bike_share=bike_share,
        missions_per_100k=_per_100k(team.missions, team.steps),
        quiz_per_100k=_per_100k(team.quizzes, team.steps),
        photo_per_100k=_per_100k(team.photos, team.steps),
        pts_per_10k_steps=pts_per_10k_steps,
        pts_per_km=pts_per_km,
        est_points=est_points,
        foot_km_estimate=foot_km,
        bike_km_estimate=bike_km,
        balance_cv=balance_cv(team),
        boost_coverage=boost_coverage(team),
        notes=notes,
    )


def resolve_team_points(team: TeamSnapshot, kpis: TeamKPIs) -> Tuple[float, bool]:
    """Return ``(points, estimated)``: reported points when present, else the estimate."""
    if team.has_authoritative_points:
        return team.team_points, False
    return kpis.est_points, True


def compute_team_kpis(dataset: Dataset) -> List[Tuple[TeamSnapshot, TeamKPIs]]:
    return [(team, compute_kpis(team, dataset.constants)) for team in dataset.teams]


def compute_daily_stats(team: TeamSnapshot, kpis: TeamKPIs, dataset: Dataset) -> DailyStats:
    """Average daily output since the challenge start (at least one day)."""
    start = dataset.challenge_start_date or DEFAULT_CHALLENGE_START
    elapsed = max(days_between(start, dataset.as_of), 0.0)
    days_so_far = max(1, math.ceil(elapsed))

    points, estimated = resolve_team_points(team, kpis)
    total_points = round_half_up(points)

    return DailyStats(
        days_so_far=days_so_far,
        total_points=total_points,
        points_per_day=total_points / days_so_far,
        km_per_day=team.activity_km / days_so_far,
        steps_per_day=team.steps / days_so_far,
        is_estimated=estimated,
    )
