"""
Daily kinetics builder.

Turns the snapshot history into one cumulative-points series per team on a
gap-free daily calendar, then derives velocity (points/day) and acceleration
(change in velocity per day) with optional exponential smoothing.

The whole series is rebuilt from history on every call; nothing is patched
incrementally.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from itertools import accumulate
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from ..models.dataset import DEFAULT_TIMEZONE, DatasetConstants, HistoryEntry, calendar_day, sort_history
from .kpis import compute_kpis, resolve_team_points
from .number import round_half_up

logger = logging.getLogger(__name__)

DEFAULT_SMOOTHING = 0.4


@dataclass
class KineticsConfig:
    """Smoothing factors and calendar timezone for the kinetics builder."""

    velocity_alpha: float = DEFAULT_SMOOTHING
    acceleration_alpha: float = DEFAULT_SMOOTHING
    timezone: str = DEFAULT_TIMEZONE

    def __post_init__(self):
        for label, alpha in (("velocity_alpha", self.velocity_alpha), ("acceleration_alpha", self.acceleration_alpha)):
            if not 0.0 < alpha <= 1.0:
                raise ValueError(f"{label} must be in (0, 1], got {alpha}")


@dataclass
class AlignedPoint:
    """Resolved cumulative points for one calendar day."""

    date: date
    points: float
    estimated: bool


@dataclass
class KineticsPoint:
    """Points, velocity and acceleration for one team on one day."""

    date: date
    points: float
    velocity: float
    acceleration: float
    velocity_ema: Optional[float] = None
    accel_ema: Optional[float] = None
    estimated: bool = False

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "points": self.points,
            "velocity": self.velocity,
            "velocityEMA": self.velocity_ema,
            "acceleration": self.acceleration,
            "accelEMA": self.accel_ema,
            "estimated": self.estimated,
        }


@dataclass
class TeamKinetics:
    name: str
    series: List[KineticsPoint] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"name": self.name, "series": [point.to_dict() for point in self.series]}


@dataclass
class KineticsSummary:
    """Aggregate kinetics over a team's (windowed) series."""

    name: str
    avg_velocity: float
    avg_acceleration: float
    max_positive: Tuple[Optional[date], float]
    max_negative: Tuple[Optional[date], float]
    percent_accelerating: float
    velocity_std_dev: float


def align_team_history(
    history: Sequence[HistoryEntry],
    team_name: str,
    fallback_constants: DatasetConstants,
    tz: str = DEFAULT_TIMEZONE,
) -> List[AlignedPoint]:
    """
    Align one team's points to a gap-free daily calendar.

    Each entry resolves points with its own constants (``fallback_constants``
    only for entries saved without them). When several entries land on the
    same calendar day the latest ``asOf`` wins. Missing days between two
    aligned entries are linearly interpolated and flagged as estimated.

    Args:
        history: Snapshot history in any order
        team_name: Team to align
        fallback_constants: Constants for entries that carry none
        tz: Timezone used to bucket timestamps into calendar days

    Returns:
        One AlignedPoint per calendar day, oldest first
    """
    by_day: Dict[date, AlignedPoint] = {}
    for entry in sort_history(list(history)):
        team = entry.find_team(team_name)
        if team is None:
            continue
        kpis = compute_kpis(team, entry.resolve_constants(fallback_constants))
        points, estimated = resolve_team_points(team, kpis)
        day = calendar_day(entry.as_of, tz)
        by_day[day] = AlignedPoint(date=day, points=round_half_up(points), estimated=estimated)

    daily = [by_day[day] for day in sorted(by_day)]
    return fill_daily_gaps(daily)


def fill_daily_gaps(daily: List[AlignedPoint]) -> List[AlignedPoint]:
    """Insert linearly interpolated points for missing calendar days."""
    filled: List[AlignedPoint] = []
    for current, following in zip(daily, daily[1:]):
        filled.append(current)
        gap = (following.date - current.date).days
        if gap <= 1:
            continue
        step = (following.points - current.points) / gap
        for offset in range(1, gap):
            filled.append(
                AlignedPoint(
                    date=current.date + timedelta(days=offset),
                    points=round_half_up(current.points + step * offset),
                    estimated=True,
                )
            )
    if daily:
        filled.append(daily[-1])
    return filled


def compute_velocity(aligned: Sequence[AlignedPoint]) -> List[float]:
    """First difference per day; the first point has no predecessor and gets 0."""
    velocities: List[float] = []
    for idx, point in enumerate(aligned):
        if idx == 0:
            velocities.append(0.0)
            continue
        previous = aligned[idx - 1]
        days = max((point.date - previous.date).days, 1)
        velocities.append((point.points - previous.points) / days)
    return velocities


def compute_acceleration(velocities: Sequence[float]) -> List[float]:
    """Change in velocity; needs two real velocities so indices 0 and 1 are 0."""
    return [0.0 if idx < 2 else velocities[idx] - velocities[idx - 1] for idx in range(len(velocities))]


def exponential_smoothing(values: Iterable[float], alpha: float) -> List[float]:
    """EMA as a left fold seeded with the first raw value."""
    return list(accumulate(values, lambda previous, raw: alpha * raw + (1.0 - alpha) * previous))


def compute_kinetics_series(aligned: Sequence[AlignedPoint], config: KineticsConfig) -> List[KineticsPoint]:
    velocities = compute_velocity(aligned)
    accelerations = compute_acceleration(velocities)
    velocity_ema = exponential_smoothing(velocities, config.velocity_alpha)
    accel_ema = exponential_smoothing(accelerations, config.acceleration_alpha)

    return [
        KineticsPoint(
            date=point.date,
            points=point.points,
            velocity=velocities[idx],
            acceleration=accelerations[idx],
            velocity_ema=velocity_ema[idx],
            accel_ema=accel_ema[idx],
            estimated=point.estimated,
        )
        for idx, point in enumerate(aligned)
    ]


def build_daily_kinetics(
    history: Sequence[HistoryEntry],
    constants: DatasetConstants,
    velocity_smoothing: float = DEFAULT_SMOOTHING,
    acceleration_smoothing: float = DEFAULT_SMOOTHING,
    team_names: Optional[Sequence[str]] = None,
    tz: str = DEFAULT_TIMEZONE,
) -> List[TeamKinetics]:
    """
    Build daily kinetics for every team.

    Args:
        history: Snapshot history (treated as immutable)
        constants: Fallback constants for entries saved without their own
        velocity_smoothing: EMA alpha for velocity, in (0, 1]
        acceleration_smoothing: EMA alpha for acceleration, in (0, 1]
        team_names: Teams to build; defaults to the teams of the latest entry
        tz: Timezone for calendar-day bucketing

    Returns:
        One TeamKinetics per team; teams without aligned points get an empty series
    """
    config = KineticsConfig(
        velocity_alpha=velocity_smoothing,
        acceleration_alpha=acceleration_smoothing,
        timezone=tz,
    )
    if not history:
        return []

    if team_names is None:
        latest = sort_history(list(history))[-1]
        team_names = [team.name for team in latest.teams]

    results = []
    for name in team_names:
        aligned = align_team_history(history, name, constants, config.timezone)
        if not aligned:
            logger.debug("No aligned points for team %s", name)
        results.append(TeamKinetics(name=name, series=compute_kinetics_series(aligned, config)))
    return results


def trailing_window(series: Sequence[KineticsPoint], days: int) -> List[KineticsPoint]:
    """Points from the last ``days`` calendar days of the series."""
    if not series or days <= 0:
        return []
    start = series[-1].date - timedelta(days=days - 1)
    return [point for point in series if point.date >= start]


def summarize_kinetics(team: TeamKinetics, use_ema: bool = True) -> KineticsSummary:
    """Summary row: averages, extreme accelerations and velocity stability."""
    def pick(raw: float, smoothed: Optional[float]) -> float:
        return smoothed if use_ema and smoothed is not None else raw

    velocities = np.array([pick(p.velocity, p.velocity_ema) for p in team.series], dtype=float)
    accelerations = np.array([pick(p.acceleration, p.accel_ema) for p in team.series], dtype=float)

    if not team.series:
        return KineticsSummary(
            name=team.name,
            avg_velocity=0.0,
            avg_acceleration=0.0,
            max_positive=(None, -math.inf),
            max_negative=(None, math.inf),
            percent_accelerating=0.0,
            velocity_std_dev=0.0,
        )

    hi = int(np.argmax(accelerations))
    lo = int(np.argmin(accelerations))
    return KineticsSummary(
        name=team.name,
        avg_velocity=float(velocities.mean()),
        avg_acceleration=float(accelerations.mean()),
        max_positive=(team.series[hi].date, float(accelerations[hi])),
        max_negative=(team.series[lo].date, float(accelerations[lo])),
        percent_accelerating=float((accelerations > 0).mean() * 100.0),
        velocity_std_dev=float(velocities.std()),
    )
