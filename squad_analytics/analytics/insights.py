"""Rule-based coaching insights derived from KPIs and kinetics."""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from ..models.dataset import DatasetConstants
from ..models.team import TeamSnapshot
from .kinetics import TeamKinetics, summarize_kinetics, trailing_window
from .kpis import TeamKPIs
from .number import round_to

MAX_INSIGHTS = 6


@dataclass(frozen=True)
class Threshold:
    """A labelled band; ``lower`` is inclusive and ``upper`` exclusive."""

    label: str
    tone: str  # "good", "watch", "fix" or "neutral"
    lower: Optional[float] = None
    upper: Optional[float] = None

    def contains(self, value: float) -> bool:
        above = self.lower is None or value >= self.lower
        below = self.upper is None or value < self.upper
        return above and below


THRESHOLDS: Dict[str, List[Threshold]] = {
    "logging_rate": [
        Threshold("Good", "good", lower=0.95),
        Threshold("Watch", "watch", lower=0.8, upper=0.95),
        Threshold("Fix", "fix", upper=0.8),
    ],
    "bike_share": [
        Threshold("None", "neutral", upper=0.05),
        Threshold("Light", "watch", lower=0.05, upper=0.15),
        Threshold("Moderate", "good", lower=0.15, upper=0.3),
        Threshold("Heavy", "good", lower=0.3),
    ],
    "missions_per_100k": [
        Threshold("Good", "good", lower=17),
        Threshold("Ok", "watch", lower=15, upper=17),
        Threshold("Low", "fix", upper=15),
    ],
    "pts_per_10k_steps": [
        Threshold("Elite", "good", lower=230),
        Threshold("Solid", "watch", lower=200, upper=230),
        Threshold("Low", "fix", upper=200),
    ],
    "km_per_10k_steps": [
        Threshold("Bike-rich", "good", lower=10),
        Threshold("Mixed", "good", lower=8),
        Threshold("Walk/Run", "watch", lower=6.7, upper=8),
    ],
}


def get_threshold(value: float, bands: Sequence[Threshold]) -> Threshold:
    """First band containing ``value``; the last band when none match."""
    for band in bands:
        if band.contains(value):
            return band
    return bands[-1]


def classify_kpis(kpis: TeamKPIs) -> Dict[str, Threshold]:
    return {name: get_threshold(getattr(kpis, name), bands) for name, bands in THRESHOLDS.items()}


def _pct(value: float) -> str:
    return f"{round_to(value * 100, 0):.0f}%"


def _logging_insight(kpis: TeamKPIs, constants: DatasetConstants, foot_km: float) -> Optional[str]:
    rate = kpis.logging_rate
    if rate < 0.8:
        reclaimable = (1 - rate) * foot_km * constants.pts_per_km_run_walk
        return (
            f"You're recording only {_pct(rate)} of walking - start Active Walk/Run "
            f"to reclaim ~ {round_to(reclaimable, 0):.0f} pts."
        )
    if rate < 0.95:
        missing_km = round_to((1 - rate) * foot_km, 1)
        return f"Good, but there's {round_to(missing_km, 0):.0f} km of walking not logged yet."
    return None


def _bike_insight(kpis: TeamKPIs, constants: DatasetConstants) -> Optional[str]:
    if kpis.bike_share < 0.05:
        return (
            "No bike split detected. Adding 20-25% bike lifts km/10k steps to 8-10 "
            f"and adds easy points (~{constants.pts_per_km_bike:g} pts/km)."
        )
    if kpis.bike_share >= 0.3:
        return "Strong bike pillar - keep it; it boosts distance missions and pts/10k."
    return None


def _mission_insight(kpis: TeamKPIs) -> Optional[str]:
    if kpis.missions_per_100k < 15:
        return "Mission density is low - ensure 5k+8k+10k missions are joined before moving."
    if kpis.missions_per_100k >= 17:
        return "Mission discipline is excellent - don't drop it."
    return None


def _yield_insight(kpis: TeamKPIs) -> Optional[str]:
    if kpis.pts_per_10k_steps < 200:
        return "Overall yield per step is low. Fix logging first, then add a light bike stream."
    if kpis.pts_per_10k_steps >= 230:
        return "Elite yield - maintain logging + missions."
    return None


def _balance_insight(team: TeamSnapshot, kpis: TeamKPIs) -> Optional[str]:
    if kpis.balance_cv is not None and kpis.balance_cv > 0.3:
        return "Big spread in contributions; set a daily floor (10 km activity + step missions)."
    if kpis.boost_coverage is not None and kpis.boost_coverage < 0.6:
        return "Boost coverage is low - run a rota so someone's always boosted."
    if not team.members and team.boost_active_count is None:
        return "Add member points + boosts to see balance insights."
    return None


def generate_insights(team: TeamSnapshot, kpis: TeamKPIs, constants: DatasetConstants) -> List[str]:
    """
    Plain-language diagnostics for one team.

    Args:
        team: Raw counters
        kpis: KPIs computed for ``team`` under ``constants``
        constants: Scoring constants

    Returns:
        Up to six messages, in logging / bike / missions / yield / balance order
    """
    foot_km = team.steps / constants.steps_per_km_foot
    candidates = [
        _logging_insight(kpis, constants, foot_km),
        _bike_insight(kpis, constants),
        _mission_insight(kpis),
        _yield_insight(kpis),
        _balance_insight(team, kpis),
    ]
    return [message for message in candidates if message][:MAX_INSIGHTS]


def acceleration_insights(team: TeamKinetics, window_days: int) -> List[str]:
    """Momentum diagnostics over the trailing ``window_days`` of raw kinetics."""
    window = TeamKinetics(name=team.name, series=trailing_window(team.series, window_days))
    if not window.series:
        return []

    summary = summarize_kinetics(window, use_ema=False)
    insights = []

    if summary.avg_acceleration > 50:
        insights.append(f"Pace is rising by ~{summary.avg_acceleration:.0f} pts/day^2.")
    elif summary.avg_acceleration < -50:
        insights.append(f"Pace is fading by ~{abs(summary.avg_acceleration):.0f} pts/day^2.")

    surge_date, surge = summary.max_positive
    if surge > 300:
        insights.append(
            f"Big surge on {surge_date.isoformat()}: +{surge:.0f} pts/day^2; investigate missions/bike/logging."
        )

    if summary.percent_accelerating >= 60:
        insights.append("Momentum is strong; keep mission cadence high.")

    if summary.velocity_std_dev > 250:
        insights.append("Inconsistent daily gains; set a daily floor (10 km + step bundle).")

    return insights
