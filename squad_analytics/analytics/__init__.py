"""KPI, kinetics, projection and insight engines."""

from .kinetics import KineticsConfig, TeamKinetics, build_daily_kinetics
from .kpis import TeamKPIs, compute_kpis
from .projection import ScenarioInputs, compute_pace, project_scenarios, project_standings, project_team

__all__ = [
    "KineticsConfig",
    "ScenarioInputs",
    "TeamKPIs",
    "TeamKinetics",
    "build_daily_kinetics",
    "compute_kpis",
    "compute_pace",
    "project_scenarios",
    "project_standings",
    "project_team",
]
