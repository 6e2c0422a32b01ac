"""Tests for threshold bands and coaching insights."""

import pytest

from squad_analytics.analytics.insights import (
    MAX_INSIGHTS,
    THRESHOLDS,
    classify_kpis,
    generate_insights,
    get_threshold,
)
from squad_analytics.analytics.kpis import compute_kpis
from squad_analytics.models.dataset import DEFAULT_CONSTANTS
from squad_analytics.models.team import Member, TeamSnapshot


@pytest.mark.parametrize(
    "value,label",
    [(0.95, "Good"), (0.949, "Watch"), (0.8, "Watch"), (0.5, "Fix")],
)
def test_logging_rate_bands(value, label):
    assert get_threshold(value, THRESHOLDS["logging_rate"]).label == label


def test_band_upper_bound_is_exclusive():
    assert get_threshold(0.3, THRESHOLDS["bike_share"]).label == "Heavy"
    assert get_threshold(0.29, THRESHOLDS["bike_share"]).label == "Moderate"


def test_unmatched_value_falls_back_to_last_band():
    assert get_threshold(5.0, THRESHOLDS["km_per_10k_steps"]).label == "Walk/Run"


def test_reference_team_insights():
    team = TeamSnapshot(
        name="League",
        steps=810109,
        activity_km=871.69,
        missions=121,
        quizzes=48,
        photos=17,
        team_points=20171,
        boost_active_count=3,
    )
    kpis = compute_kpis(team, DEFAULT_CONSTANTS)
    assert generate_insights(team, kpis, DEFAULT_CONSTANTS) == [
        "Strong bike pillar - keep it; it boosts distance missions and pts/10k.",
        "Mission density is low - ensure 5k+8k+10k missions are joined before moving.",
        "Elite yield - maintain logging + missions.",
    ]

    bands = classify_kpis(kpis)
    assert bands["logging_rate"].tone == "good"
    assert bands["missions_per_100k"].label == "Low"


def test_low_logging_insight_quantifies_reclaimable_points():
    team = TeamSnapshot(name="Walkers", steps=135000, activity_km=50)
    kpis = compute_kpis(team, DEFAULT_CONSTANTS)
    insights = generate_insights(team, kpis, DEFAULT_CONSTANTS)
    assert insights[0] == (
        "You're recording only 50% of walking - start Active Walk/Run to reclaim ~ 700 pts."
    )
    assert insights[-1] == "Add member points + boosts to see balance insights."
    assert len(insights) <= MAX_INSIGHTS


def test_balance_spread_insight():
    team = TeamSnapshot(
        name="Crew",
        steps=135000,
        activity_km=100,
        members=[Member("a", 10), Member("b", 90)],
    )
    kpis = compute_kpis(team, DEFAULT_CONSTANTS)
    assert "Big spread in contributions; set a daily floor (10 km activity + step missions)." in (
        generate_insights(team, kpis, DEFAULT_CONSTANTS)
    )
