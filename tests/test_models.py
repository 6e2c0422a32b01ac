"""Unit tests for snapshot, constants and history models."""

from datetime import date, datetime, timezone

import pytest

from squad_analytics.models.dataset import (
    DEFAULT_CONSTANTS,
    Dataset,
    DatasetConstants,
    HistoryEntry,
    calendar_day,
    days_between,
    parse_timestamp,
    sort_history,
)
from squad_analytics.models.team import Member, TeamSnapshot


def test_team_from_dict_uses_wire_names():
    team = TeamSnapshot.from_dict({
        "name": " League ",
        "steps": 810109,
        "activityKm": 871.69,
        "missions": 121,
        "quizzes": 48,
        "photos": 17,
        "teamPoints": 20171,
        "boostActiveCount": 3,
        "members": [{"name": "Ana", "points": 120}],
    })
    assert team.name == "League"
    assert team.activity_km == pytest.approx(871.69)
    assert team.team_points == 20171.0
    assert team.boost_active_count == 3
    assert team.members == [Member(name="Ana", points=120.0)]
    assert team.has_authoritative_points


def test_team_optional_fields_stay_missing():
    team = TeamSnapshot.from_dict({"name": "RWD", "steps": 100})
    assert team.team_points is None
    assert team.boost_active_count is None
    assert not team.has_authoritative_points
    data = team.to_dict()
    assert "teamPoints" not in data
    assert "boostActiveCount" not in data
    assert data["activityKm"] == 0.0


def test_team_rejects_negative_counters():
    with pytest.raises(ValueError):
        TeamSnapshot(name="Bad", steps=-1)
    with pytest.raises(ValueError):
        TeamSnapshot(name="")


def test_default_constants_bundle():
    assert DEFAULT_CONSTANTS.steps_per_km_foot == 1350
    assert DEFAULT_CONSTANTS.mission_bundle_points == 110


def test_constants_partial_override():
    constants = DEFAULT_CONSTANTS.merged({"ptsPerKmBike": 9, "stepMissionPts": {"tenK": 40}})
    assert constants.pts_per_km_bike == 9
    assert constants.pts_per_km_run_walk == 14
    assert constants.mission_bundle_points == 120


def test_constants_reject_zero_steps_per_km():
    with pytest.raises(ValueError):
        DatasetConstants(steps_per_km_foot=0)


def test_parse_timestamp_variants():
    assert parse_timestamp("2025-09-20T08:00:00Z") == datetime(2025, 9, 20, 8, tzinfo=timezone.utc)
    assert parse_timestamp("2025-09-20T08:00:00") == datetime(2025, 9, 20, 8, tzinfo=timezone.utc)
    assert parse_timestamp(date(2025, 9, 20)) == datetime(2025, 9, 20, tzinfo=timezone.utc)
    with pytest.raises(ValueError):
        parse_timestamp("")


def test_calendar_day_respects_timezone():
    assert calendar_day("2025-09-20T02:00:00Z") == date(2025, 9, 20)
    assert calendar_day("2025-09-20T02:00:00Z", "America/New_York") == date(2025, 9, 19)


def test_days_between_is_fractional():
    assert days_between("2025-09-17T00:00:00Z", "2025-09-18T12:00:00Z") == pytest.approx(1.5)


def test_history_entry_constants_fallback():
    legacy = HistoryEntry.from_dict({"asOf": "2025-09-20T08:00:00Z", "teams": [{"name": "A"}]})
    assert legacy.constants is None

    fallback = DatasetConstants(pts_per_km_bike=8)
    assert legacy.resolve_constants(fallback) is fallback

    own = HistoryEntry(as_of="2025-09-20T08:00:00Z", constants=DEFAULT_CONSTANTS)
    assert own.resolve_constants(fallback) is DEFAULT_CONSTANTS


def test_history_entry_round_trip_keeps_saved_at():
    dataset = Dataset(as_of="2025-09-20T08:00:00Z", teams=[TeamSnapshot(name="A", steps=10)])
    entry = HistoryEntry.from_dataset(dataset, saved_at="2025-09-20T09:00:00Z")
    restored = HistoryEntry.from_dict(entry.to_dict())
    assert restored.saved_at == "2025-09-20T09:00:00Z"
    assert restored.constants == DEFAULT_CONSTANTS
    assert restored.find_team("A").steps == 10
    assert restored.find_team("missing") is None


def test_sort_history_orders_by_as_of_then_saved_at():
    late = HistoryEntry(as_of="2025-09-21T08:00:00Z")
    first_save = HistoryEntry(as_of="2025-09-20T08:00:00Z", saved_at="2025-09-20T08:05:00Z")
    resave = HistoryEntry(as_of="2025-09-20T08:00:00Z", saved_at="2025-09-20T10:00:00Z")
    ordered = sort_history([late, resave, first_save])
    assert ordered == [first_save, resave, late]


def test_dataset_with_constants_is_a_copy():
    dataset = Dataset(as_of="2025-09-20T08:00:00Z")
    updated = dataset.with_constants({"ptsPer10kStepsBaseline": 70})
    assert updated.constants.pts_per_10k_steps_baseline == 70
    assert dataset.constants.pts_per_10k_steps_baseline == 60
