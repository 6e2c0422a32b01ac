"""Tests for CSV snapshot import/export."""

import pytest

from squad_analytics.analytics.kinetics import build_daily_kinetics
from squad_analytics.data.csv_io import (
    TEAM_CSV_COLUMNS,
    export_kinetics_csv,
    export_teams_csv,
    parse_teams_csv,
    parse_teams_csv_text,
)
from squad_analytics.data.validators import DatasetValidationError
from squad_analytics.models.dataset import DEFAULT_CONSTANTS, HistoryEntry
from squad_analytics.models.team import TeamSnapshot

HEADER = "name,steps,activityKm,missions,quizzes,photos,teamPoints,boostActiveCount"


def test_parse_blank_fields():
    text = "\n".join([
        HEADER,
        "League,810109,871.69,121,48,17,20171,3",
        "RWD,795017,,129,43,24,,",
    ])
    league, rwd = parse_teams_csv_text(text)

    assert league.steps == 810109
    assert league.activity_km == pytest.approx(871.69)
    assert league.team_points == 20171
    assert league.boost_active_count == 3

    assert rwd.activity_km == 0.0
    assert rwd.team_points is None
    assert rwd.boost_active_count is None


def test_missing_optional_columns_are_allowed():
    (team,) = parse_teams_csv_text("name,steps,activityKm\nSolo,1000,2.5\n")
    assert team.missions == 0
    assert team.team_points is None


def test_non_numeric_value_is_rejected():
    text = f"{HEADER}\nLeague,lots,871.69,121,48,17,,\n"
    with pytest.raises(DatasetValidationError, match="steps"):
        parse_teams_csv_text(text)


def test_negative_value_is_rejected():
    with pytest.raises(DatasetValidationError, match="negative"):
        parse_teams_csv_text("name,steps\nLeague,-4\n")


def test_missing_name_column_is_rejected():
    with pytest.raises(DatasetValidationError):
        parse_teams_csv_text("steps,activityKm\n10,1\n")


def test_export_teams_csv():
    teams = [
        TeamSnapshot(name="League", steps=810109, activity_km=871.69, missions=121, quizzes=48,
                     photos=17, team_points=20171, boost_active_count=3),
        TeamSnapshot(name="RWD", steps=795017, missions=129, quizzes=43, photos=24),
    ]
    lines = export_teams_csv(teams).splitlines()
    assert lines == [
        ",".join(TEAM_CSV_COLUMNS),
        "League,810109,871.69,121,48,17,20171,3",
        "RWD,795017,0.0,129,43,24,,",
    ]


def test_csv_file_round_trip(tmp_path):
    teams = [TeamSnapshot(name="A", steps=100, activity_km=1.5, team_points=12.5)]
    path = tmp_path / "teams.csv"
    export_teams_csv(teams, str(path))
    assert parse_teams_csv(str(path)) == teams


def test_export_kinetics_csv():
    history = [
        HistoryEntry(as_of="2025-09-20T08:00:00Z", teams=[TeamSnapshot(name="A", team_points=100)]),
        HistoryEntry(as_of="2025-09-22T08:00:00Z", teams=[TeamSnapshot(name="A", team_points=120)]),
    ]
    lines = export_kinetics_csv(build_daily_kinetics(history, DEFAULT_CONSTANTS)).splitlines()
    assert lines[0] == "team,date,points,velocity,velocityEMA,acceleration,accelEMA,estimated"
    assert len(lines) == 4
    assert lines[1].startswith("A,2025-09-20,100.0,")
    assert lines[1].endswith(",no")
    assert lines[2].endswith(",yes")
