"""
CSV import/export for team snapshots and kinetics.

Snapshot CSV header::

    name,steps,activityKm,missions,quizzes,photos,teamPoints,boostActiveCount

Blank required numerics read as 0, blank optional numerics (``teamPoints``,
``boostActiveCount``) read as missing. Non-numeric values are rejected.
"""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import List, Optional, Sequence, Union

import pandas as pd

from ..analytics.kinetics import TeamKinetics
from ..models.team import TeamSnapshot
from .validators import OPTIONAL_NUMERIC_FIELDS, REQUIRED_NUMERIC_FIELDS, DatasetValidationError

logger = logging.getLogger(__name__)

TEAM_CSV_COLUMNS = ["name"] + REQUIRED_NUMERIC_FIELDS + OPTIONAL_NUMERIC_FIELDS
KINETICS_CSV_COLUMNS = ["team", "date", "points", "velocity", "velocityEMA", "acceleration", "accelEMA", "estimated"]
INTEGER_FIELDS = {"steps", "missions", "quizzes", "photos", "boostActiveCount"}

CsvSource = Union[str, Path, io.TextIOBase]


def _numeric_column(df: pd.DataFrame, column: str, blank_value) -> pd.Series:
    raw = df[column].fillna("").astype(str).str.strip()
    blank = raw == ""
    values = pd.to_numeric(raw.mask(blank), errors="coerce")

    bad = values.isna() & ~blank
    if bad.any():
        rows = [int(i) + 2 for i in df.index[bad]]  # header is line 1
        raise DatasetValidationError([f"column '{column}' has non-numeric values on line(s) {rows}"])
    negative = (values < 0) & ~blank
    if negative.any():
        rows = [int(i) + 2 for i in df.index[negative]]
        raise DatasetValidationError([f"column '{column}' has negative values on line(s) {rows}"])

    cells = [blank_value if is_blank else float(value) for is_blank, value in zip(blank, values)]
    return pd.Series(cells, index=df.index, dtype=object)


def read_teams_frame(source: CsvSource) -> pd.DataFrame:
    """Read a snapshot CSV into a frame with coerced numeric columns."""
    df = pd.read_csv(source, dtype=str, keep_default_na=False, skip_blank_lines=True)
    df.columns = [str(c).strip() for c in df.columns]
    if "name" not in df.columns:
        raise DatasetValidationError(["CSV is missing the 'name' column"])

    for column in REQUIRED_NUMERIC_FIELDS + OPTIONAL_NUMERIC_FIELDS:
        if column not in df.columns:
            df[column] = ""

    df["name"] = df["name"].astype(str).str.strip()
    empty = df["name"] == ""
    if empty.any():
        logger.warning("Skipping %d CSV row(s) without a team name", int(empty.sum()))
        df = df[~empty].copy()

    for column in REQUIRED_NUMERIC_FIELDS:
        df[column] = _numeric_column(df, column, 0)
    for column in OPTIONAL_NUMERIC_FIELDS:
        df[column] = _numeric_column(df, column, None)
    return df[TEAM_CSV_COLUMNS].reset_index(drop=True)


def parse_teams_csv(source: CsvSource) -> List[TeamSnapshot]:
    """
    Parse team snapshots from a CSV file path or buffer.

    Args:
        source: Path or text buffer

    Returns:
        List of TeamSnapshot objects in file order
    """
    df = read_teams_frame(source)
    teams = []
    for record in df.to_dict(orient="records"):
        payload = {key: value for key, value in record.items() if value is not None}
        teams.append(TeamSnapshot.from_dict(payload))
    return teams


def parse_teams_csv_text(text: str) -> List[TeamSnapshot]:
    return parse_teams_csv(io.StringIO(text))


def _cell(field: str, value):
    if value is None:
        return None
    if field in INTEGER_FIELDS or (field == "teamPoints" and float(value).is_integer()):
        return int(value)
    return value


def teams_frame(teams: Sequence[TeamSnapshot]) -> pd.DataFrame:
    rows = []
    for team in teams:
        data = team.to_dict()
        rows.append({field: _cell(field, data.get(field)) for field in TEAM_CSV_COLUMNS})
    return pd.DataFrame(rows, columns=TEAM_CSV_COLUMNS, dtype=object)


def export_teams_csv(teams: Sequence[TeamSnapshot], file_path: Optional[str] = None) -> str:
    """Serialize teams to CSV text, optionally writing it to ``file_path``."""
    text = teams_frame(teams).to_csv(index=False, lineterminator="\n")
    if file_path:
        Path(file_path).write_text(text)
    return text


def kinetics_frame(teams: Sequence[TeamKinetics]) -> pd.DataFrame:
    """Long-format frame with one row per team and day."""
    rows = [
        {
            "team": team.name,
            "date": point.date.isoformat(),
            "points": point.points,
            "velocity": point.velocity,
            "velocityEMA": point.velocity_ema,
            "acceleration": point.acceleration,
            "accelEMA": point.accel_ema,
            "estimated": "yes" if point.estimated else "no",
        }
        for team in teams
        for point in team.series
    ]
    return pd.DataFrame(rows, columns=KINETICS_CSV_COLUMNS, dtype=object)


def export_kinetics_csv(teams: Sequence[TeamKinetics], file_path: Optional[str] = None) -> str:
    text = kinetics_frame(teams).to_csv(index=False, lineterminator="\n")
    if file_path:
        Path(file_path).write_text(text)
    return text
