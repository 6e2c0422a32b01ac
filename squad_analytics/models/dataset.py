"""Dataset, constants and history entry models.

Every history entry carries the scoring constants that were in effect when it
was saved. Entries written before constants were tracked have ``constants``
set to ``None``; callers resolve those through
:meth:`HistoryEntry.resolve_constants` with an explicit fallback.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from typing import Dict, List, Optional, Union

import pytz

from .team import TeamSnapshot

HISTORY_LIMIT = 14
DEFAULT_CHALLENGE_START = "2025-09-17T00:00:00Z"
DEFAULT_TIMEZONE = "UTC"

Timestamp = Union[str, datetime, date]


@dataclass(frozen=True)
class StepMissionPoints:
    """Points paid by the 5k, 8k and 10k step missions."""

    five_k: float = 50.0
    eight_k: float = 30.0
    ten_k: float = 30.0

    @property
    def total(self) -> float:
        return self.five_k + self.eight_k + self.ten_k

    def to_dict(self) -> dict:
        return {"fiveK": self.five_k, "eightK": self.eight_k, "tenK": self.ten_k}

    @classmethod
    def from_dict(cls, data: dict, defaults: Optional["StepMissionPoints"] = None) -> "StepMissionPoints":
        base = defaults or cls()
        return cls(
            five_k=float(data.get("fiveK", base.five_k)),
            eight_k=float(data.get("eightK", base.eight_k)),
            ten_k=float(data.get("tenK", base.ten_k)),
        )


@dataclass(frozen=True)
class DatasetConstants:
    """Scoring constants for a dataset snapshot."""

    steps_per_km_foot: float = 1350.0
    pts_per_km_run_walk: float = 14.0
    pts_per_km_bike: float = 7.0
    pts_per_10k_steps_baseline: float = 60.0
    step_mission_pts: StepMissionPoints = field(default_factory=StepMissionPoints)

    def __post_init__(self):
        if self.steps_per_km_foot <= 0:
            raise ValueError(f"steps_per_km_foot must be > 0, got {self.steps_per_km_foot}")

    @property
    def mission_bundle_points(self) -> float:
        """Value of a full 5k + 8k + 10k mission bundle."""
        return self.step_mission_pts.total

    def merged(self, overrides: dict) -> "DatasetConstants":
        """Return a copy with a partial wire-format payload applied on top."""
        return DatasetConstants.from_dict(overrides, defaults=self)

    def to_dict(self) -> dict:
        return {
            "stepsPerKmFoot": self.steps_per_km_foot,
            "ptsPerKmRunWalk": self.pts_per_km_run_walk,
            "ptsPerKmBike": self.pts_per_km_bike,
            "ptsPer10kStepsBaseline": self.pts_per_10k_steps_baseline,
            "stepMissionPts": self.step_mission_pts.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict, defaults: Optional["DatasetConstants"] = None) -> "DatasetConstants":
        base = defaults or cls()
        return cls(
            steps_per_km_foot=float(data.get("stepsPerKmFoot", base.steps_per_km_foot)),
            pts_per_km_run_walk=float(data.get("ptsPerKmRunWalk", base.pts_per_km_run_walk)),
            pts_per_km_bike=float(data.get("ptsPerKmBike", base.pts_per_km_bike)),
            pts_per_10k_steps_baseline=float(
                data.get("ptsPer10kStepsBaseline", base.pts_per_10k_steps_baseline)
            ),
            step_mission_pts=StepMissionPoints.from_dict(
                data.get("stepMissionPts") or {}, defaults=base.step_mission_pts
            ),
        )


DEFAULT_CONSTANTS = DatasetConstants()


def parse_timestamp(value: Timestamp) -> datetime:
    """Parse an ISO-8601 timestamp into an aware datetime.

    A trailing ``Z`` is accepted and naive values are read as UTC. Plain
    dates map to midnight UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        raw = str(value or "").strip()
        if not raw:
            raise ValueError("Timestamp is empty")
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        parsed = datetime.fromisoformat(raw)

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def calendar_day(value: Timestamp, tz: str = DEFAULT_TIMEZONE) -> date:
    """Calendar day of a timestamp as seen in timezone ``tz``."""
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    return parse_timestamp(value).astimezone(pytz.timezone(tz)).date()


def days_between(start: Timestamp, end: Timestamp) -> float:
    """Fractional days from ``start`` to ``end``."""
    return (parse_timestamp(end) - parse_timestamp(start)).total_seconds() / 86400.0


@dataclass
class Dataset:
    """The live snapshot: every team's counters plus the active constants."""

    as_of: str
    teams: List[TeamSnapshot] = field(default_factory=list)
    constants: DatasetConstants = DEFAULT_CONSTANTS
    challenge_start_date: Optional[str] = None

    def find_team(self, name: str) -> Optional[TeamSnapshot]:
        for team in self.teams:
            if team.name == name:
                return team
        return None

    def with_constants(self, overrides: dict) -> "Dataset":
        return replace(self, constants=self.constants.merged(overrides))

    def to_dict(self) -> dict:
        data = {
            "asOf": self.as_of,
            "teams": [team.to_dict() for team in self.teams],
            "constants": self.constants.to_dict(),
        }
        if self.challenge_start_date:
            data["challengeStartDate"] = self.challenge_start_date
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Dataset":
        constants = data.get("constants")
        return cls(
            as_of=str(data["asOf"]),
            teams=[TeamSnapshot.from_dict(t) for t in data.get("teams", [])],
            constants=DatasetConstants.from_dict(constants) if constants else DEFAULT_CONSTANTS,
            challenge_start_date=data.get("challengeStartDate"),
        )


@dataclass
class HistoryEntry:
    """An archived snapshot. ``constants`` is ``None`` for legacy entries."""

    as_of: str
    teams: List[TeamSnapshot] = field(default_factory=list)
    constants: Optional[DatasetConstants] = None
    saved_at: Optional[str] = None
    challenge_start_date: Optional[str] = None

    def find_team(self, name: str) -> Optional[TeamSnapshot]:
        for team in self.teams:
            if team.name == name:
                return team
        return None

    def resolve_constants(self, fallback: DatasetConstants) -> DatasetConstants:
        """Constants stored with this entry, else the caller-supplied fallback."""
        return self.constants if self.constants is not None else fallback

    def sort_key(self):
        saved = self.saved_at or self.as_of
        return (parse_timestamp(self.as_of), parse_timestamp(saved))

    @classmethod
    def from_dataset(cls, dataset: Dataset, saved_at: Optional[str] = None) -> "HistoryEntry":
        return cls(
            as_of=dataset.as_of,
            teams=list(dataset.teams),
            constants=dataset.constants,
            saved_at=saved_at or dataset.as_of,
            challenge_start_date=dataset.challenge_start_date,
        )

    def to_dict(self) -> dict:
        data: Dict[str, object] = {
            "asOf": self.as_of,
            "teams": [team.to_dict() for team in self.teams],
        }
        if self.constants is not None:
            data["constants"] = self.constants.to_dict()
        if self.saved_at:
            data["savedAt"] = self.saved_at
        if self.challenge_start_date:
            data["challengeStartDate"] = self.challenge_start_date
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "HistoryEntry":
        constants = data.get("constants")
        return cls(
            as_of=str(data["asOf"]),
            teams=[TeamSnapshot.from_dict(t) for t in data.get("teams", [])],
            constants=DatasetConstants.from_dict(constants) if constants else None,
            saved_at=data.get("savedAt"),
            challenge_start_date=data.get("challengeStartDate"),
        )


def sort_history(history: List[HistoryEntry]) -> List[HistoryEntry]:
    """History ordered by ``asOf`` (then ``savedAt``), oldest first."""
    return sorted(history, key=HistoryEntry.sort_key)
