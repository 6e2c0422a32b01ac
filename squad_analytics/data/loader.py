"""Data loader for challenge datasets and snapshot history."""

import copy
import json
import logging
import math
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional

from ..models.dataset import DEFAULT_CHALLENGE_START, HISTORY_LIMIT, Dataset, HistoryEntry, days_between, parse_timestamp
from ..analytics.number import round_half_up
from .validators import DatasetValidationError, validate_dataset_payload, validate_history_payload

logger = logging.getLogger(__name__)

SAMPLE_DATASET = {
    "asOf": "2025-09-27T08:00:00Z",
    "challengeStartDate": DEFAULT_CHALLENGE_START,
    "constants": {
        "stepsPerKmFoot": 1350,
        "ptsPerKmRunWalk": 14,
        "ptsPerKmBike": 7,
        "ptsPer10kStepsBaseline": 60,
        "stepMissionPts": {"fiveK": 50, "eightK": 30, "tenK": 30},
    },
    "teams": [
        {"name": "League", "steps": 810109, "activityKm": 871.69, "missions": 121, "quizzes": 48,
         "photos": 17, "teamPoints": 20171, "boostActiveCount": 3},
        {"name": "Les Sportifs", "steps": 627315, "activityKm": 403.29, "missions": 108, "quizzes": 43,
         "photos": 11, "teamPoints": 15582, "boostActiveCount": 2},
        {"name": "Protocole", "steps": 949448, "activityKm": 700.46, "missions": 140, "quizzes": 50, "photos": 30},
        {"name": "RWD", "steps": 795017, "activityKm": 758.93, "missions": 129, "quizzes": 43, "photos": 24},
        {"name": "Sanofi", "steps": 785920, "activityKm": 401.39, "missions": 123, "quizzes": 43, "photos": 29},
        {"name": "Pas si vote", "steps": 713873, "activityKm": 405.4, "missions": 128, "quizzes": 50, "photos": 25},
        {"name": "Wonder Woman", "steps": 764444, "activityKm": 367.3, "missions": 120, "quizzes": 49, "photos": 31},
        {"name": "Razmoket", "steps": 765154, "activityKm": 459.58, "missions": 126, "quizzes": 49, "photos": 23},
    ],
}


def _iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _read_json(file_path: str):
    with open(file_path, "r") as f:
        return json.load(f)


def _write_json(payload, file_path: str) -> None:
    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(payload, f, indent=2)


def json_ready(value):
    """Replace non-finite floats with ``None``; strict JSON has no Infinity or NaN."""
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, dict):
        return {key: json_ready(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [json_ready(item) for item in value]
    return value


def write_report(payload, file_path: str) -> None:
    """Write derived results as strict JSON."""
    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(json_ready(payload), f, indent=2, allow_nan=False)


class DataLoader:
    """Loads and saves datasets and snapshot history as JSON files."""

    @staticmethod
    def dataset_from_payload(payload: dict, strict_validation: bool = True) -> Dataset:
        errors = validate_dataset_payload(payload)
        if errors:
            if strict_validation:
                raise DatasetValidationError(errors)
            logger.warning("Dataset payload has %d validation issue(s): %s", len(errors), errors[0])
        return Dataset.from_dict(payload)

    @staticmethod
    def history_from_payload(payload: list, strict_validation: bool = True) -> List[HistoryEntry]:
        errors = validate_history_payload(payload)
        if errors:
            if strict_validation:
                raise DatasetValidationError(errors)
            logger.warning("History payload has %d validation issue(s): %s", len(errors), errors[0])
        return [HistoryEntry.from_dict(entry) for entry in payload if isinstance(entry, dict)]

    @staticmethod
    def load_dataset(file_path: str, strict_validation: bool = True) -> Dataset:
        """
        Load a dataset from a JSON file.

        Args:
            file_path: Path to JSON file
            strict_validation: Raise on schema errors instead of logging them

        Returns:
            Dataset object
        """
        return DataLoader.dataset_from_payload(_read_json(file_path), strict_validation)

    @staticmethod
    def save_dataset(dataset: Dataset, file_path: str) -> None:
        _write_json(dataset.to_dict(), file_path)

    @staticmethod
    def load_history(file_path: str, strict_validation: bool = True) -> List[HistoryEntry]:
        """
        Load snapshot history from a JSON file.

        A missing file is an empty history.

        Args:
            file_path: Path to JSON file holding a list of entries
            strict_validation: Raise on schema errors instead of logging them

        Returns:
            List of HistoryEntry objects in file order (newest first)
        """
        if not Path(file_path).exists():
            logger.info("History file %s not found; starting empty", file_path)
            return []
        return DataLoader.history_from_payload(_read_json(file_path), strict_validation)

    @staticmethod
    def save_history(history: List[HistoryEntry], file_path: str) -> None:
        _write_json([entry.to_dict() for entry in history], file_path)

    @staticmethod
    def append_history(
        dataset: Dataset,
        file_path: str,
        limit: int = HISTORY_LIMIT,
        saved_at: Optional[str] = None,
    ) -> List[HistoryEntry]:
        """
        Archive ``dataset`` at the head of the history file.

        Only the newest ``limit`` entries are kept.

        Args:
            dataset: Snapshot to archive
            file_path: History JSON file
            limit: Retention limit
            saved_at: Save timestamp; defaults to now (UTC)

        Returns:
            The updated history, newest first
        """
        history = DataLoader.load_history(file_path)
        entry = HistoryEntry.from_dataset(dataset, saved_at=saved_at or _iso(datetime.now(timezone.utc)))
        updated = [entry] + history
        if len(updated) > limit:
            logger.info("History exceeds %d entries; dropping %d oldest", limit, len(updated) - limit)
        updated = updated[:limit]
        DataLoader.save_history(updated, file_path)
        return updated

    @staticmethod
    def sample_dataset() -> Dataset:
        return Dataset.from_dict(copy.deepcopy(SAMPLE_DATASET))

    @staticmethod
    def sample_history(days: int = 5) -> List[HistoryEntry]:
        """
        Synthesize ``days`` daily snapshots ending at the sample dataset.

        Counters are scaled linearly by the share of the challenge elapsed,
        so earlier entries look like the same teams at a slower point in time.
        """
        dataset = DataLoader.sample_dataset()
        as_of = parse_timestamp(dataset.as_of)
        elapsed = days_between(dataset.challenge_start_date, dataset.as_of)

        history = []
        for offset in range(days - 1, -1, -1):
            fraction = max(elapsed - offset, 0.0) / elapsed
            payload = copy.deepcopy(SAMPLE_DATASET)
            payload["asOf"] = _iso(as_of - timedelta(days=offset))
            for team in payload["teams"]:
                for key in ("steps", "missions", "quizzes", "photos"):
                    team[key] = int(round_half_up(team[key] * fraction))
                team["activityKm"] = round(team["activityKm"] * fraction, 2)
                if "teamPoints" in team:
                    team["teamPoints"] = round_half_up(team["teamPoints"] * fraction)
            history.append(HistoryEntry.from_dataset(Dataset.from_dict(payload)))
        return list(reversed(history))

    @staticmethod
    def create_sample_data(output_path: str, history_path: Optional[str] = None, days: int = 5) -> None:
        """
        Create sample challenge data for testing.

        Args:
            output_path: Path to save the sample dataset
            history_path: Optional path to save a synthetic history
            days: Number of daily history entries to synthesize
        """
        _write_json(copy.deepcopy(SAMPLE_DATASET), output_path)
        if history_path:
            DataLoader.save_history(DataLoader.sample_history(days), history_path)
