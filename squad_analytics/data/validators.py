"""Schema validators for imported datasets, history files and CSV rows."""

from __future__ import annotations

from typing import Dict, List, Optional

from ..models.dataset import parse_timestamp

REQUIRED_NUMERIC_FIELDS = ["steps", "activityKm", "missions", "quizzes", "photos"]
OPTIONAL_NUMERIC_FIELDS = ["teamPoints", "boostActiveCount"]
POSITIVE_CONSTANT_FIELDS = ["stepsPerKmFoot"]
NUMERIC_CONSTANT_FIELDS = ["stepsPerKmFoot", "ptsPerKmRunWalk", "ptsPerKmBike", "ptsPer10kStepsBaseline"]


class DatasetValidationError(ValueError):
    """Raised when an imported payload fails schema checks."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        preview = "; ".join(self.errors[:5])
        more = f" (+{len(self.errors) - 5} more)" if len(self.errors) > 5 else ""
        super().__init__(f"{preview}{more}")


def _to_float(value) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _validate_timestamp(value, label: str) -> List[str]:
    try:
        parse_timestamp(value)
    except (TypeError, ValueError):
        return [f"{label} is not an ISO-8601 timestamp: {value!r}"]
    return []


def validate_team_row(row, label: str) -> List[str]:
    if not isinstance(row, dict):
        return [f"{label} must be an object"]

    errors: List[str] = []
    if not str(row.get("name") or "").strip():
        errors.append(f"{label} missing team name")

    for field in REQUIRED_NUMERIC_FIELDS:
        if field not in row or row.get(field) is None:
            continue
        val = _to_float(row.get(field))
        if val is None:
            errors.append(f"{label} invalid numeric field '{field}'")
        elif val < 0:
            errors.append(f"{label} field '{field}' must be >= 0")

    for field in OPTIONAL_NUMERIC_FIELDS:
        if row.get(field) is None:
            continue
        val = _to_float(row.get(field))
        if val is None:
            errors.append(f"{label} invalid numeric field '{field}'")
        elif val < 0:
            errors.append(f"{label} field '{field}' must be >= 0")

    members = row.get("members")
    if members is not None:
        if not isinstance(members, list):
            errors.append(f"{label}.members must be a list")
        else:
            for m_idx, member in enumerate(members):
                if not isinstance(member, dict) or _to_float(member.get("points")) is None:
                    errors.append(f"{label}.members[{m_idx}] needs numeric 'points'")
    return errors


def validate_teams_rows(rows: List[Dict], prefix: str = "teams") -> List[str]:
    errors: List[str] = []
    names = set()
    for idx, row in enumerate(rows):
        label = f"{prefix}[{idx}]"
        errors.extend(validate_team_row(row, label))
        if isinstance(row, dict):
            name = str(row.get("name") or "").strip()
            if name and name in names:
                errors.append(f"{label} duplicate team name '{name}'")
            names.add(name)
    return errors


def validate_constants_payload(payload, label: str = "constants") -> List[str]:
    if not isinstance(payload, dict):
        return [f"{label} must be an object"]

    errors: List[str] = []
    for field in NUMERIC_CONSTANT_FIELDS:
        if field not in payload:
            continue
        val = _to_float(payload.get(field))
        if val is None:
            errors.append(f"{label}.{field} must be numeric")
        elif field in POSITIVE_CONSTANT_FIELDS and val <= 0:
            errors.append(f"{label}.{field} must be > 0")

    missions = payload.get("stepMissionPts")
    if missions is not None:
        if not isinstance(missions, dict):
            errors.append(f"{label}.stepMissionPts must be an object")
        else:
            for key in ("fiveK", "eightK", "tenK"):
                if key in missions and _to_float(missions.get(key)) is None:
                    errors.append(f"{label}.stepMissionPts.{key} must be numeric")
    return errors


def validate_dataset_payload(payload: Dict) -> List[str]:
    if not isinstance(payload, dict):
        return ["dataset payload must be an object"]

    errors = _validate_timestamp(payload.get("asOf"), "asOf")
    teams = payload.get("teams")
    if not isinstance(teams, list):
        errors.append("dataset payload must include a 'teams' list")
    else:
        errors.extend(validate_teams_rows(teams))

    if payload.get("constants") is not None:
        errors.extend(validate_constants_payload(payload["constants"]))
    if payload.get("challengeStartDate"):
        errors.extend(_validate_timestamp(payload["challengeStartDate"], "challengeStartDate"))
    return errors


def validate_history_payload(payload) -> List[str]:
    if not isinstance(payload, list):
        return ["history payload must be a list of entries"]

    errors: List[str] = []
    for idx, entry in enumerate(payload):
        label = f"history[{idx}]"
        if not isinstance(entry, dict):
            errors.append(f"{label} must be an object")
            continue
        errors.extend(_validate_timestamp(entry.get("asOf"), f"{label}.asOf"))
        if entry.get("savedAt"):
            errors.extend(_validate_timestamp(entry["savedAt"], f"{label}.savedAt"))
        teams = entry.get("teams")
        if not isinstance(teams, list):
            errors.append(f"{label} missing 'teams' list")
        else:
            errors.extend(validate_teams_rows(teams, prefix=f"{label}.teams"))
        if entry.get("constants") is not None:
            errors.extend(validate_constants_payload(entry["constants"], f"{label}.constants"))
    return errors
