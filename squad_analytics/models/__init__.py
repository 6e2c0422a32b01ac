"""Snapshot, constants and history data models."""

from .dataset import (
    DEFAULT_CONSTANTS,
    HISTORY_LIMIT,
    Dataset,
    DatasetConstants,
    HistoryEntry,
    StepMissionPoints,
    calendar_day,
    parse_timestamp,
)
from .team import Member, TeamSnapshot

__all__ = [
    "DEFAULT_CONSTANTS",
    "HISTORY_LIMIT",
    "Dataset",
    "DatasetConstants",
    "HistoryEntry",
    "Member",
    "StepMissionPoints",
    "TeamSnapshot",
    "calendar_day",
    "parse_timestamp",
]
