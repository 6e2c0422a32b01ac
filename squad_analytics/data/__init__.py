"""Dataset loading, validation and CSV interchange."""

from .csv_io import export_kinetics_csv, export_teams_csv, parse_teams_csv, parse_teams_csv_text
from .loader import DataLoader
from .validators import DatasetValidationError, validate_dataset_payload, validate_history_payload

__all__ = [
    "DataLoader",
    "DatasetValidationError",
    "export_kinetics_csv",
    "export_teams_csv",
    "parse_teams_csv",
    "parse_teams_csv_text",
    "validate_dataset_payload",
    "validate_history_payload",
]
