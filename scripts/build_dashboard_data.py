import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List

from squad_analytics.analytics.insights import acceleration_insights, classify_kpis, generate_insights
from squad_analytics.analytics.kinetics import build_daily_kinetics, summarize_kinetics
from squad_analytics.analytics.kpis import compute_daily_stats, compute_team_kpis
from squad_analytics.analytics.projection import project_standings
from squad_analytics.data.loader import DataLoader, json_ready

REPO_ROOT = Path(__file__).resolve().parents[1]
DATA_ROOT = REPO_ROOT / "data"
DATASET_PATH = DATA_ROOT / "dataset.json"
HISTORY_PATH = DATA_ROOT / "history.json"
OUTPUT_PATH = REPO_ROOT / "docs" / "data" / "dashboard.json"

END_DATE = "2025-10-15T23:59:59Z"
INSIGHT_WINDOW_DAYS = 7


def _build_team_rows(dataset) -> List[Dict]:
    rows = []
    for team, kpis in compute_team_kpis(dataset):
        stats = compute_daily_stats(team, kpis, dataset)
        bands = classify_kpis(kpis)
        rows.append({
            "name": team.name,
            "kpis": kpis.to_dict(),
            "bands": {name: band.label for name, band in bands.items()},
            "points_per_day": stats.points_per_day,
            "estimated": stats.is_estimated,
            "insights": generate_insights(team, kpis, dataset.constants),
        })
    return rows


def _build_kinetics(dataset, history) -> List[Dict]:
    rows = []
    for team in build_daily_kinetics(history, dataset.constants):
        summary = summarize_kinetics(team)
        rows.append({
            "name": team.name,
            "avg_velocity": summary.avg_velocity,
            "avg_acceleration": summary.avg_acceleration,
            "percent_accelerating": summary.percent_accelerating,
            "insights": acceleration_insights(team, INSIGHT_WINDOW_DAYS),
            "series": team.to_dict()["series"],
        })
    return rows


def main() -> None:
    if DATASET_PATH.exists():
        dataset = DataLoader.load_dataset(str(DATASET_PATH))
        history = DataLoader.load_history(str(HISTORY_PATH))
    else:
        dataset = DataLoader.sample_dataset()
        history = DataLoader.sample_history()

    dashboard = {
        "metadata": {
            "generated_at": datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC"),
            "as_of": dataset.as_of,
            "end_date": END_DATE,
            "history_entries": len(history),
        },
        "teams": _build_team_rows(dataset),
        "kinetics": _build_kinetics(dataset, history) if history else [],
        "standings": [p.to_dict() for p in project_standings(dataset, history, END_DATE)],
    }

    OUTPUT_PATH.parent.mkdir(parents=True, exist_ok=True)
    OUTPUT_PATH.write_text(json.dumps(json_ready(dashboard), indent=2, allow_nan=False))
    print(f"Wrote {OUTPUT_PATH}")


if __name__ == "__main__":
    main()
