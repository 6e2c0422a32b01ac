"""Main CLI interface for squad challenge analytics."""

import argparse
import json
import logging
import sys
from typing import List, Optional

from .analytics.insights import acceleration_insights, generate_insights
from .analytics.kinetics import DEFAULT_SMOOTHING, build_daily_kinetics, summarize_kinetics
from .analytics.kpis import compute_daily_stats, compute_team_kpis
from .analytics.projection import DEFAULT_LOOKBACK_DAYS, ScenarioInputs, project_scenarios, project_standings
from .data.csv_io import export_kinetics_csv, export_teams_csv, parse_teams_csv
from .data.loader import DataLoader, write_report
from .data.validators import DatasetValidationError, validate_constants_payload
from .models.dataset import DEFAULT_TIMEZONE, HISTORY_LIMIT, Dataset

DEFAULT_END_DATE = "2025-10-15T23:59:59Z"


def _fmt(value: Optional[float], digits: int = 2) -> str:
    if value is None:
        return "-"
    return f"{value:.{digits}f}"


def _load_dataset(args) -> Dataset:
    """Load the dataset, applying a partial constants override when given."""
    dataset = DataLoader.load_dataset(args.input)
    if not getattr(args, "constants", None):
        return dataset

    with open(args.constants, "r") as f:
        overrides = json.load(f)
    errors = validate_constants_payload(overrides)
    if errors:
        raise DatasetValidationError(errors)
    return dataset.with_constants(overrides)


def _load_history(args) -> list:
    if not getattr(args, "history", None):
        return []
    return DataLoader.load_history(args.history)


def show_kpis(args):
    """Print KPIs, daily stats and insights for every team."""
    dataset = _load_dataset(args)
    rows = []
    for team, kpis in compute_team_kpis(dataset):
        stats = compute_daily_stats(team, kpis, dataset)
        rows.append({
            "name": team.name,
            "kpis": kpis.to_dict(),
            "pointsPerDay": stats.points_per_day,
            "insights": generate_insights(team, kpis, dataset.constants),
        })

        print(f"\n{team.name}")
        print(f"  Logging rate:     {_fmt(kpis.logging_rate * 100, 1)}%")
        print(f"  Bike share:       {_fmt(kpis.bike_share * 100, 1)}%")
        print(f"  Missions / 100k:  {_fmt(kpis.missions_per_100k, 1)}")
        print(f"  Pts / 10k steps:  {_fmt(kpis.pts_per_10k_steps, 1)}")
        print(f"  Est. points:      {_fmt(kpis.est_points, 0)}")
        print(f"  Points / day:     {_fmt(stats.points_per_day, 1)}{' (est.)' if stats.is_estimated else ''}")
        for note in kpis.notes:
            print(f"  ! {note}")
        for message in rows[-1]["insights"]:
            print(f"  - {message}")

    if args.output:
        write_report(rows, args.output)
        print(f"\n✓ KPIs written to {args.output}")
    return 0


def snapshot(args):
    """Archive the dataset into the history file."""
    dataset = DataLoader.load_dataset(args.input)
    history = DataLoader.append_history(dataset, args.history, limit=args.limit)
    print(f"✓ Snapshot {dataset.as_of} archived ({len(history)} entries in {args.history})")
    return 0


def show_kinetics(args):
    """Print per-team kinetics summaries."""
    dataset = DataLoader.load_dataset(args.input)
    history = DataLoader.load_history(args.history)
    if not history:
        print(f"Error: history file {args.history} has no entries")
        return 1

    kinetics = build_daily_kinetics(
        history,
        dataset.constants,
        velocity_smoothing=args.velocity_alpha,
        acceleration_smoothing=args.acceleration_alpha,
        tz=args.timezone,
    )

    print(f"{'Team':<20} {'Avg vel':>10} {'Avg accel':>10} {'% accel':>8} {'Vel std':>10}")
    for team in kinetics:
        summary = summarize_kinetics(team, use_ema=not args.raw)
        print(
            f"{team.name:<20} {summary.avg_velocity:>10.1f} {summary.avg_acceleration:>10.1f} "
            f"{summary.percent_accelerating:>7.0f}% {summary.velocity_std_dev:>10.1f}"
        )
        for message in acceleration_insights(team, args.window):
            print(f"  - {message}")

    if args.output:
        export_kinetics_csv(kinetics, args.output)
        print(f"\n✓ Kinetics written to {args.output}")
    return 0


def project(args):
    """Project standings, or what-if scenarios when targets are given."""
    dataset = _load_dataset(args)
    history = _load_history(args)

    if args.logging_target or args.bike_share_delta or args.missions_target:
        scenario = ScenarioInputs(
            logging_target=args.logging_target,
            bike_share_delta=args.bike_share_delta,
            missions_target=args.missions_target,
        )
        results = project_scenarios(
            dataset, history, scenario, args.end_date,
            lookback_days=args.lookback, rival_team=args.rival, tz=args.timezone,
        )
        print(f"{'Team':<20} {'Current':>10} {'Base':>10} {'Scenario':>10} {'Rival gap':>10}")
        for result in results:
            print(
                f"{result.name:<20} {result.current_points:>10.0f} {result.base_projection:>10.0f} "
                f"{result.scenario_projection:>10.0f} {_fmt(result.rival_gap, 0):>10}"
            )
        payload = [result.to_dict() for result in results]
    else:
        projections = project_standings(dataset, history, args.end_date, lookback_days=args.lookback, tz=args.timezone)
        print(f"{'#':>2} {'Team':<20} {'Current':>10} {'Pace/day':>9} {'Projected':>10} {'Gap':>8}")
        for p in projections:
            flags = ""
            if p.insufficient_data:
                flags += " [insufficient data]"
            if p.used_estimates:
                flags += " [est.]"
            print(
                f"{p.rank:>2} {p.name:<20} {p.current:>10.0f} {p.pace_per_day:>9.1f} "
                f"{p.projected:>10.0f} {p.delta_to_leader:>8.0f}{flags}"
            )
        payload = [p.to_dict() for p in projections]

    if args.output:
        write_report(payload, args.output)
        print(f"\n✓ Projections written to {args.output}")
    return 0


def import_csv(args):
    """Build a dataset JSON from a team CSV."""
    teams = parse_teams_csv(args.input)
    base = DataLoader.load_dataset(args.base) if args.base else DataLoader.sample_dataset()
    dataset = Dataset(
        as_of=args.as_of or base.as_of,
        teams=teams,
        constants=base.constants,
        challenge_start_date=base.challenge_start_date,
    )
    DataLoader.save_dataset(dataset, args.output)
    print(f"✓ Imported {len(teams)} teams into {args.output}")
    return 0


def export_csv(args):
    """Write the dataset's teams as CSV."""
    dataset = DataLoader.load_dataset(args.input)
    text = export_teams_csv(dataset.teams, args.output)
    if args.output:
        print(f"✓ {len(dataset.teams)} teams written to {args.output}")
    else:
        print(text, end="")
    return 0


def create_sample(args):
    """Create sample data files."""
    print(f"Creating sample data at {args.output}...")
    DataLoader.create_sample_data(args.output, args.history, days=args.days)
    print("✓ Sample data created!")
    print("\nYou can now project standings with:")
    history_flag = f" --history {args.history}" if args.history else ""
    print(f"  squad-analytics project --input {args.output}{history_flag}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Squad Analytics - KPIs, kinetics and projections for team step challenges"
    )
    parser.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"])

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    sample_parser = subparsers.add_parser("sample", help="Create sample challenge data")
    sample_parser.add_argument("--output", "-o", default="sample_dataset.json", help="Output dataset JSON")
    sample_parser.add_argument("--history", default=None, help="Optional output history JSON")
    sample_parser.add_argument("--days", type=int, default=5, help="Daily history entries to synthesize")

    kpis_parser = subparsers.add_parser("kpis", help="Show team KPIs and insights")
    kpis_parser.add_argument("--input", "-i", required=True, help="Dataset JSON")
    kpis_parser.add_argument("--output", "-o", default=None, help="Optional JSON report")
    kpis_parser.add_argument("--constants", default=None, help="JSON file with constant overrides")

    snapshot_parser = subparsers.add_parser("snapshot", help="Archive the dataset into history")
    snapshot_parser.add_argument("--input", "-i", required=True, help="Dataset JSON")
    snapshot_parser.add_argument("--history", required=True, help="History JSON")
    snapshot_parser.add_argument("--limit", type=int, default=HISTORY_LIMIT, help="Entries to retain")

    kinetics_parser = subparsers.add_parser("kinetics", help="Daily velocity and acceleration")
    kinetics_parser.add_argument("--input", "-i", required=True, help="Dataset JSON (fallback constants)")
    kinetics_parser.add_argument("--history", required=True, help="History JSON")
    kinetics_parser.add_argument("--output", "-o", default=None, help="Optional kinetics CSV")
    kinetics_parser.add_argument("--velocity-alpha", type=float, default=DEFAULT_SMOOTHING)
    kinetics_parser.add_argument("--acceleration-alpha", type=float, default=DEFAULT_SMOOTHING)
    kinetics_parser.add_argument("--window", type=int, default=7, help="Days considered for insights")
    kinetics_parser.add_argument("--raw", action="store_true", help="Summarize raw instead of smoothed values")
    kinetics_parser.add_argument("--timezone", default=DEFAULT_TIMEZONE)

    project_parser = subparsers.add_parser("project", help="Project standings to the end date")
    project_parser.add_argument("--input", "-i", required=True, help="Dataset JSON")
    project_parser.add_argument("--history", default=None, help="History JSON")
    project_parser.add_argument("--output", "-o", default=None, help="Optional JSON output")
    project_parser.add_argument("--constants", default=None, help="JSON file with constant overrides")
    project_parser.add_argument("--end-date", default=DEFAULT_END_DATE, help="Challenge end (ISO-8601)")
    project_parser.add_argument("--lookback", type=int, default=DEFAULT_LOOKBACK_DAYS, help="Lookback window in days")
    project_parser.add_argument("--logging-target", type=float, default=0.0, help="Scenario logging rate (0-1)")
    project_parser.add_argument("--bike-share-delta", type=float, default=0.0, help="Scenario extra bike share")
    project_parser.add_argument("--missions-target", type=float, default=0.0, help="Scenario missions per 100k steps")
    project_parser.add_argument("--rival", default=None, help="Rival team for scenario gaps")
    project_parser.add_argument("--timezone", default=DEFAULT_TIMEZONE)

    import_parser = subparsers.add_parser("import-csv", help="Build a dataset from a team CSV")
    import_parser.add_argument("--input", "-i", required=True, help="Team CSV")
    import_parser.add_argument("--output", "-o", required=True, help="Output dataset JSON")
    import_parser.add_argument("--base", default=None, help="Dataset JSON supplying constants")
    import_parser.add_argument("--as-of", default=None, help="Snapshot timestamp (ISO-8601)")

    export_parser = subparsers.add_parser("export-csv", help="Export dataset teams as CSV")
    export_parser.add_argument("--input", "-i", required=True, help="Dataset JSON")
    export_parser.add_argument("--output", "-o", default=None, help="Output CSV (stdout when omitted)")

    return parser


COMMANDS = {
    "sample": create_sample,
    "kpis": show_kpis,
    "snapshot": snapshot,
    "kinetics": show_kinetics,
    "project": project,
    "import-csv": import_csv,
    "export-csv": export_csv,
}


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    try:
        return handler(args)
    except (DatasetValidationError, FileNotFoundError, ValueError) as exc:
        print(f"Error: {exc}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
