"""Main CLI entry point."""

import argparse
import json
import logging
import sys
from datetime import date, datetime
from pathlib import Path
from typing import Optional


def main(argv: Optional[list[str]] = None) -> None:
    """Parse args and dispatch to subcommands."""
    from pipeline_analytics.engine import REPORTS

    parser = argparse.ArgumentParser(
        prog="pipeline-analytics", description="Sales pipeline snapshot analytics"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # report
    report_parser = subparsers.add_parser("report", help="Compute a pipeline report")
    report_parser.add_argument("metric", choices=sorted(REPORTS), help="Report to compute")
    report_parser.add_argument(
        "--db",
        type=Path,
        default=Path("pipeline_analytics.db"),
        help="Read opportunities and snapshots from store",
    )
    report_parser.add_argument(
        "--input",
        type=Path,
        default=None,
        help="Read from JSON export with opportunities/snapshots (alternative to --db)",
    )
    report_parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to settings YAML (stage order, policies)",
    )
    _add_period_args(report_parser, default="all-time")
    report_parser.add_argument(
        "--anchors",
        choices=["snapshots", "monthly"],
        default=None,
        help="Rate report points per snapshot date or per month end (overrides config)",
    )
    report_parser.add_argument("--owner", type=str, default=None, help="Only this owner")
    report_parser.add_argument("--client", type=str, default=None, help="Only this client name")
    report_parser.add_argument(
        "--stage",
        action="append",
        default=[],
        help="Only opportunities currently in this stage (repeatable)",
    )
    report_parser.add_argument("--search", type=str, default=None, help="Match name, client or CRM id")
    report_parser.add_argument("--min-value", type=float, default=None)
    report_parser.add_argument("--max-value", type=float, default=None)
    report_parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write JSON result to file (default: stdout)",
    )

    # period
    period_parser = subparsers.add_parser("period", help="Resolve a period selector to dates")
    period_parser.add_argument("selector", help="e.g. fy-to-date, last-fq, 'Last 12 Months', custom")
    _add_period_args(period_parser, default=None)

    # store
    store_parser = subparsers.add_parser("store", help="Query or load the snapshot store")
    store_parser.add_argument(
        "--db",
        type=Path,
        default=Path("pipeline_analytics.db"),
        help="Path to SQLite database",
    )
    store_parser.add_argument(
        "action",
        choices=["count", "dates", "import"],
        help="Show row counts, list snapshot dates, or import a JSON export",
    )
    store_parser.add_argument(
        "--input",
        type=Path,
        default=None,
        help="JSON export to import (for import)",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command == "report":
        _run_report(args)
    elif args.command == "period":
        _run_period(args)
    elif args.command == "store":
        _run_store(args)
    else:
        parser.print_help()


def _add_period_args(parser: argparse.ArgumentParser, default: Optional[str]) -> None:
    if default is not None:
        parser.add_argument(
            "--period",
            type=str,
            default=default,
            help=f"Period selector (default: {default})",
        )
    parser.add_argument("--start", type=str, default=None, help="Custom start (YYYY-MM-DD)")
    parser.add_argument("--end", type=str, default=None, help="Custom end (YYYY-MM-DD)")
    parser.add_argument(
        "--now",
        type=str,
        default=None,
        help="Reference date for relative periods (YYYY-MM-DD, default: today)",
    )


def _parse_cli_date(value: Optional[str], flag: str) -> Optional[date]:
    if not value:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise SystemExit(f"Invalid {flag} format. Use YYYY-MM-DD.")


def _resolve_period(selector: str, args: argparse.Namespace):
    from pipeline_analytics.dates import resolve_date_range

    now = _parse_cli_date(args.now, "--now") or date.today()
    start = _parse_cli_date(args.start, "--start")
    end = _parse_cli_date(args.end, "--end")
    try:
        return resolve_date_range(selector, now, start, end)
    except ValueError as e:
        raise SystemExit(str(e))


def _write_output(payload, output: Optional[Path]) -> None:
    text = json.dumps(payload, indent=2, default=str)
    if output:
        output.write_text(text, encoding="utf-8")
        print(f"Wrote result to {output}")
    else:
        print(text)


def _run_report(args: argparse.Namespace) -> None:
    """Run report command."""
    from pydantic import ValidationError

    from pipeline_analytics.models.filters import OpportunityFilter
    from pipeline_analytics.models.settings import AnalyticsSettings
    from pipeline_analytics.pipeline import load_dataset, run_report, to_records

    try:
        settings = AnalyticsSettings.from_yaml(args.config) if args.config else AnalyticsSettings()
        if args.anchors:
            settings = settings.model_copy(update={"rate_anchors": args.anchors})
        criteria = OpportunityFilter(
            owner=args.owner,
            stages=args.stage,
            client_name=args.client,
            search=args.search,
            min_value=args.min_value,
            max_value=args.max_value,
        )
    except ValidationError as e:
        raise SystemExit(f"Invalid configuration: {e}")

    date_range = _resolve_period(args.period, args)

    if args.input is None and not args.db.exists():
        print(
            f"No store at {args.db}. Import data first:\n"
            f"  pipeline-analytics store import --db {args.db} --input export.json",
            file=sys.stderr,
        )
        raise SystemExit(1)

    dataset = load_dataset(db_path=args.db, input_path=args.input)
    result = run_report(
        args.metric,
        dataset=dataset,
        settings=settings,
        date_range=date_range,
        criteria=criteria,
    )
    _write_output(to_records(result), args.output)


def _run_period(args: argparse.Namespace) -> None:
    """Run period command."""
    date_range = _resolve_period(args.selector, args)
    print(json.dumps(date_range.model_dump(mode="json"), indent=2))


def _run_store(args: argparse.Namespace) -> None:
    """Run store command."""
    from pipeline_analytics.store import SnapshotStore

    store = SnapshotStore(args.db)
    if args.action == "count":
        counts = store.count()
        print(f"{counts['opportunities']} opportunities, {counts['snapshots']} snapshots")
    elif args.action == "dates":
        for d in store.snapshot_dates():
            print(d.isoformat())
    elif args.action == "import":
        from pipeline_analytics.normalize import load_json_dataset

        if not args.input:
            raise SystemExit("store import requires --input")
        dataset = load_json_dataset(args.input)
        new = sum(1 for opp in dataset.opportunities if store.upsert_opportunity(opp))
        inserted = store.add_snapshots(dataset.snapshots)
        print(
            f"Store: {len(dataset.opportunities)} opportunities ({new} new), "
            f"{inserted} of {len(dataset.snapshots)} snapshots added"
        )


if __name__ == "__main__":
    main()
