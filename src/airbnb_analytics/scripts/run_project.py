#!/usr/bin/env python3
"""
Run the Airbnb Analytics Project

Transforms the raw Airbnb listings, hosts and reviews extracts into cleansed
dimensions, the incremental reviews fact and the full-moon mart, maintains the
listings and hosts snapshots, and runs the declared data-quality checks.

Usage:
    # Incremental run of every model
    airbnb-analytics run

    # Rebuild fct_reviews from scratch
    airbnb-analytics run --full-refresh

    # Backfill reviews dated in [2024-01-01, 2024-02-01)
    airbnb-analytics run --start-date 2024-01-01 --end-date 2024-02-01

    # Snapshots, checks, docs
    airbnb-analytics snapshot
    airbnb-analytics test
    airbnb-analytics docs

    # run + snapshot + test
    airbnb-analytics build

Exit code is 0 when the command succeeded and 1 otherwise.
"""

import argparse
import json
import os
import sys
from datetime import date
from pathlib import Path
from typing import Iterable, Optional

from dotenv import load_dotenv

from airbnb_analytics.core.errors import AnalyticsError
from airbnb_analytics.core.logger import setup_logging
from airbnb_analytics.core.pipeline import AnalyticsPipeline
from airbnb_analytics.core.project_config import load_project_config
from airbnb_analytics.core.schema import ALL_DDLS


def _iso_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an ISO date (YYYY-MM-DD): {value!r}")


def _add_window_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--full-refresh",
        action="store_true",
        help="Rebuild fct_reviews from scratch instead of loading incrementally"
    )
    parser.add_argument(
        "--start-date",
        type=_iso_date,
        help="Inclusive start of a review backfill window (requires --end-date)"
    )
    parser.add_argument(
        "--end-date",
        type=_iso_date,
        help="Exclusive end of a review backfill window (requires --start-date)"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="airbnb-analytics",
        description="Run the Airbnb analytics models, snapshots and data-quality checks",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Incremental run:
    airbnb-analytics run

  Backfill a window of reviews:
    airbnb-analytics run --start-date 2024-01-01 --end-date 2024-02-01

  Everything, then write docs:
    airbnb-analytics build && airbnb-analytics docs
        """
    )
    parser.add_argument("--config-dir", type=Path, help="Config directory (default: AIRBNB_CONFIG_DIR or ./config)")
    parser.add_argument("--raw-dir", help="Raw CSV directory (default: AIRBNB_RAW_DIR or data/raw)")
    parser.add_argument("--warehouse-dir", help="Warehouse directory (default: AIRBNB_WAREHOUSE_DIR or warehouse)")
    parser.add_argument("--seed-dir", help="Seed CSV directory (default: AIRBNB_SEED_DIR or seeds)")
    parser.add_argument("--docs-dir", help="Docs output directory (default: AIRBNB_DOCS_DIR or <warehouse>/docs)")
    parser.add_argument("--json", dest="json_output", action="store_true", help="Print the results as JSON")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Load seeds and run every model")
    _add_window_arguments(run_parser)

    subparsers.add_parser("snapshot", help="Apply the raw extracts to the snapshot histories")

    test_parser = subparsers.add_parser("test", help="Run data-quality checks")
    test_parser.add_argument("--model", action="append", dest="models", help="Only check this model (repeatable)")

    subparsers.add_parser("docs", help="Write catalog.json and index.md")
    subparsers.add_parser("ddl", help="Print table DDL statements")

    build_command = subparsers.add_parser("build", help="run, snapshot and test in one go")
    _add_window_arguments(build_command)

    return parser


def _print_results(command: str, results: dict) -> None:
    print("\n" + "=" * 80)
    print(f"{command.upper()} RESULTS: {results['status'].upper()}")
    print("=" * 80)

    for section in ("seeds", "models", "snapshots"):
        for name, info in results.get(section, {}).items():
            marker = {"success": "✅", "skipped": "⏭️ "}.get(info["status"], "❌")
            detail = f"{info['rows']:,} rows" if info.get("rows") is not None else info.get("message", "")
            if info.get("new_rows") is not None:
                detail += f" (+{info['new_rows']:,} new, {info['mode']})"
            print(f"   {marker} {name}: {detail}")

    for check in results.get("checks", []):
        if check["status"] != "pass":
            print(f"   [{check['status'].upper()}] {check['check']}: {check['message']}")
    if "summary" in results:
        summary = results["summary"]
        print(f"\n   Checks: {summary['pass']} pass, {summary['warn']} warn, "
              f"{summary['fail']} fail, {summary['error']} error")

    for name, path in results.get("files", {}).items():
        print(f"   • {name}: {path}")

    for error in results.get("errors", []):
        print(f"   Error: {error}")
    print("=" * 80)


def main(argv: Optional[Iterable[str]] = None) -> int:
    """Main entry point for the analytics CLI."""
    load_dotenv()
    args = build_parser().parse_args(argv)

    level = "DEBUG" if args.verbose else os.getenv("LOG_LEVEL", "INFO")
    # stdout carries only the results document in JSON mode
    logger = setup_logging(
        name="airbnb_analytics",
        log_file="logs/airbnb_analytics.log",
        level=level,
        log_to_stdout=not args.json_output,
    )

    if args.command == "ddl":
        for table_name, ddl in ALL_DDLS.items():
            print(f"-- {table_name.upper()}")
            print(ddl)
        return 0

    try:
        pipeline = AnalyticsPipeline(
            config=load_project_config(args.config_dir),
            raw_directory=args.raw_dir,
            warehouse_directory=args.warehouse_dir,
            seed_directory=args.seed_dir,
            docs_directory=args.docs_dir,
            logger=logger,
        )

        if args.command == "run":
            results = pipeline.run(args.full_refresh, args.start_date, args.end_date)
        elif args.command == "snapshot":
            results = pipeline.snapshot()
        elif args.command == "test":
            results = pipeline.test(models=args.models)
        elif args.command == "docs":
            results = pipeline.generate_docs()
        else:
            results = pipeline.build(args.full_refresh, args.start_date, args.end_date)

    except AnalyticsError as e:
        logger.error(f"{args.command} failed: {e}")
        if args.json_output:
            print(json.dumps({"status": "error", "command": args.command, "errors": [str(e)]}, indent=2))
        else:
            print(f"\n❌ Error: {e}")
        return 1

    if args.json_output:
        print(json.dumps(results, indent=2, default=str))
    elif args.command == "build":
        for step in ("run", "snapshot", "test"):
            _print_results(step, results[step])
    else:
        _print_results(args.command, results)

    return 0 if results["status"] == "success" else 1


if __name__ == "__main__":
    sys.exit(main())
