"""Config validation CLI.

This module backs the console script `airbnb-validate-config`.

It validates the JSON configuration files under `config/` using the schemas
in `airbnb_analytics.core.config_validation`.
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from dotenv import load_dotenv

from airbnb_analytics.core.config_validation import (
    SCHEMAS_BY_FILENAME,
    validate_config_dir,
)
from airbnb_analytics.core.errors import ConfigError
from airbnb_analytics.core.project_config import default_config_dir, load_project_config


def parse_args(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Validate airbnb_analytics JSON config files",
    )
    parser.add_argument(
        "config_dir",
        nargs="?",
        default=None,
        type=Path,
        help="Config directory to validate (default: AIRBNB_CONFIG_DIR or ./config)",
    )
    parser.add_argument(
        "--all-json",
        action="store_true",
        help=(
            "Validate all *.json files, not only known config filenames "
            f"({', '.join(sorted(SCHEMAS_BY_FILENAME))})."
        ),
    )
    parser.add_argument(
        "--json",
        dest="json_output",
        action="store_true",
        help="Print results as JSON (always printed to stdout).",
    )
    return parser.parse_args(argv)


def check_config_dir(config_dir: Path, all_json: bool = False) -> Dict[str, List[str]]:
    """
    Validate every config file, then load the project the way a run would.

    Schema validation alone does not catch cross-field problems such as a
    start_date after end_date, so a schema-valid directory is also loaded.
    """
    if not config_dir.is_dir():
        return {str(config_dir): ["(root): config directory not found"]}

    results = validate_config_dir(config_dir, only_known_files=not all_json)
    if results:
        return results
    try:
        load_project_config(config_dir)
    except ConfigError as e:
        results[str(config_dir / "project.json")] = [str(e)]
    return results


def main(argv: Optional[Iterable[str]] = None) -> int:
    load_dotenv()
    args = parse_args(argv)
    config_dir = args.config_dir or default_config_dir()

    results = check_config_dir(config_dir, all_json=args.all_json)

    if args.json_output:
        print(json.dumps(results, indent=2))
    else:
        if not results:
            print(f"✅ Config valid: {config_dir}")
        else:
            print(f"❌ Config validation errors in: {config_dir}\n")
            for filename, errors in results.items():
                print(filename)
                for err in errors:
                    print(f"  - {err}")
                print()

    return 0 if not results else 1


if __name__ == "__main__":
    raise SystemExit(main())
