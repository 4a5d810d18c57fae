from __future__ import annotations

import json
import sys
from pathlib import Path


# Add src to path for testing
repo_root = Path(__file__).parents[1]
sys.path.insert(0, str(repo_root / "src"))

from airbnb_analytics.scripts.validate_config import main  # noqa: E402


def test_validate_config_cli_returns_zero_for_repo_config():
    config_dir = repo_root / "config"

    exit_code = main([str(config_dir), "--json"])
    assert exit_code == 0


def test_validate_config_cli_reports_schema_errors(tmp_path, capsys):
    (tmp_path / "project.json").write_text(json.dumps({"name": "x"}))

    exit_code = main([str(tmp_path), "--json"])

    assert exit_code == 1
    output = json.loads(capsys.readouterr().out)
    assert str(tmp_path / "project.json") in output


def test_validate_config_cli_reports_inconsistent_vars(temp_config_dir, capsys):
    payload = json.loads((temp_config_dir / "project.json").read_text())
    payload["vars"] = {"start_date": "2024-03-01", "end_date": "2024-01-01"}
    (temp_config_dir / "project.json").write_text(json.dumps(payload))

    exit_code = main([str(temp_config_dir)])

    assert exit_code == 1
    assert "start_date" in capsys.readouterr().out


def test_validate_config_cli_missing_directory(tmp_path):
    assert main([str(tmp_path / "missing")]) == 1
