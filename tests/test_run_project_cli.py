import json

import pytest

from airbnb_analytics.scripts.run_project import build_parser, main

from conftest import REPO_CONFIG_DIR


@pytest.fixture
def cli_args(tmp_path, raw_dir, seed_dir, monkeypatch):
    # Log files are written relative to the working directory
    monkeypatch.chdir(tmp_path)
    return [
        "--config-dir", str(REPO_CONFIG_DIR),
        "--raw-dir", str(raw_dir),
        "--warehouse-dir", str(tmp_path / "warehouse"),
        "--seed-dir", str(seed_dir),
        "--docs-dir", str(tmp_path / "docs"),
    ]


def test_build_command_succeeds(cli_args, tmp_path):
    assert main(cli_args + ["build"]) == 0
    assert (tmp_path / "warehouse" / "fct_reviews.parquet").exists()
    assert (tmp_path / "logs" / "airbnb_analytics.log").exists()


def test_run_json_output(cli_args, capsys):
    exit_code = main(cli_args + ["--json", "run"])

    assert exit_code == 0
    results = json.loads(capsys.readouterr().out)
    assert results["models"]["fct_reviews"]["rows"] == 3


def test_docs_command_writes_catalog(cli_args, tmp_path):
    main(cli_args + ["run"])

    assert main(cli_args + ["docs"]) == 0
    assert (tmp_path / "docs" / "catalog.json").exists()


def test_test_command_without_tables_fails(cli_args):
    assert main(cli_args + ["test", "--model", "fct_reviews"]) == 1


def test_half_open_backfill_window_fails(cli_args, capsys):
    assert main(cli_args + ["run", "--start-date", "2024-01-01"]) == 1
    assert "start_date and end_date" in capsys.readouterr().out


def test_json_mode_reports_errors_as_json(cli_args, capsys):
    assert main(cli_args + ["--json", "run", "--start-date", "2024-01-01"]) == 1

    output = json.loads(capsys.readouterr().out)
    assert output["status"] == "error"
    assert output["command"] == "run"
    assert "start_date and end_date" in output["errors"][0]


def test_ddl_command_prints_every_table(cli_args, capsys):
    assert main(cli_args + ["ddl"]) == 0

    output = capsys.readouterr().out
    assert "CREATE TABLE IF NOT EXISTS fct_reviews" in output
    assert "-- DIM_HOSTS_CLEANSED" in output


def test_invalid_date_rejected():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["run", "--start-date", "01/02/2024"])
