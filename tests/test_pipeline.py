"""
End-to-end tests of the analytics pipeline against a temporary warehouse.
"""

import json
from dataclasses import replace
from datetime import date, datetime

import pandas as pd
import pytest

from airbnb_analytics.core.errors import ConfigError
from airbnb_analytics.core.project_config import ColumnContract, ModelContract

from conftest import HOSTS_HEADER, LISTINGS_HEADER, REVIEWS_HEADER, write_csv


class TestRun:
    """Model runs: seeds, dimensions, fact and mart."""

    def test_first_run_builds_every_table(self, pipeline):
        results = pipeline.run()

        assert results["status"] == "success"
        assert set(pipeline.warehouse.list_tables()) == {
            "seed_full_moon_dates",
            "dim_listings_cleansed",
            "dim_hosts_cleansed",
            "dim_listings_w_hosts",
            "fct_reviews",
            "mart_fullmoon_reviews",
        }
        assert results["models"]["fct_reviews"]["mode"] == "initial"
        assert results["models"]["fct_reviews"]["rows"] == 3

    def test_source_models_are_not_persisted(self, pipeline):
        results = pipeline.run()

        assert results["models"]["src_listings"]["status"] == "success"
        assert not pipeline.warehouse.exists("src_listings")

    def test_cleansing_invariants_hold_in_warehouse(self, pipeline):
        pipeline.run()

        listings = pipeline.warehouse.read("dim_listings_cleansed")
        hosts = pipeline.warehouse.read("dim_hosts_cleansed")
        reviews = pipeline.warehouse.read("fct_reviews")

        assert (listings["minimum_nights"] >= 1).all()
        assert hosts["host_id"].is_unique
        assert hosts["host_name"].tolist() == ["Anna", "Anonymous"]
        assert reviews["listing_id"].isin(listings["listing_id"]).all()

    def test_full_moon_flags(self, pipeline):
        pipeline.run()

        mart = pipeline.warehouse.read("mart_fullmoon_reviews").set_index("reviewer_name")

        assert mart.loc["Tom", "is_full_moon"] == "full moon"
        assert mart.loc["Sue", "is_full_moon"] == "not full moon"
        assert mart.loc["Raj", "is_full_moon"] == "not full moon"

    def test_second_run_is_idempotent(self, pipeline):
        pipeline.run()

        results = pipeline.run()

        assert results["models"]["fct_reviews"]["mode"] == "incremental"
        assert results["models"]["fct_reviews"]["new_rows"] == 0
        assert len(pipeline.warehouse.read("fct_reviews")) == 3

    def test_new_reviews_are_appended(self, pipeline, raw_dir, sample_reviews_rows):
        pipeline.run()
        write_csv(
            raw_dir / "raw_reviews.csv",
            REVIEWS_HEADER,
            sample_reviews_rows + [[2, "2024-03-02", "Kim", "Spotless", "positive"]],
        )

        results = pipeline.run()

        assert results["models"]["fct_reviews"]["new_rows"] == 1
        assert len(pipeline.warehouse.read("mart_fullmoon_reviews")) == 4
        assert pipeline.tracker.get_high_water_mark("fct_reviews") == datetime(2024, 3, 2)

    def test_late_review_needs_backfill_or_full_refresh(self, pipeline, raw_dir, sample_reviews_rows):
        pipeline.run()
        write_csv(
            raw_dir / "raw_reviews.csv",
            REVIEWS_HEADER,
            sample_reviews_rows + [[2, "2024-01-05", "Late", "Forgot to post", "neutral"]],
        )

        assert pipeline.run()["models"]["fct_reviews"]["new_rows"] == 0

        backfill = pipeline.run(start_date=date(2024, 1, 1), end_date=date(2024, 1, 10))
        assert backfill["models"]["fct_reviews"]["mode"] == "backfill"
        assert backfill["models"]["fct_reviews"]["new_rows"] == 1

        refreshed = pipeline.run(full_refresh=True)
        assert refreshed["models"]["fct_reviews"]["rows"] == 4

    def test_half_open_window_rejected(self, pipeline):
        with pytest.raises(ConfigError):
            pipeline.run(start_date=date(2024, 1, 1))

    def test_run_is_recorded(self, pipeline):
        pipeline.run()

        history = pipeline.tracker.run_history
        assert history[-1]["command"] == "run"
        assert history[-1]["status"] == "success"
        assert history[-1]["summary"]["fct_reviews"] == 3


class TestModelFailures:
    """A failed model is not written and its dependents are skipped."""

    def test_contract_violation_blocks_write_and_dependents(self, pipeline):
        pipeline.config.contracts["dim_hosts_cleansed"] = ModelContract(
            model="dim_hosts_cleansed",
            columns=(ColumnContract("host_id", "integer"), ColumnContract("host_name", "string")),
        )

        results = pipeline.run()

        assert results["status"] == "error"
        assert results["models"]["dim_hosts_cleansed"]["status"] == "error"
        assert results["models"]["dim_listings_w_hosts"]["status"] == "skipped"
        assert results["models"]["fct_reviews"]["status"] == "success"
        assert not pipeline.warehouse.exists("dim_hosts_cleansed")
        assert not pipeline.warehouse.exists("dim_listings_w_hosts")

    def test_malformed_price_fails_listing_models(self, pipeline, raw_dir, sample_listings_rows):
        sample_listings_rows[1][6] = "forty five"
        write_csv(raw_dir / "raw_listings.csv", LISTINGS_HEADER, sample_listings_rows)

        results = pipeline.run()

        assert results["models"]["dim_listings_cleansed"]["status"] == "error"
        assert "forty five" in results["models"]["dim_listings_cleansed"]["message"]
        assert results["models"]["dim_listings_w_hosts"]["status"] == "skipped"
        assert results["models"]["mart_fullmoon_reviews"]["status"] == "success"

    def test_previous_table_survives_failed_rebuild(self, pipeline, raw_dir, sample_listings_rows):
        pipeline.run()
        sample_listings_rows[0][6] = "-$1.00"
        write_csv(raw_dir / "raw_listings.csv", LISTINGS_HEADER, sample_listings_rows)

        pipeline.run()

        assert len(pipeline.warehouse.read("dim_listings_cleansed")) == 3

    def test_missing_source_skips_downstream(self, pipeline, raw_dir):
        (raw_dir / "raw_reviews.csv").unlink()

        results = pipeline.run()

        assert results["models"]["src_reviews"]["status"] == "error"
        assert results["models"]["fct_reviews"]["status"] == "skipped"
        assert results["models"]["mart_fullmoon_reviews"]["status"] == "skipped"
        assert results["models"]["dim_listings_w_hosts"]["status"] == "success"


class TestSnapshots:
    def test_snapshot_tracks_changes_and_deletes(self, pipeline, raw_dir):
        first = pipeline.snapshot(snapshot_time=datetime(2024, 4, 1))
        assert first["snapshots"]["scd_raw_hosts"]["rows"] == 2
        assert first["snapshots"]["scd_raw_listings"]["rows"] == 3

        write_csv(
            raw_dir / "raw_hosts.csv",
            HOSTS_HEADER,
            [[10, "Anna Maria", "t", "2022-01-01 08:00:00", "2024-05-01 08:00:00"]],
        )
        second = pipeline.snapshot(snapshot_time=datetime(2024, 6, 1))

        hosts = pipeline.warehouse.read("scd_raw_hosts")
        assert second["snapshots"]["scd_raw_hosts"]["closed"] == 1
        assert second["snapshots"]["scd_raw_hosts"]["invalidated"] == 1
        assert len(hosts) == 3
        anna = hosts[hosts["id"] == 10].sort_values("valid_from")
        assert anna["name"].tolist() == ["Anna", "Anna Maria"]
        assert anna["valid_to"].iloc[0] == pd.Timestamp("2024-05-01 08:00:00")
        removed = hosts[hosts["id"] == 11].iloc[0]
        assert removed["is_invalidated"]
        assert removed["valid_to"] == pd.Timestamp("2024-06-01")

    def test_hard_delete_setting_comes_from_config(self, pipeline, raw_dir, sample_hosts_rows):
        pipeline.config = replace(pipeline.config, invalidate_hard_deletes=False)
        pipeline.snapshot()
        write_csv(raw_dir / "raw_hosts.csv", HOSTS_HEADER, sample_hosts_rows[:1])

        pipeline.snapshot()

        assert not pipeline.warehouse.read("scd_raw_hosts")["is_invalidated"].any()


class TestChecksAndDocs:
    def test_checks_pass_with_one_warning(self, pipeline):
        pipeline.run()

        results = pipeline.test()

        assert results["status"] == "success"
        assert results["summary"]["fail"] == 0
        assert results["summary"]["warn"] == 1
        warned = [c for c in results["checks"] if c["status"] == "warn"]
        assert warned[0]["check"] == "column_quantile_between_dim_listings_w_hosts_price"
        assert pipeline.warehouse.read_failures(warned[0]["check"]) is not None

    def test_checks_fail_when_tables_are_missing(self, pipeline):
        results = pipeline.test()

        assert results["status"] == "error"
        assert results["summary"]["error"] > 0

    def test_build_runs_everything(self, pipeline):
        results = pipeline.build(snapshot_time=datetime(2024, 4, 1))

        assert results["status"] == "success"
        assert pipeline.warehouse.exists("scd_raw_listings")
        assert [entry["command"] for entry in pipeline.tracker.run_history] == ["run", "snapshot", "test"]

    def test_docs_catalog(self, pipeline):
        pipeline.run()

        results = pipeline.generate_docs()

        catalog = json.loads(open(results["files"]["catalog"]).read())
        fct = catalog["nodes"]["fct_reviews"]
        assert fct["materialization"] == "incremental"
        assert fct["depends_on"] == ["src_reviews"]
        assert fct["row_count"] == 3
        assert "unique_fct_reviews_review_id" in [c["name"] for c in fct["checks"]]
        assert "CREATE TABLE" in fct["ddl"]
        hosts = catalog["nodes"]["dim_hosts_cleansed"]
        assert hosts["contract"]["enforced"] is True
        assert catalog["nodes"]["src_listings"]["row_count"] is None

        index = open(results["files"]["index"]).read()
        assert "## mart_fullmoon_reviews" in index
