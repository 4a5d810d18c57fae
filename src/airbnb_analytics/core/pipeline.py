"""
Main orchestrator for the Airbnb analytics project.

Runs seeds, models, snapshots, data-quality checks and documentation against
a local Parquet warehouse. Models run in their declared order. A model that
fails is marked ``error`` and is not written; every model that depends on it
is marked ``skipped``. Each command returns a results dictionary and records
itself in the run-state file.
"""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pandas as pd

from .data_quality import DataQualityRunner, summarize
from .dimensions import HostDimensionBuilder, ListingDimensionBuilder, ListingHostDimensionBuilder
from .docs import DocsGenerator
from .errors import AnalyticsError, ConfigError
from .incremental import FactReviewLoader
from .logger import setup_logging
from .mart import FullMoonMartBuilder
from .models import MODELS, ModelSpec
from .project_config import ProjectConfig, load_project_config
from .schema import enforce_contract
from .snapshots import SNAPSHOTS, SnapshotBuilder
from .sources import SourceAdapter, load_seed
from .utils import env_path, resolve_path
from .warehouse import RunStateTracker, Warehouse

FAILED_STATUSES = ("error", "skipped")


class AnalyticsPipeline:
    """
    Builds the warehouse from the raw Airbnb extracts.

    Supports full refresh and incremental loading of fct_reviews; every other
    table is rebuilt on each run.
    """

    def __init__(
        self,
        config: Optional[ProjectConfig] = None,
        raw_directory: Optional[str | Path] = None,
        warehouse_directory: Optional[str | Path] = None,
        seed_directory: Optional[str | Path] = None,
        docs_directory: Optional[str | Path] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.logger = logger or setup_logging(name="airbnb_analytics")
        self.config = config or load_project_config()

        self.warehouse = Warehouse(
            resolve_path(warehouse_directory) if warehouse_directory else None, logger=self.logger
        )
        self.seed_directory = resolve_path(seed_directory) if seed_directory else env_path("AIRBNB_SEED_DIR", "seeds")
        self.docs_directory = (
            resolve_path(docs_directory) if docs_directory
            else env_path("AIRBNB_DOCS_DIR", str(self.warehouse.root / "docs"))
        )
        self.sources = SourceAdapter(
            resolve_path(raw_directory) if raw_directory else None, self.config.sources
        )
        self.tracker = RunStateTracker(self.warehouse.root / ".run_state.json")

        self.listing_builder = ListingDimensionBuilder(self.logger)
        self.host_builder = HostDimensionBuilder(self.logger)
        self.listing_host_builder = ListingHostDimensionBuilder(self.logger)
        self.review_loader = FactReviewLoader(self.logger)
        self.mart_builder = FullMoonMartBuilder(self.logger)

        # In-memory results of the current run, by model name
        self._frames: Dict[str, pd.DataFrame] = {}

    # -------------------------------------------------------------------------
    # Seeds
    # -------------------------------------------------------------------------

    def seed(self) -> Dict[str, Any]:
        """Load every seed CSV into the warehouse."""
        results = {"status": "success", "seeds": {}, "errors": []}
        for name, filename in self.config.seeds.items():
            try:
                df = load_seed(self.seed_directory, filename)
                self.warehouse.write(name, df)
                self._frames[name] = df
                results["seeds"][name] = {"status": "success", "rows": len(df)}
            except AnalyticsError as e:
                self.logger.error(f"Seed {name} failed: {e}")
                results["seeds"][name] = {"status": "error", "message": str(e)}
                results["status"] = "error"
                results["errors"].append(str(e))
        return results

    # -------------------------------------------------------------------------
    # Models
    # -------------------------------------------------------------------------

    def _upstream(self, name: str) -> pd.DataFrame:
        if name not in self._frames:
            df = self.warehouse.read(name)
            if df is None:
                raise AnalyticsError(f"Upstream table {name} has not been built")
            self._frames[name] = df
        return self._frames[name]

    def _build_fct_reviews(
        self, full_refresh: bool, start_date: Optional[date], end_date: Optional[date]
    ) -> Dict[str, Any]:
        existing = None if full_refresh else self.warehouse.read("fct_reviews")
        result = self.review_loader.load(
            self._upstream("src_reviews"),
            existing=existing,
            full_refresh=full_refresh,
            start_date=start_date,
            end_date=end_date,
        )
        self._persist("fct_reviews", result.table)
        if result.watermark is not None:
            self.tracker.set_high_water_mark("fct_reviews", result.watermark)
        return {
            "rows": len(result.table),
            "new_rows": len(result.new_rows),
            "mode": result.mode,
            "watermark": None if result.watermark is None else result.watermark.isoformat(),
            "excluded_null_review_date": result.excluded_null_watermark,
            "excluded_duplicates": result.excluded_duplicates,
        }

    def _persist(self, name: str, df: pd.DataFrame) -> None:
        contract = self.config.contracts.get(name)
        if contract is not None:
            enforce_contract(df, contract)
        self.warehouse.write(name, df)
        self._frames[name] = df

    def _table_builders(self) -> Dict[str, Callable[[], pd.DataFrame]]:
        return {
            "src_listings": self.sources.src_listings,
            "src_hosts": self.sources.src_hosts,
            "src_reviews": self.sources.src_reviews,
            "dim_listings_cleansed": lambda: self.listing_builder.build(self._upstream("src_listings")),
            "dim_hosts_cleansed": lambda: self.host_builder.build(self._upstream("src_hosts")),
            "dim_listings_w_hosts": lambda: self.listing_host_builder.build(
                self._upstream("dim_listings_cleansed"), self._upstream("dim_hosts_cleansed")
            ),
            "mart_fullmoon_reviews": lambda: self.mart_builder.build(
                self._upstream("fct_reviews"), self._upstream("seed_full_moon_dates")
            ),
        }

    def _run_model(
        self,
        spec: ModelSpec,
        full_refresh: bool,
        start_date: Optional[date],
        end_date: Optional[date],
    ) -> Dict[str, Any]:
        if spec.name == "fct_reviews":
            return self._build_fct_reviews(full_refresh, start_date, end_date)

        df = self._table_builders()[spec.name]()
        if spec.materialization == "ephemeral":
            self._frames[spec.name] = df
        else:
            self._persist(spec.name, df)
        return {"rows": len(df)}

    def run(
        self,
        full_refresh: bool = False,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Dict[str, Any]:
        """
        Load seeds and run every model in declared order.

        Args:
            full_refresh: Rebuild fct_reviews from scratch
            start_date: Inclusive start of a fct_reviews backfill window
            end_date: Exclusive end of a fct_reviews backfill window

        Returns:
            Summary of the run with per-model status and row counts

        Raises:
            ConfigError: If only one of start_date/end_date is given
        """
        start_time = time.time()
        start_date, end_date = self._resolve_window(start_date, end_date)

        self.logger.info("=" * 60)
        self.logger.info("Starting model run")
        self.logger.info(f"Mode: {'Full Refresh' if full_refresh else 'Incremental'}")
        if start_date:
            self.logger.info(f"Backfill window: {start_date} to {end_date}")
        self.logger.info("=" * 60)

        self._frames = {}
        self.sources = SourceAdapter(self.sources.raw_directory, self.sources.source_files)

        seed_results = self.seed()
        results = {
            "status": seed_results["status"],
            "command": "run",
            "full_refresh": full_refresh,
            "seeds": seed_results["seeds"],
            "models": {},
            "errors": list(seed_results["errors"]),
        }
        statuses = {name: info["status"] for name, info in seed_results["seeds"].items()}

        for spec in MODELS:
            blocked = [dep for dep in spec.depends_on if statuses.get(dep) in FAILED_STATUSES]
            if blocked:
                self.logger.warning(f"Skipping {spec.name}: upstream {', '.join(blocked)} did not build")
                statuses[spec.name] = "skipped"
                results["models"][spec.name] = {"status": "skipped", "blocked_by": blocked}
                continue

            try:
                model_result = self._run_model(spec, full_refresh, start_date, end_date)
            except AnalyticsError as e:
                self.logger.error(f"Model {spec.name} failed: {e}")
                statuses[spec.name] = "error"
                results["models"][spec.name] = {"status": "error", "message": str(e)}
                results["errors"].append(f"{spec.name}: {e}")
                results["status"] = "error"
                continue

            statuses[spec.name] = "success"
            results["models"][spec.name] = {"status": "success", **model_result}

        elapsed = time.time() - start_time
        results["duration_seconds"] = round(elapsed, 2)
        self.tracker.record_run(
            "run",
            results["status"],
            {name: info.get("rows") for name, info in results["models"].items()},
            elapsed,
        )
        self.logger.info(f"Model run finished with status {results['status']} in {elapsed:.2f} seconds")
        return results

    def _resolve_window(self, start_date: Optional[date], end_date: Optional[date]):
        if start_date is None and end_date is None:
            start_date, end_date = self.config.start_date, self.config.end_date
        if (start_date is None) != (end_date is None):
            raise ConfigError("start_date and end_date must be given together")
        if start_date is not None and start_date >= end_date:
            raise ConfigError("start_date must be before end_date")
        return start_date, end_date

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    def snapshot(self, snapshot_time: Optional[datetime] = None) -> Dict[str, Any]:
        """Apply the current raw extracts to every snapshot history."""
        start_time = time.time()
        self.sources = SourceAdapter(self.sources.raw_directory, self.sources.source_files)
        raw_readers = {"listings": self.sources.raw_listings, "hosts": self.sources.raw_hosts}
        results = {"status": "success", "command": "snapshot", "snapshots": {}, "errors": []}

        for name, snapshot_config in SNAPSHOTS.items():
            builder = SnapshotBuilder(
                replace(snapshot_config, invalidate_hard_deletes=self.config.invalidate_hard_deletes),
                self.logger,
            )
            try:
                table, counts = builder.build(
                    raw_readers[snapshot_config.source](),
                    history=self.warehouse.read(name),
                    snapshot_time=snapshot_time,
                )
                self.warehouse.write(name, table)
                results["snapshots"][name] = {"status": "success", "rows": len(table), **counts}
            except AnalyticsError as e:
                self.logger.error(f"Snapshot {name} failed: {e}")
                results["snapshots"][name] = {"status": "error", "message": str(e)}
                results["errors"].append(f"{name}: {e}")
                results["status"] = "error"

        elapsed = time.time() - start_time
        results["duration_seconds"] = round(elapsed, 2)
        self.tracker.record_run(
            "snapshot",
            results["status"],
            {name: info.get("rows") for name, info in results["snapshots"].items()},
            elapsed,
        )
        return results

    # -------------------------------------------------------------------------
    # Data quality
    # -------------------------------------------------------------------------

    def _check_tables(self) -> Dict[str, pd.DataFrame]:
        tables: Dict[str, pd.DataFrame] = {}
        for spec in MODELS:
            if spec.materialization == "ephemeral":
                continue
            df = self.warehouse.read(spec.name)
            if df is not None:
                tables[spec.name] = df
        try:
            tables["src_listings"] = self.sources.src_listings()
        except AnalyticsError as e:
            self.logger.warning(f"src_listings unavailable for checks: {e}")
        return tables

    def test(self, models: Optional[List[str]] = None) -> Dict[str, Any]:
        """Run data-quality checks against the warehouse tables."""
        start_time = time.time()
        runner = DataQualityRunner(self.warehouse, logger=self.logger)
        check_results = runner.run(self._check_tables(), models=models)
        summary = summarize(check_results)

        elapsed = time.time() - start_time
        results = {
            "status": "success" if summary["success"] else "error",
            "command": "test",
            "summary": summary,
            "checks": [r.to_dict() for r in check_results],
            "duration_seconds": round(elapsed, 2),
        }
        self.logger.info(
            f"Checks: {summary['pass']} passed, {summary['warn']} warned, "
            f"{summary['fail']} failed, {summary['error']} errored"
        )
        self.tracker.record_run("test", results["status"], summary, elapsed)
        return results

    # -------------------------------------------------------------------------
    # Docs and build
    # -------------------------------------------------------------------------

    def generate_docs(self) -> Dict[str, Any]:
        paths = DocsGenerator(self.warehouse, self.config, self.docs_directory, logger=self.logger).generate()
        return {"status": "success", "command": "docs", "files": {k: str(v) for k, v in paths.items()}}

    def build(
        self,
        full_refresh: bool = False,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        snapshot_time: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Run models, then snapshots, then data-quality checks."""
        run_results = self.run(full_refresh=full_refresh, start_date=start_date, end_date=end_date)
        snapshot_results = self.snapshot(snapshot_time=snapshot_time)
        test_results = self.test()

        steps = (run_results, snapshot_results, test_results)
        return {
            "status": "success" if all(r["status"] == "success" for r in steps) else "error",
            "command": "build",
            "run": run_results,
            "snapshot": snapshot_results,
            "test": test_results,
        }
