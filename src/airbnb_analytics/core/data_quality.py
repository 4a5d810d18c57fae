"""
Data Quality Checks

Declared row-level checks for the warehouse models. Every check returns the
rows that violate it; an empty result means the check passed. Failing rows
are stored in the warehouse test-failure sink so they can be inspected after
the run.

Severities:
- error: a failing check fails the run
- warn: a failing check is reported but does not fail the run
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

import numpy as np
import pandas as pd

from .dimensions import ROOM_TYPES
from .warehouse import Warehouse

SEVERITY_ERROR = "error"
SEVERITY_WARN = "warn"

REVIEW_SENTIMENTS = ["positive", "neutral", "negative"]


@dataclass(frozen=True)
class DataCheck:
    """A single declared check attached to a model."""

    kind: str
    model: str
    column: Optional[str] = None
    severity: str = SEVERITY_ERROR
    params: Dict[str, Any] = field(default_factory=dict)
    name: Optional[str] = None

    @property
    def check_name(self) -> str:
        if self.name:
            return self.name
        parts = [self.kind, self.model] + ([self.column] if self.column else [])
        return "_".join(parts)

    def describe(self) -> Dict[str, Any]:
        return {
            "name": self.check_name,
            "kind": self.kind,
            "column": self.column,
            "severity": self.severity,
            "params": dict(self.params),
        }


@dataclass
class CheckResult:
    """Outcome of one check: pass, warn, fail, or error when it could not run."""

    check: DataCheck
    status: str
    failures: int = 0
    message: str = ""

    @property
    def failed_run(self) -> bool:
        return self.status in ("fail", "error")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "check": self.check.check_name,
            "model": self.check.model,
            "severity": self.check.severity,
            "status": self.status,
            "failures": self.failures,
            "message": self.message,
        }


# =============================================================================
# GENERIC CHECKS
# =============================================================================

def _numeric(series: pd.Series) -> pd.Series:
    """Decimal/object values as floats, nulls as NaN."""
    return series.map(lambda v: np.nan if v is None or pd.isna(v) else float(v)).astype(float)


def check_unique(df: pd.DataFrame, column: str) -> pd.DataFrame:
    values = df[column]
    return df[values.notna() & values.duplicated(keep=False)]


def check_not_null(df: pd.DataFrame, column: str) -> pd.DataFrame:
    return df[df[column].isna()]


def check_accepted_values(df: pd.DataFrame, column: str, values: List[Any]) -> pd.DataFrame:
    series = df[column]
    accepted = series.isin(values).fillna(False).astype(bool)
    return df[series.notna() & ~accepted]


def check_relationships(df: pd.DataFrame, column: str, parent: pd.DataFrame, field: str) -> pd.DataFrame:
    """Rows whose non-null reference has no match in the parent table."""
    series = df[column]
    return df[series.notna() & ~series.isin(parent[field].dropna())]


def check_positive_value(df: pd.DataFrame, column: str) -> pd.DataFrame:
    not_positive = _numeric(df[column]) <= 0
    return df[not_positive]


def check_no_nulls_in_columns(df: pd.DataFrame) -> pd.DataFrame:
    return df[df.isna().any(axis=1)]


def check_row_count_equal(df: pd.DataFrame, other: pd.DataFrame, model: str, compare_model: str) -> pd.DataFrame:
    if len(df) == len(other):
        return pd.DataFrame()
    return pd.DataFrame([{
        "model": model,
        "model_rows": len(df),
        "compare_model": compare_model,
        "compare_rows": len(other),
    }])


def check_column_max_between(df: pd.DataFrame, column: str, max_value: float, min_value: Optional[float] = None) -> pd.DataFrame:
    values = _numeric(df[column])
    column_max = values.max()
    if pd.isna(column_max):
        return pd.DataFrame()
    too_high = column_max > max_value
    too_low = min_value is not None and column_max < min_value
    if not (too_high or too_low):
        return pd.DataFrame()
    return df[values == column_max]


def check_column_quantile_between(
    df: pd.DataFrame, column: str, quantile: float, min_value: float, max_value: float
) -> pd.DataFrame:
    values = _numeric(df[column]).dropna()
    if values.empty:
        return pd.DataFrame()
    observed = float(values.quantile(quantile))
    if min_value <= observed <= max_value:
        return pd.DataFrame()
    return pd.DataFrame([{
        "column": column,
        "quantile": quantile,
        "observed_value": observed,
        "min_value": min_value,
        "max_value": max_value,
    }])


# =============================================================================
# SINGULAR CHECKS
# =============================================================================

def dim_listings_minimum_nights(tables: Mapping[str, pd.DataFrame]) -> pd.DataFrame:
    """Cleansed listings with fewer than one minimum night."""
    listings = tables["dim_listings_cleansed"]
    too_few = _numeric(listings["minimum_nights"]) < 1
    return listings[too_few]


def consistent_created_at(tables: Mapping[str, pd.DataFrame]) -> pd.DataFrame:
    """Reviews dated before their listing was created."""
    reviews = tables["fct_reviews"]
    listings = tables["dim_listings_cleansed"][["listing_id", "created_at"]]
    joined = reviews.merge(listings, on="listing_id", how="inner")
    early = (joined["review_date"] < joined["created_at"]).fillna(False).astype(bool)
    return joined[early].reset_index(drop=True)


SINGULAR_CHECKS: Dict[str, Callable[[Mapping[str, pd.DataFrame]], pd.DataFrame]] = {
    "dim_listings_minimum_nights": dim_listings_minimum_nights,
    "consistent_created_at": consistent_created_at,
}

SINGULAR_TABLES: Dict[str, List[str]] = {
    "dim_listings_minimum_nights": ["dim_listings_cleansed"],
    "consistent_created_at": ["fct_reviews", "dim_listings_cleansed"],
}


def _run_generic(check: DataCheck, tables: Mapping[str, pd.DataFrame]) -> pd.DataFrame:
    df = tables[check.model]
    p = check.params
    if check.kind == "unique":
        return check_unique(df, check.column)
    if check.kind == "not_null":
        return check_not_null(df, check.column)
    if check.kind == "accepted_values":
        return check_accepted_values(df, check.column, p["values"])
    if check.kind == "relationships":
        return check_relationships(df, check.column, tables[p["to"]], p["field"])
    if check.kind == "positive_value":
        return check_positive_value(df, check.column)
    if check.kind == "no_nulls_in_columns":
        return check_no_nulls_in_columns(df)
    if check.kind == "row_count_equal":
        return check_row_count_equal(df, tables[p["compare_model"]], check.model, p["compare_model"])
    if check.kind == "column_max_between":
        return check_column_max_between(df, check.column, p["max_value"], p.get("min_value"))
    if check.kind == "column_quantile_between":
        return check_column_quantile_between(
            df, check.column, p["quantile"], p["min_value"], p["max_value"]
        )
    if check.kind == "singular":
        return SINGULAR_CHECKS[check.check_name](tables)
    raise ValueError(f"Unknown check kind: {check.kind}")


def required_tables(check: DataCheck) -> List[str]:
    """Tables a check reads."""
    if check.kind == "singular":
        return SINGULAR_TABLES[check.check_name]
    names = [check.model]
    if check.kind == "relationships":
        names.append(check.params["to"])
    if check.kind == "row_count_equal":
        names.append(check.params["compare_model"])
    return names


# =============================================================================
# DECLARED CHECKS
# =============================================================================

DECLARED_CHECKS: List[DataCheck] = [
    # dim_listings_cleansed
    DataCheck("unique", "dim_listings_cleansed", "listing_id"),
    DataCheck("not_null", "dim_listings_cleansed", "listing_id"),
    DataCheck("not_null", "dim_listings_cleansed", "host_id"),
    DataCheck("relationships", "dim_listings_cleansed", "host_id",
              params={"to": "dim_hosts_cleansed", "field": "host_id"}),
    DataCheck("accepted_values", "dim_listings_cleansed", "room_type", params={"values": ROOM_TYPES}),
    DataCheck("positive_value", "dim_listings_cleansed", "minimum_nights"),
    # dim_hosts_cleansed
    DataCheck("unique", "dim_hosts_cleansed", "host_id"),
    DataCheck("not_null", "dim_hosts_cleansed", "host_id"),
    DataCheck("not_null", "dim_hosts_cleansed", "host_name"),
    DataCheck("accepted_values", "dim_hosts_cleansed", "is_superhost", params={"values": [True, False]}),
    # fct_reviews
    DataCheck("relationships", "fct_reviews", "listing_id",
              params={"to": "dim_listings_cleansed", "field": "listing_id"}),
    DataCheck("not_null", "fct_reviews", "reviewer_name"),
    DataCheck("accepted_values", "fct_reviews", "review_sentiment", params={"values": REVIEW_SENTIMENTS}),
    DataCheck("unique", "fct_reviews", "review_id"),
    # dim_listings_w_hosts
    DataCheck("row_count_equal", "dim_listings_w_hosts", params={"compare_model": "src_listings"}),
    DataCheck("no_nulls_in_columns", "dim_listings_w_hosts", severity=SEVERITY_WARN),
    DataCheck("column_max_between", "dim_listings_w_hosts", "price", severity=SEVERITY_WARN,
              params={"max_value": 5000}),
    DataCheck("column_quantile_between", "dim_listings_w_hosts", "price", severity=SEVERITY_WARN,
              params={"quantile": 0.99, "min_value": 50, "max_value": 500}),
    # singular
    DataCheck("singular", "dim_listings_cleansed", name="dim_listings_minimum_nights"),
    DataCheck("singular", "fct_reviews", name="consistent_created_at"),
]


def checks_for_model(model: str, checks: Optional[List[DataCheck]] = None) -> List[DataCheck]:
    return [c for c in (checks if checks is not None else DECLARED_CHECKS) if c.model == model]


# =============================================================================
# RUNNER
# =============================================================================

class DataQualityRunner:
    """Runs checks against in-memory tables and maintains the failure sink."""

    def __init__(
        self,
        warehouse: Warehouse,
        checks: Optional[List[DataCheck]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.warehouse = warehouse
        self.checks = list(checks) if checks is not None else list(DECLARED_CHECKS)
        self.logger = logger or logging.getLogger(__name__)

    def run_check(self, check: DataCheck, tables: Mapping[str, pd.DataFrame]) -> CheckResult:
        missing = [name for name in required_tables(check) if tables.get(name) is None]
        if missing:
            return CheckResult(check, "error", message=f"tables not available: {missing}")

        try:
            failing = _run_generic(check, tables)
        except KeyError as e:
            return CheckResult(check, "error", message=f"missing column or parameter {e}")

        name = check.check_name
        if failing.empty:
            self.warehouse.clear_failures(name)
            return CheckResult(check, "pass")

        self.warehouse.write_failures(name, failing.reset_index(drop=True))
        status = "warn" if check.severity == SEVERITY_WARN else "fail"
        return CheckResult(
            check, status, failures=len(failing),
            message=f"{len(failing)} failing rows in {self.warehouse.failures_path(name)}",
        )

    def run(self, tables: Mapping[str, pd.DataFrame], models: Optional[List[str]] = None) -> List[CheckResult]:
        """
        Run every declared check, optionally limited to some models.

        Args:
            tables: Model name -> DataFrame, including ephemeral source models
            models: Only run checks attached to these models

        Returns:
            One CheckResult per check, in declaration order
        """
        results = []
        for check in self.checks:
            if models is not None and check.model not in models:
                continue
            result = self.run_check(check, tables)
            log = {
                "pass": self.logger.info,
                "warn": self.logger.warning,
            }.get(result.status, self.logger.error)
            log(f"[{result.status.upper()}] {check.check_name} {result.message}".rstrip())
            results.append(result)
        return results


def summarize(results: List[CheckResult]) -> Dict[str, Any]:
    """Count results per status; ``success`` is False if any error-severity check failed."""
    counts = {"pass": 0, "warn": 0, "fail": 0, "error": 0}
    for result in results:
        counts[result.status] += 1
    return {
        "total": len(results),
        **counts,
        "success": not any(r.failed_run for r in results),
    }
