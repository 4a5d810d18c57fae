"""
Data Definition and Contracts for the Airbnb analytics models

This module defines the target DDL of every persisted table and enforces
declared model contracts against computed DataFrames before they are written.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Dict, List

import pandas as pd

from .errors import ContractViolationError
from .project_config import ModelContract

# ==========================================
# 1. Data Definition (DDL) - Snowflake
# ==========================================

DDL_DIM_LISTINGS_CLEANSED = """
CREATE TABLE IF NOT EXISTS dim_listings_cleansed (
    listing_id INTEGER NOT NULL,
    listing_name STRING,
    room_type STRING,            -- Entire home/apt, Private room, Shared room, Hotel room
    minimum_nights INTEGER,      -- Non-positive source values corrected to 1
    host_id INTEGER,             -- FK to dim_hosts_cleansed
    price NUMBER(10,2),          -- Parsed from '$1,234.00'
    created_at TIMESTAMP,
    updated_at TIMESTAMP
);
"""

DDL_DIM_HOSTS_CLEANSED = """
CREATE TABLE IF NOT EXISTS dim_hosts_cleansed (
    host_id INTEGER NOT NULL,
    host_name STRING NOT NULL,   -- 'Anonymous' when missing
    is_superhost BOOLEAN,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
);
"""

DDL_DIM_LISTINGS_W_HOSTS = """
CREATE TABLE IF NOT EXISTS dim_listings_w_hosts (
    listing_id INTEGER NOT NULL,
    listing_name STRING,
    room_type STRING,
    minimum_nights INTEGER,
    price NUMBER(10,2),
    host_id INTEGER,
    host_name STRING,
    host_is_superhost BOOLEAN,
    created_at TIMESTAMP,
    updated_at TIMESTAMP         -- Later of listing and host updated_at
);
"""

DDL_FCT_REVIEWS = """
-- Incremental, append-only (watermark: review_date)
CREATE TABLE IF NOT EXISTS fct_reviews (
    review_id STRING NOT NULL,   -- md5(listing_id, review_date, reviewer_name, review_text)
    listing_id INTEGER,
    review_date TIMESTAMP,
    reviewer_name STRING,
    review_text STRING,
    review_sentiment STRING      -- positive, neutral, negative
);
"""

DDL_MART_FULLMOON_REVIEWS = """
CREATE TABLE IF NOT EXISTS mart_fullmoon_reviews (
    review_id STRING NOT NULL,
    listing_id INTEGER,
    review_date TIMESTAMP,
    reviewer_name STRING,
    review_text STRING,
    review_sentiment STRING,
    is_full_moon STRING          -- 'full moon' / 'not full moon'
);
"""

DDL_SEED_FULL_MOON_DATES = """
CREATE TABLE IF NOT EXISTS seed_full_moon_dates (
    full_moon_date DATE NOT NULL
);
"""

_SNAPSHOT_COLUMNS = """
    scd_id STRING NOT NULL,      -- md5(id, updated_at)
    snapshot_updated_at TIMESTAMP,
    valid_from TIMESTAMP,
    valid_to TIMESTAMP,          -- NULL while the version is active
    is_invalidated BOOLEAN       -- TRUE when the source row was hard-deleted
"""

DDL_SCD_RAW_LISTINGS = f"""
CREATE TABLE IF NOT EXISTS scd_raw_listings (
    id INTEGER NOT NULL,
    listing_url STRING,
    name STRING,
    room_type STRING,
    minimum_nights STRING,
    host_id INTEGER,
    price STRING,
    created_at TIMESTAMP,
    updated_at TIMESTAMP,{_SNAPSHOT_COLUMNS});
"""

DDL_SCD_RAW_HOSTS = f"""
CREATE TABLE IF NOT EXISTS scd_raw_hosts (
    id INTEGER NOT NULL,
    name STRING,
    is_superhost STRING,
    created_at TIMESTAMP,
    updated_at TIMESTAMP,{_SNAPSHOT_COLUMNS});
"""

ALL_DDLS = {
    "seed_full_moon_dates": DDL_SEED_FULL_MOON_DATES,
    "dim_listings_cleansed": DDL_DIM_LISTINGS_CLEANSED,
    "dim_hosts_cleansed": DDL_DIM_HOSTS_CLEANSED,
    "dim_listings_w_hosts": DDL_DIM_LISTINGS_W_HOSTS,
    "fct_reviews": DDL_FCT_REVIEWS,
    "mart_fullmoon_reviews": DDL_MART_FULLMOON_REVIEWS,
    "scd_raw_listings": DDL_SCD_RAW_LISTINGS,
    "scd_raw_hosts": DDL_SCD_RAW_HOSTS,
}


# ==========================================
# 2. Contract Enforcement
# ==========================================

def _values_are(series: pd.Series, types: tuple) -> bool:
    return all(isinstance(v, types) for v in series.dropna())


def _is_string(series: pd.Series) -> bool:
    if pd.api.types.is_string_dtype(series.dtype) and not pd.api.types.is_object_dtype(series.dtype):
        return True
    return pd.api.types.is_object_dtype(series.dtype) and _values_are(series, (str,))


def _is_date(series: pd.Series) -> bool:
    if pd.api.types.is_datetime64_any_dtype(series.dtype):
        return True
    if not pd.api.types.is_object_dtype(series.dtype):
        return False
    return all(isinstance(v, date) and not isinstance(v, datetime) for v in series.dropna())


TYPE_CHECKS: Dict[str, Callable[[pd.Series], bool]] = {
    "integer": lambda s: pd.api.types.is_integer_dtype(s.dtype),
    "string": _is_string,
    "boolean": lambda s: pd.api.types.is_bool_dtype(s.dtype),
    "timestamp": lambda s: pd.api.types.is_datetime64_any_dtype(s.dtype),
    "decimal": lambda s: pd.api.types.is_object_dtype(s.dtype) and _values_are(s, (Decimal,)),
    "date": _is_date,
}


def contract_violations(df: pd.DataFrame, contract: ModelContract) -> List[str]:
    """Compare a DataFrame against a contract and describe every mismatch."""
    problems: List[str] = []
    declared = contract.column_names
    actual = list(df.columns)

    missing = [c for c in declared if c not in actual]
    extra = [c for c in actual if c not in declared]
    if missing:
        problems.append(f"missing columns {missing}")
    if extra:
        problems.append(f"undeclared columns {extra}")
    if not missing and not extra and actual != declared:
        problems.append(f"column order {actual} does not match declared order {declared}")

    for column in contract.columns:
        if column.name not in df.columns:
            continue
        check = TYPE_CHECKS.get(column.data_type)
        if check is None:
            problems.append(f"{column.name}: unsupported data_type '{column.data_type}'")
        elif not check(df[column.name]):
            problems.append(
                f"{column.name}: expected {column.data_type}, found {df[column.name].dtype}"
            )
    return problems


def enforce_contract(df: pd.DataFrame, contract: ModelContract) -> pd.DataFrame:
    """
    Fail fast when a model's output does not match its declared contract.

    Raises:
        ContractViolationError: On any column name, order or type mismatch
    """
    if not contract.enforced:
        return df
    problems = contract_violations(df, contract)
    if problems:
        raise ContractViolationError(contract.model, problems)
    return df
