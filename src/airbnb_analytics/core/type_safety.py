"""
Type Safety Utilities for the Airbnb analytics pipeline.

This module provides the coercion helpers shared by the source adapter and
the model builders, so that raw CSV values reach the models with predictable
types:
- Nullable Int64 identifiers instead of Float64 columns with NaN
- Naive datetime64 timestamps regardless of the input format
- Currency strings parsed into two-place Decimals
- Null/blank string handling

Usage:
    from airbnb_analytics.core.type_safety import (
        safe_int64,
        coerce_int64_column,
        safe_datetime_column,
        parse_price,
    )
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, List, Optional

import numpy as np
import pandas as pd

from .errors import PriceParseError

logger = logging.getLogger(__name__)


# =============================================================================
# INTEGER TYPE COERCION
# =============================================================================

def safe_int64(value: Any) -> Optional[int]:
    """
    Safely convert a value to a Python int, handling NaN/None.

    Args:
        value: Any value to convert (int, float, str, None, NaN)

    Returns:
        Integer value or None if conversion fails

    Examples:
        >>> safe_int64(42.0)
        42
        >>> safe_int64(np.nan)
        None
        >>> safe_int64(" 123 ")
        123
    """
    if value is None:
        return None
    if isinstance(value, float) and (np.isnan(value) or np.isinf(value)):
        return None
    if pd.isna(value):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        try:
            return int(float(value))
        except (ValueError, OverflowError):
            return None
    try:
        return int(value)
    except (ValueError, TypeError, OverflowError):
        return None


def coerce_int64_column(series: pd.Series) -> pd.Series:
    """Convert a Series to nullable Int64, turning unparseable values into <NA>."""
    return pd.Series(
        pd.array([safe_int64(v) for v in series], dtype=pd.Int64Dtype()),
        index=series.index,
        name=series.name,
    )


# =============================================================================
# DATETIME HANDLING
# =============================================================================

DATETIME_FORMATS = [
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S.%f",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
]


def safe_datetime(value: Any) -> Optional[datetime]:
    """
    Safely parse a datetime value with multiple format fallbacks.

    Timezone-aware inputs are converted to UTC and returned naive.

    Args:
        value: Datetime string, datetime object, or None

    Returns:
        Parsed datetime or None if parsing fails
    """
    if value is None:
        return None
    if isinstance(value, pd.Timestamp):
        if pd.isna(value):
            return None
        if value.tzinfo is not None:
            value = value.tz_convert("UTC").tz_localize(None)
        return value.to_pydatetime()
    if isinstance(value, datetime):
        return value
    if pd.isna(value):
        return None

    value = str(value).strip()
    if not value:
        return None

    try:
        result = pd.to_datetime(value, utc=True)
        return result.to_pydatetime().replace(tzinfo=None)
    except (ValueError, TypeError):
        pass

    for fmt in DATETIME_FORMATS:
        try:
            return datetime.strptime(value.rstrip("Z"), fmt)
        except ValueError:
            continue

    logger.debug(f"Could not parse datetime: {value}")
    return None


def safe_datetime_column(series: pd.Series) -> pd.Series:
    """
    Convert a pandas Series to naive datetime64 with robust error handling.

    Unparseable values become NaT rather than raising.

    Args:
        series: Pandas Series with datetime values

    Returns:
        Series with datetime64[ns] dtype
    """
    if pd.api.types.is_datetime64_any_dtype(series):
        result = series
    else:
        try:
            result = pd.to_datetime(series, format="ISO8601", errors="coerce", utc=True)
        except (ValueError, TypeError):
            result = pd.to_datetime(series.apply(safe_datetime), errors="coerce")

    if getattr(result.dt, "tz", None) is not None:
        result = result.dt.tz_convert("UTC").dt.tz_localize(None)
    return result.astype("datetime64[ns]")


# =============================================================================
# CURRENCY HANDLING
# =============================================================================

_PRICE_PATTERN = re.compile(r"^\$?\s*(\d{1,3}(,\d{3})+|\d+)(\.\d+)?$")
_CENTS = Decimal("0.01")


def parse_price(value: Any) -> Optional[Decimal]:
    """
    Parse a currency-formatted string such as "$1,234.50" into a Decimal.

    Null input stays None. Anything else that is not a well-formed,
    non-negative amount raises PriceParseError.

    Examples:
        >>> parse_price("$1,234.50")
        Decimal('1234.50')
        >>> parse_price("$80.00")
        Decimal('80.00')
    """
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        amount = Decimal(str(value))
    else:
        text = str(value).strip()
        if not text:
            raise PriceParseError(value, "empty string")
        if text.startswith("-") or text.startswith("$-"):
            raise PriceParseError(value, "negative amount")
        if not _PRICE_PATTERN.match(text):
            raise PriceParseError(value)
        try:
            amount = Decimal(text.replace("$", "").replace(",", "").strip())
        except InvalidOperation as exc:
            raise PriceParseError(value) from exc

    if amount < 0:
        raise PriceParseError(value, "negative amount")
    return amount.quantize(_CENTS, rounding=ROUND_HALF_UP)


# =============================================================================
# STRING HANDLING
# =============================================================================

def safe_string_or_none(value: Any) -> Optional[str]:
    """
    Safely convert a value to string, returning None for empty/null.

    Args:
        value: Any value to convert

    Returns:
        Non-empty string or None
    """
    if value is None or pd.isna(value):
        return None
    result = str(value).strip()
    return result if result else None


# =============================================================================
# DATAFRAME UTILITIES
# =============================================================================

def ensure_columns_exist(
    df: pd.DataFrame,
    columns: List[str],
    fill_value: Any = None
) -> pd.DataFrame:
    """
    Ensure specified columns exist in DataFrame, adding if missing.

    Args:
        df: DataFrame to check/modify
        columns: List of column names to ensure exist
        fill_value: Value to use for missing columns

    Returns:
        DataFrame with all specified columns
    """
    for col in columns:
        if col not in df.columns:
            df[col] = fill_value
    return df


def microsecond_timestamps(df: pd.DataFrame) -> pd.DataFrame:
    """
    Truncate all datetime columns to microsecond precision.

    Parquet readers outside pandas commonly reject nanosecond timestamps.

    Args:
        df: DataFrame to process

    Returns:
        DataFrame with datetime columns truncated to microseconds
    """
    datetime_cols = df.select_dtypes(include=["datetime64[ns]", "datetime64"]).columns

    for col in datetime_cols:
        df[col] = df[col].dt.floor("us")

    return df
