"""
Dimension builders for the Airbnb analytics models.

Each builder turns a source frame into a cleansed dimension:
- dim_listings_cleansed: minimum-night correction and price parsing
- dim_hosts_cleansed: host name fallback and superhost flag parsing
- dim_listings_w_hosts: listings enriched with their host attributes

Builders are pure functions of their inputs; persisting the results and
enforcing declared contracts is the pipeline's job.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Iterable, List, Optional

import pandas as pd

from .errors import PriceParseError
from .type_safety import coerce_int64_column, parse_price, safe_string_or_none

SURROGATE_KEY_NULL = "_surrogate_key_null_"

ANONYMOUS_HOST_NAME = "Anonymous"

SUPERHOST_VALUES = {"t": True, "true": True, "f": False, "false": False}

ROOM_TYPES = ["Entire home/apt", "Private room", "Shared room", "Hotel room"]


def generate_surrogate_key(values: Iterable[object]) -> str:
    """
    Derive a deterministic identifier from an ordered tuple of values.

    Values are rendered as text, nulls replaced by a fixed marker, joined
    with '-' and hashed with MD5.
    """
    parts = []
    for value in values:
        if value is None or (not isinstance(value, str) and pd.isna(value)):
            parts.append(SURROGATE_KEY_NULL)
        elif isinstance(value, pd.Timestamp):
            parts.append(value.isoformat())
        else:
            parts.append(str(value))
    return hashlib.md5("-".join(parts).encode("utf-8")).hexdigest()


class DimensionBuilder:
    """Base class for building dimension tables."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)


class ListingDimensionBuilder(DimensionBuilder):
    """Builds dim_listings_cleansed from src_listings."""

    OUTPUT_COLUMNS: List[str] = [
        "listing_id", "listing_name", "room_type", "minimum_nights",
        "host_id", "price", "created_at", "updated_at",
    ]

    def correct_minimum_nights(self, series: pd.Series) -> pd.Series:
        """Replace non-positive minimum nights with 1; nulls stay null."""
        nights = coerce_int64_column(series)
        non_positive = nights.le(0).fillna(False).astype(bool)
        if non_positive.any():
            self.logger.info(f"Corrected {int(non_positive.sum())} non-positive minimum_nights values to 1")
        nights[non_positive] = 1
        return nights

    def parse_prices(self, series: pd.Series) -> pd.Series:
        """
        Parse currency strings into Decimals.

        Raises:
            PriceParseError: For the first malformed value, after logging how many
                rows are malformed
        """
        parsed = []
        failures = []
        for value in series:
            try:
                parsed.append(parse_price(value))
            except PriceParseError as e:
                failures.append(e)
                parsed.append(None)
        if failures:
            self.logger.error(f"{len(failures)} listing prices could not be parsed, first: {failures[0]}")
            raise failures[0]
        return pd.Series(parsed, index=series.index, dtype=object, name=series.name)

    def build(self, src_listings: pd.DataFrame) -> pd.DataFrame:
        df = src_listings.copy()
        df["minimum_nights"] = self.correct_minimum_nights(df["minimum_nights"])
        df["price"] = self.parse_prices(df["price_str"])
        return df[self.OUTPUT_COLUMNS].reset_index(drop=True)


class HostDimensionBuilder(DimensionBuilder):
    """Builds dim_hosts_cleansed from src_hosts."""

    OUTPUT_COLUMNS: List[str] = ["host_id", "host_name", "is_superhost", "created_at", "updated_at"]

    def parse_superhost(self, series: pd.Series) -> pd.Series:
        normalized = series.map(safe_string_or_none).map(lambda v: v.lower() if isinstance(v, str) else None)
        flags = normalized.map(SUPERHOST_VALUES)
        unknown = normalized.notna() & flags.isna()
        if unknown.any():
            self.logger.warning(
                f"{int(unknown.sum())} hosts have unrecognised is_superhost values: "
                f"{sorted(normalized[unknown].unique().tolist())}"
            )
        return flags.astype("boolean")

    def build(self, src_hosts: pd.DataFrame) -> pd.DataFrame:
        df = src_hosts.copy()
        names = df["host_name"].map(safe_string_or_none)
        anonymous = names.isna()
        if anonymous.any():
            self.logger.info(f"Filled {int(anonymous.sum())} missing host names with '{ANONYMOUS_HOST_NAME}'")
        df["host_name"] = names.where(~anonymous, ANONYMOUS_HOST_NAME).astype(object)
        df["is_superhost"] = self.parse_superhost(df["is_superhost"])
        return df[self.OUTPUT_COLUMNS].reset_index(drop=True)


class ListingHostDimensionBuilder(DimensionBuilder):
    """Builds dim_listings_w_hosts by joining cleansed listings and hosts."""

    OUTPUT_COLUMNS: List[str] = [
        "listing_id", "listing_name", "room_type", "minimum_nights", "price",
        "host_id", "host_name", "host_is_superhost", "created_at", "updated_at",
    ]

    def build(self, dim_listings: pd.DataFrame, dim_hosts: pd.DataFrame) -> pd.DataFrame:
        hosts = dim_hosts[dim_hosts["host_id"].notna()][
            ["host_id", "host_name", "is_superhost", "updated_at"]
        ].rename(columns={"is_superhost": "host_is_superhost", "updated_at": "host_updated_at"})

        merged = dim_listings.merge(hosts, on="host_id", how="left")
        # Later of the two timestamps; a missing side does not null the result
        merged["updated_at"] = merged[["updated_at", "host_updated_at"]].max(axis=1)

        unmatched = merged["host_name"].isna() & merged["host_id"].notna()
        if unmatched.any():
            self.logger.warning(f"{int(unmatched.sum())} listings reference unknown hosts")

        return merged[self.OUTPUT_COLUMNS].reset_index(drop=True)
