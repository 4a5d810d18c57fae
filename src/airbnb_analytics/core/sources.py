"""Source adapter: reads raw Airbnb CSV exports and aliases their columns.

The ``raw_*`` readers return the source tables with identifiers and
timestamps typed but otherwise untouched (snapshots historize these). The
``src_*`` readers rename columns to the model vocabulary. No business logic
is applied here.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Mapping, Optional

import pandas as pd

from .errors import SourceError
from .type_safety import coerce_int64_column, ensure_columns_exist, safe_datetime_column
from .utils import env_path

logger = logging.getLogger(__name__)

RAW_COLUMNS: Dict[str, List[str]] = {
    "listings": [
        "id", "listing_url", "name", "room_type", "minimum_nights",
        "host_id", "price", "created_at", "updated_at",
    ],
    "hosts": ["id", "name", "is_superhost", "created_at", "updated_at"],
    "reviews": ["listing_id", "date", "reviewer_name", "comments", "sentiment"],
}

INTEGER_COLUMNS = {
    "listings": ["id", "host_id"],
    "hosts": ["id"],
    "reviews": ["listing_id"],
}

TIMESTAMP_COLUMNS = {
    "listings": ["created_at", "updated_at"],
    "hosts": ["created_at", "updated_at"],
    "reviews": ["date"],
}

RENAME_MAPS: Dict[str, Dict[str, str]] = {
    "listings": {
        "id": "listing_id",
        "name": "listing_name",
        "price": "price_str",
    },
    "hosts": {
        "id": "host_id",
        "name": "host_name",
    },
    "reviews": {
        "date": "review_date",
        "comments": "review_text",
        "sentiment": "review_sentiment",
    },
}

SRC_COLUMNS: Dict[str, List[str]] = {
    "listings": [
        "listing_id", "listing_name", "listing_url", "room_type", "minimum_nights",
        "host_id", "price_str", "created_at", "updated_at",
    ],
    "hosts": ["host_id", "host_name", "is_superhost", "created_at", "updated_at"],
    "reviews": ["listing_id", "review_date", "reviewer_name", "review_text", "review_sentiment"],
}

DEFAULT_SOURCE_FILES = {
    "listings": "raw_listings.csv",
    "hosts": "raw_hosts.csv",
    "reviews": "raw_reviews.csv",
}


def read_csv_table(path: Path) -> pd.DataFrame:
    """Read a CSV export with every column as text."""
    if not path.exists():
        raise SourceError(f"Source file not found: {path}")
    try:
        return pd.read_csv(path, dtype=str, keep_default_na=True)
    except (pd.errors.ParserError, UnicodeDecodeError) as e:
        raise SourceError(f"Could not parse {path}: {e}") from e


class SourceAdapter:
    """Reads the raw listings, hosts and reviews tables."""

    def __init__(
        self,
        raw_directory: Optional[Path] = None,
        source_files: Optional[Mapping[str, str]] = None,
    ):
        self.raw_directory = Path(raw_directory) if raw_directory else env_path("AIRBNB_RAW_DIR", "data/raw")
        self.source_files = dict(DEFAULT_SOURCE_FILES)
        self.source_files.update(source_files or {})
        self._cache: Dict[str, pd.DataFrame] = {}

    def _raw(self, entity: str) -> pd.DataFrame:
        if entity not in self._cache:
            path = self.raw_directory / self.source_files[entity]
            df = read_csv_table(path)
            df = ensure_columns_exist(df, RAW_COLUMNS[entity])[RAW_COLUMNS[entity]]
            for col in INTEGER_COLUMNS[entity]:
                df[col] = coerce_int64_column(df[col])
            for col in TIMESTAMP_COLUMNS[entity]:
                df[col] = safe_datetime_column(df[col])
            logger.info(f"Read {len(df)} rows from {path}")
            self._cache[entity] = df
        return self._cache[entity].copy()

    def raw_listings(self) -> pd.DataFrame:
        return self._raw("listings")

    def raw_hosts(self) -> pd.DataFrame:
        return self._raw("hosts")

    def raw_reviews(self) -> pd.DataFrame:
        return self._raw("reviews")

    def _src(self, entity: str) -> pd.DataFrame:
        return self._raw(entity).rename(columns=RENAME_MAPS[entity])[SRC_COLUMNS[entity]]

    def src_listings(self) -> pd.DataFrame:
        return self._src("listings")

    def src_hosts(self) -> pd.DataFrame:
        return self._src("hosts")

    def src_reviews(self) -> pd.DataFrame:
        return self._src("reviews")


def load_seed(seed_directory: Path, filename: str) -> pd.DataFrame:
    """
    Read a seed CSV. Columns whose name ends in ``_date`` become ``datetime.date``.

    Args:
        seed_directory: Directory holding seed CSV files
        filename: Seed file name, e.g. seed_full_moon_dates.csv
    """
    df = read_csv_table(Path(seed_directory) / filename)
    for col in df.columns:
        if col.endswith("_date"):
            parsed = safe_datetime_column(df[col])
            if parsed.isna().any():
                bad = df.loc[parsed.isna(), col].tolist()
                raise SourceError(f"Seed {filename} has unparseable dates in {col}: {bad}")
            df[col] = parsed.dt.date
    return df
