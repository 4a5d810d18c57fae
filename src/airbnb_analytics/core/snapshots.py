"""
Slowly-changing-dimension snapshots of the raw listings and hosts tables.

Uses the timestamp strategy: for each unique key, the current source row is
compared with the ACTIVE history version (valid_to is null). When the source
change-column value is strictly greater, the active version is closed at that
value and a new active version is appended. Keys that disappeared from the
source have their active version invalidated. History rows are never removed;
a version is modified exactly once, when it is closed or invalidated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from .dimensions import generate_surrogate_key
from .errors import SnapshotError
from .type_safety import ensure_columns_exist, safe_datetime_column

SNAPSHOT_META_COLUMNS: List[str] = [
    "scd_id", "snapshot_updated_at", "valid_from", "valid_to", "is_invalidated",
]


class SnapshotState(str, Enum):
    ACTIVE = "active"
    CLOSED = "closed"
    INVALIDATED = "invalidated"


@dataclass(frozen=True)
class SnapshotConfig:
    """Declares how a raw table is historized."""

    name: str
    source: str
    unique_key: str = "id"
    updated_at: str = "updated_at"
    invalidate_hard_deletes: bool = True


SNAPSHOTS = {
    "scd_raw_listings": SnapshotConfig(name="scd_raw_listings", source="listings"),
    "scd_raw_hosts": SnapshotConfig(name="scd_raw_hosts", source="hosts"),
}


def snapshot_state(row: Dict[str, Any] | pd.Series) -> SnapshotState:
    """Return the lifecycle state of a single history row."""
    if bool(row["is_invalidated"]):
        return SnapshotState.INVALIDATED
    if pd.isna(row["valid_to"]):
        return SnapshotState.ACTIVE
    return SnapshotState.CLOSED


def snapshot_as_of(history: pd.DataFrame, as_of: datetime) -> pd.DataFrame:
    """
    Reconstruct the versions that were valid at a point in time.

    A version is valid at ``as_of`` when valid_from <= as_of and it was not yet
    closed or invalidated (valid_to is null or later than as_of).
    """
    as_of = pd.Timestamp(as_of)
    valid_from_ok = history["valid_from"] <= as_of
    not_ended = history["valid_to"].isna() | (history["valid_to"] > as_of)
    return history[valid_from_ok & not_ended].reset_index(drop=True)


class SnapshotBuilder:
    """Applies one source extract to a snapshot history table."""

    def __init__(self, config: SnapshotConfig, logger: Optional[logging.Logger] = None):
        self.config = config
        self.logger = logger or logging.getLogger(__name__)

    def _prepare_source(self, source: pd.DataFrame) -> Tuple[pd.DataFrame, pd.Series]:
        """Validate an extract; return the rows to compare and every key it carries."""
        key, updated_at = self.config.unique_key, self.config.updated_at
        for col in (key, updated_at):
            if col not in source.columns:
                raise SnapshotError(f"{self.config.name}: source has no '{col}' column")

        df = source.copy()
        df[updated_at] = safe_datetime_column(df[updated_at])

        missing_key = df[key].isna()
        if missing_key.any():
            raise SnapshotError(f"{self.config.name}: {int(missing_key.sum())} source rows have no {key}")

        duplicated = df[key].duplicated(keep=False)
        if duplicated.any():
            keys = sorted(df.loc[duplicated, key].unique().tolist())
            raise SnapshotError(f"{self.config.name}: duplicate {key} values in source extract: {keys[:10]}")

        missing_ts = df[updated_at].isna()
        if missing_ts.any():
            self.logger.warning(
                f"{self.config.name}: skipped {int(missing_ts.sum())} rows without a usable {updated_at}"
            )
            return df[~missing_ts], df[key]
        return df, df[key]

    def _new_versions(self, rows: pd.DataFrame) -> pd.DataFrame:
        key, updated_at = self.config.unique_key, self.config.updated_at
        versions = rows.copy()
        versions["scd_id"] = [
            generate_surrogate_key((k, ts)) for k, ts in zip(versions[key], versions[updated_at])
        ]
        versions["snapshot_updated_at"] = versions[updated_at]
        versions["valid_from"] = versions[updated_at]
        versions["valid_to"] = pd.Series(pd.NaT, index=versions.index, dtype="datetime64[ns]")
        versions["is_invalidated"] = False
        return versions

    def build(
        self,
        source: pd.DataFrame,
        history: Optional[pd.DataFrame] = None,
        snapshot_time: Optional[datetime] = None,
    ) -> Tuple[pd.DataFrame, Dict[str, int]]:
        """
        Apply a source extract to the existing history.

        Args:
            source: Current raw extract
            history: Existing snapshot table, or None on the first run
            snapshot_time: Timestamp recorded on invalidated versions (default: now, UTC)

        Returns:
            Tuple of (new history table, counts of inserted/closed/invalidated versions)

        Raises:
            SnapshotError: If the extract has missing or duplicate unique keys
        """
        key, updated_at = self.config.unique_key, self.config.updated_at
        snapshot_time = pd.Timestamp(snapshot_time or pd.Timestamp.now(tz="UTC").tz_localize(None))
        src, extract_keys = self._prepare_source(source)
        source_columns = list(src.columns)
        counts = {"inserted": 0, "closed": 0, "invalidated": 0, "unchanged": 0}

        if history is None or history.empty:
            table = self._new_versions(src)
            counts["inserted"] = len(table)
            self.logger.info(f"{self.config.name}: initial snapshot of {len(table)} rows")
            return table[source_columns + SNAPSHOT_META_COLUMNS].reset_index(drop=True), counts

        # Columns the extract no longer carries stay on existing versions
        data_columns = [c for c in history.columns if c not in SNAPSHOT_META_COLUMNS]
        data_columns += [c for c in source_columns if c not in data_columns]
        history = ensure_columns_exist(history.copy(), data_columns)
        history["valid_to"] = safe_datetime_column(history["valid_to"])
        active_mask = history["valid_to"].isna() & ~history["is_invalidated"].astype(bool)
        active = history.loc[active_mask, [key, "snapshot_updated_at"]]

        joined = src.merge(active, on=key, how="left", indicator=True)
        unseen = joined["_merge"] == "left_only"
        changed = (joined["_merge"] == "both") & (joined[updated_at] > joined["snapshot_updated_at"])
        counts["unchanged"] = int(((joined["_merge"] == "both") & ~changed).sum())

        # Close active versions superseded by a newer source row
        close_at = dict(zip(joined.loc[changed, key], joined.loc[changed, updated_at]))
        to_close = active_mask & history[key].isin(list(close_at))
        history.loc[to_close, "valid_to"] = history.loc[to_close, key].map(close_at).astype("datetime64[ns]")
        counts["closed"] = int(to_close.sum())

        # Invalidate active versions whose key vanished from the source
        if self.config.invalidate_hard_deletes:
            vanished = active_mask & ~history[key].isin(extract_keys)
            history.loc[vanished, "valid_to"] = snapshot_time
            history.loc[vanished, "is_invalidated"] = True
            counts["invalidated"] = int(vanished.sum())

        inserts = ensure_columns_exist(self._new_versions(joined.loc[unseen | changed, source_columns]), data_columns)
        counts["inserted"] = len(inserts)

        table = pd.concat(
            [history[data_columns + SNAPSHOT_META_COLUMNS], inserts[data_columns + SNAPSHOT_META_COLUMNS]],
            ignore_index=True,
        )
        table["is_invalidated"] = table["is_invalidated"].astype(bool)
        self.logger.info(
            f"{self.config.name}: {counts['inserted']} inserted, {counts['closed']} closed, "
            f"{counts['invalidated']} invalidated, {counts['unchanged']} unchanged"
        )
        return table, counts
