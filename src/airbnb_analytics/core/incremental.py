"""
Incremental fact loading for reviews.

fct_reviews is append-only. The first run (or a full refresh) loads every
review with non-empty text. Later runs only load reviews dated after the
latest review_date already in the table (the watermark), or, when a backfill
window is given, reviews dated inside that window. Every review gets a
review_id hashed from its business columns, and candidates whose review_id is
already loaded are dropped, so overlapping re-runs never duplicate rows.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import List, Optional

import pandas as pd

from .dimensions import generate_surrogate_key
from .errors import IncrementalSchemaError
from .type_safety import safe_datetime_column

REVIEW_KEY_COLUMNS = ("listing_id", "review_date", "reviewer_name", "review_text")

FACT_REVIEW_COLUMNS: List[str] = [
    "review_id", "listing_id", "review_date", "reviewer_name", "review_text", "review_sentiment",
]


@dataclass
class IncrementalLoadResult:
    """Outcome of one fct_reviews load."""

    table: pd.DataFrame
    new_rows: pd.DataFrame
    mode: str
    watermark: Optional[pd.Timestamp] = None
    excluded_null_watermark: int = 0
    excluded_duplicates: int = 0


class FactReviewLoader:
    """Builds and appends fct_reviews batches from src_reviews."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def retain(self, src_reviews: pd.DataFrame) -> pd.DataFrame:
        """Keep reviews whose text is non-empty."""
        text = src_reviews["review_text"]
        keep = text.notna() & text.astype(str).str.strip().ne("")
        dropped = int((~keep).sum())
        if dropped:
            self.logger.info(f"Dropped {dropped} reviews without text")
        return src_reviews[keep]

    def with_review_ids(self, reviews: pd.DataFrame) -> pd.DataFrame:
        df = reviews.copy()
        df["review_date"] = safe_datetime_column(df["review_date"])
        df["review_id"] = [
            generate_surrogate_key(row)
            for row in df[list(REVIEW_KEY_COLUMNS)].itertuples(index=False, name=None)
        ]
        return df[FACT_REVIEW_COLUMNS]

    @staticmethod
    def current_watermark(existing: Optional[pd.DataFrame]) -> Optional[pd.Timestamp]:
        if existing is None or existing.empty:
            return None
        watermark = existing["review_date"].max()
        return None if pd.isna(watermark) else pd.Timestamp(watermark)

    def load(
        self,
        src_reviews: pd.DataFrame,
        existing: Optional[pd.DataFrame] = None,
        full_refresh: bool = False,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> IncrementalLoadResult:
        """
        Compute the next state of fct_reviews.

        Args:
            src_reviews: Renamed source reviews
            existing: Current fct_reviews table, or None if it does not exist
            full_refresh: Rebuild from scratch, ignoring the existing table
            start_date: Inclusive lower bound of a backfill window
            end_date: Exclusive upper bound of a backfill window

        Returns:
            IncrementalLoadResult with the full table and the appended rows

        Raises:
            IncrementalSchemaError: If the batch columns differ from the existing table
        """
        candidates = self.with_review_ids(self.retain(src_reviews))

        if full_refresh or existing is None or existing.empty:
            mode = "full_refresh" if full_refresh else "initial"
            batch, duplicates = self._drop_duplicates(candidates, None)
            self.logger.info(f"fct_reviews {mode} load: {len(batch)} reviews")
            return IncrementalLoadResult(
                table=batch.reset_index(drop=True),
                new_rows=batch,
                mode=mode,
                watermark=self.current_watermark(batch),
                excluded_duplicates=duplicates,
            )

        if list(existing.columns) != FACT_REVIEW_COLUMNS:
            raise IncrementalSchemaError(
                f"fct_reviews columns {list(existing.columns)} do not match the model "
                f"columns {FACT_REVIEW_COLUMNS}; run with a full refresh"
            )

        null_dates = candidates["review_date"].isna()
        if null_dates.any():
            self.logger.warning(
                f"Excluded {int(null_dates.sum())} reviews with missing or unparseable review_date"
            )
        dated = candidates[~null_dates]

        watermark = self.current_watermark(existing)
        if start_date is not None and end_date is not None:
            mode = "backfill"
            lower, upper = pd.Timestamp(start_date), pd.Timestamp(end_date)
            window = dated[(dated["review_date"] >= lower) & (dated["review_date"] < upper)]
            self.logger.info(f"Backfill window [{lower.date()}, {upper.date()}): {len(window)} candidates")
        else:
            mode = "incremental"
            window = dated if watermark is None else dated[dated["review_date"] > watermark]
            self.logger.info(f"Watermark {watermark}: {len(window)} candidates")

        batch, duplicates = self._drop_duplicates(window, existing)
        table = existing if batch.empty else pd.concat([existing, batch], ignore_index=True)

        return IncrementalLoadResult(
            table=table,
            new_rows=batch,
            mode=mode,
            watermark=self.current_watermark(table),
            excluded_null_watermark=int(null_dates.sum()),
            excluded_duplicates=duplicates,
        )

    def _drop_duplicates(self, batch: pd.DataFrame, existing: Optional[pd.DataFrame]):
        before = len(batch)
        batch = batch.drop_duplicates(subset=["review_id"])
        if existing is not None and not existing.empty:
            batch = batch[~batch["review_id"].isin(existing["review_id"])]
        duplicates = before - len(batch)
        if duplicates:
            self.logger.info(f"Skipped {duplicates} reviews already loaded or repeated in the batch")
        return batch, duplicates
