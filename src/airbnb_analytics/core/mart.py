"""Business-facing marts built on top of the fact tables."""

from __future__ import annotations

import logging
from typing import List, Optional

import pandas as pd

from .incremental import FACT_REVIEW_COLUMNS

FULL_MOON = "full moon"
NOT_FULL_MOON = "not full moon"

MART_FULLMOON_COLUMNS: List[str] = FACT_REVIEW_COLUMNS + ["is_full_moon"]


class FullMoonMartBuilder:
    """
    Builds mart_fullmoon_reviews.

    A review is flagged "full moon" when it was written exactly one calendar
    day after a date in the full-moon calendar, "not full moon" otherwise.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def build(self, fct_reviews: pd.DataFrame, full_moon_dates: pd.DataFrame) -> pd.DataFrame:
        reviews = fct_reviews.copy()
        review_day = pd.to_datetime(reviews["review_date"]).dt.normalize()

        moon_days = pd.to_datetime(full_moon_dates["full_moon_date"]).dt.normalize()
        day_after_moon = moon_days.dropna() + pd.Timedelta(days=1)

        flagged = review_day.isin(day_after_moon)
        reviews["is_full_moon"] = flagged.map({True: FULL_MOON, False: NOT_FULL_MOON}).astype(object)

        self.logger.info(f"mart_fullmoon_reviews: {int(flagged.sum())} of {len(reviews)} reviews after a full moon")
        return reviews[MART_FULLMOON_COLUMNS].reset_index(drop=True)
