"""Tests for mart_fullmoon_reviews."""

from datetime import date

import pandas as pd
import pytest

from airbnb_analytics.core.incremental import FactReviewLoader
from airbnb_analytics.core.mart import FULL_MOON, MART_FULLMOON_COLUMNS, NOT_FULL_MOON, FullMoonMartBuilder


@pytest.fixture
def moon_calendar() -> pd.DataFrame:
    return pd.DataFrame({"full_moon_date": [date(2024, 1, 25), date(2024, 2, 24)]})


def _reviews(*dates) -> pd.DataFrame:
    src = pd.DataFrame({
        "listing_id": pd.array([1] * len(dates), dtype="Int64"),
        "review_date": pd.to_datetime(list(dates)),
        "reviewer_name": [f"r{i}" for i in range(len(dates))],
        "review_text": ["text"] * len(dates),
        "review_sentiment": ["positive"] * len(dates),
    })
    return FactReviewLoader().load(src).table


class TestFullMoonMart:
    def test_day_after_full_moon_is_flagged(self, moon_calendar):
        mart = FullMoonMartBuilder().build(_reviews("2024-01-26"), moon_calendar)

        assert mart["is_full_moon"].tolist() == [FULL_MOON]

    def test_full_moon_day_itself_is_not_flagged(self, moon_calendar):
        mart = FullMoonMartBuilder().build(_reviews("2024-01-25"), moon_calendar)

        assert mart["is_full_moon"].tolist() == [NOT_FULL_MOON]

    def test_time_of_day_is_ignored(self, moon_calendar):
        mart = FullMoonMartBuilder().build(_reviews("2024-02-25 23:59:00"), moon_calendar)

        assert mart["is_full_moon"].tolist() == [FULL_MOON]

    def test_keeps_every_review_and_columns(self, moon_calendar):
        fct = _reviews("2024-01-26", "2024-01-27", "2024-02-25")

        mart = FullMoonMartBuilder().build(fct, moon_calendar)

        assert list(mart.columns) == MART_FULLMOON_COLUMNS
        assert len(mart) == len(fct)
        assert mart["review_id"].tolist() == fct["review_id"].tolist()
        assert mart["is_full_moon"].tolist() == [FULL_MOON, NOT_FULL_MOON, FULL_MOON]

    def test_null_review_date_is_not_full_moon(self, moon_calendar):
        fct = _reviews("2024-01-26", None)

        mart = FullMoonMartBuilder().build(fct, moon_calendar)

        assert mart["is_full_moon"].tolist() == [FULL_MOON, NOT_FULL_MOON]

    def test_deterministic(self, moon_calendar):
        fct = _reviews("2024-01-26", "2024-03-01")

        first = FullMoonMartBuilder().build(fct, moon_calendar)
        second = FullMoonMartBuilder().build(fct, moon_calendar)

        pd.testing.assert_frame_equal(first, second)
