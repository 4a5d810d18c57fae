"""
Pytest configuration and fixtures for test suite.

This module provides shared fixtures used across multiple test files.
"""

import json
import sys
from pathlib import Path

import pandas as pd
import pytest

# Add the src directory to the Python path
_project_root = Path(__file__).parent.parent
sys.path.insert(0, str(_project_root / "src"))

from airbnb_analytics.core.project_config import ProjectConfig  # noqa: E402


REPO_CONFIG_DIR = _project_root / "config"


def write_csv(path: Path, header: list[str], rows: list[list]) -> Path:
    """Write a small CSV file with every value rendered as text."""
    path.parent.mkdir(parents=True, exist_ok=True)
    pd.DataFrame(rows, columns=header).to_csv(path, index=False)
    return path


LISTINGS_HEADER = [
    "id", "listing_url", "name", "room_type", "minimum_nights",
    "host_id", "price", "created_at", "updated_at",
]
HOSTS_HEADER = ["id", "name", "is_superhost", "created_at", "updated_at"]
REVIEWS_HEADER = ["listing_id", "date", "reviewer_name", "comments", "sentiment"]


# =============================================================================
# SAMPLE DATA FIXTURES
# =============================================================================


@pytest.fixture
def sample_listings_rows() -> list[list]:
    return [
        [1, "https://airbnb.com/rooms/1", "Loft", "Entire home/apt", 2, 10, "$120.00",
         "2023-01-01 09:00:00", "2023-06-01 09:00:00"],
        [2, "https://airbnb.com/rooms/2", "Room", "Private room", 0, 11, "$45.00",
         "2023-02-01 09:00:00", "2023-07-01 09:00:00"],
        [3, "https://airbnb.com/rooms/3", "Dorm", "Shared room", -3, 10, "$1,050.50",
         "2023-03-01 09:00:00", "2023-08-01 09:00:00"],
    ]


@pytest.fixture
def sample_hosts_rows() -> list[list]:
    return [
        [10, "Anna", "t", "2022-01-01 08:00:00", "2023-09-01 08:00:00"],
        [11, "", "f", "2022-02-01 08:00:00", "2023-01-01 08:00:00"],
    ]


@pytest.fixture
def sample_reviews_rows() -> list[list]:
    return [
        [1, "2024-01-26", "Tom", "Great stay", "positive"],
        [1, "2024-01-25", "Sue", "Fine", "neutral"],
        [2, "2024-02-10", "Raj", "Noisy street", "negative"],
        [3, "2024-03-01", "Eve", "", "neutral"],
    ]


@pytest.fixture
def raw_dir(tmp_path, sample_listings_rows, sample_hosts_rows, sample_reviews_rows) -> Path:
    """Raw CSV directory holding the three source extracts."""
    raw = tmp_path / "raw"
    write_csv(raw / "raw_listings.csv", LISTINGS_HEADER, sample_listings_rows)
    write_csv(raw / "raw_hosts.csv", HOSTS_HEADER, sample_hosts_rows)
    write_csv(raw / "raw_reviews.csv", REVIEWS_HEADER, sample_reviews_rows)
    return raw


@pytest.fixture
def seed_dir(tmp_path) -> Path:
    seeds = tmp_path / "seeds"
    write_csv(seeds / "seed_full_moon_dates.csv", ["full_moon_date"], [["2024-01-25"], ["2024-02-24"]])
    return seeds


@pytest.fixture
def src_reviews() -> pd.DataFrame:
    """Renamed source reviews, as produced by the source adapter."""
    return pd.DataFrame({
        "listing_id": pd.array([1, 1, 2, 3], dtype="Int64"),
        "review_date": pd.to_datetime(["2024-01-10", "2024-01-20", "2024-02-01", "2024-02-05"]),
        "reviewer_name": ["Tom", "Sue", "Raj", "Eve"],
        "review_text": ["Great", "Fine", "Noisy", ""],
        "review_sentiment": ["positive", "neutral", "negative", "neutral"],
    })


# =============================================================================
# CONFIG FIXTURES
# =============================================================================


@pytest.fixture
def project_payload() -> dict:
    return json.loads((REPO_CONFIG_DIR / "project.json").read_text())


@pytest.fixture
def contracts_payload() -> dict:
    return json.loads((REPO_CONFIG_DIR / "contracts.json").read_text())


@pytest.fixture
def project_config(project_payload, contracts_payload) -> ProjectConfig:
    return ProjectConfig.from_payloads(project_payload, contracts_payload)


@pytest.fixture
def temp_config_dir(tmp_path, project_payload, contracts_payload) -> Path:
    """Create a temporary config directory with valid config files."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "project.json").write_text(json.dumps(project_payload))
    (config_dir / "contracts.json").write_text(json.dumps(contracts_payload))
    return config_dir


@pytest.fixture
def pipeline(tmp_path, raw_dir, seed_dir, project_config):
    """Pipeline wired to temporary raw, seed and warehouse directories."""
    from airbnb_analytics.core.pipeline import AnalyticsPipeline

    return AnalyticsPipeline(
        config=project_config,
        raw_directory=raw_dir,
        warehouse_directory=tmp_path / "warehouse",
        seed_directory=seed_dir,
        docs_directory=tmp_path / "docs",
    )
