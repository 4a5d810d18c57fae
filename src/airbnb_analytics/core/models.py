"""
Model registry.

Models run in the declared order below; every model appears after the models
it depends on. Source models are ephemeral: they are computed in memory from
the raw extracts and never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Tuple


@dataclass(frozen=True)
class ModelSpec:
    name: str
    materialization: str
    depends_on: Tuple[str, ...] = ()
    description: str = ""


MODELS: List[ModelSpec] = [
    ModelSpec(
        "src_listings", "ephemeral", ("raw_listings",),
        "Raw listings with columns renamed to the model vocabulary.",
    ),
    ModelSpec(
        "src_hosts", "ephemeral", ("raw_hosts",),
        "Raw hosts with columns renamed to the model vocabulary.",
    ),
    ModelSpec(
        "src_reviews", "ephemeral", ("raw_reviews",),
        "Raw reviews with columns renamed to the model vocabulary.",
    ),
    ModelSpec(
        "dim_listings_cleansed", "table", ("src_listings",),
        "Listings with minimum_nights corrected to at least 1 and prices parsed to decimals.",
    ),
    ModelSpec(
        "dim_hosts_cleansed", "table", ("src_hosts",),
        "Hosts with missing names replaced by 'Anonymous' and a boolean superhost flag.",
    ),
    ModelSpec(
        "dim_listings_w_hosts", "table", ("dim_listings_cleansed", "dim_hosts_cleansed"),
        "Cleansed listings joined with their host's name and superhost flag.",
    ),
    ModelSpec(
        "fct_reviews", "incremental", ("src_reviews",),
        "Append-only reviews with non-empty text, keyed by a hashed review_id.",
    ),
    ModelSpec(
        "mart_fullmoon_reviews", "table", ("fct_reviews", "seed_full_moon_dates"),
        "Reviews flagged by whether they were written the day after a full moon.",
    ),
]

SEED_SPECS: List[ModelSpec] = [
    ModelSpec("seed_full_moon_dates", "seed", (), "Calendar of full-moon dates."),
]

SNAPSHOT_SPECS: List[ModelSpec] = [
    ModelSpec("scd_raw_listings", "snapshot", ("raw_listings",), "Change history of raw listings."),
    ModelSpec("scd_raw_hosts", "snapshot", ("raw_hosts",), "Change history of raw hosts."),
]

MODELS_BY_NAME: Dict[str, ModelSpec] = {m.name: m for m in SEED_SPECS + MODELS + SNAPSHOT_SPECS}

