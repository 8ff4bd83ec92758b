"""Merger/aggregator.

Folds raw records from every source (in declaration order) through the
normalizer, keeps ids unique, sorts by (state, name), and computes summary
statistics over a plan set.
"""

from __future__ import annotations

import logging
import unicodedata
from collections.abc import Sequence
from datetime import date
from typing import Any

import numpy as np
import polars as pl
from pydantic import BaseModel, Field

from mm_plans.config import REGIONS
from mm_plans.errors import MalformedRecord
from mm_plans.metrics import classify_severity
from mm_plans.normalize import ensure_salvageable, normalize_record
from mm_plans.schema import PLAN_TYPES, SEVERITIES, Plan

logger = logging.getLogger(__name__)

TOP_N = 10
HIGH_PERFORMING_RATING = 4.0


class RankedCount(BaseModel):
    name: str
    count: int


class PlanStats(BaseModel):
    """Summary statistics over a plan set."""

    total_plans: int = 0
    count_by_type: dict[str, int] = Field(default_factory=lambda: dict.fromkeys(PLAN_TYPES, 0))
    count_by_region: dict[str, int] = Field(default_factory=dict)
    count_by_state: dict[str, int] = Field(default_factory=dict)
    distinct_states: int = 0
    distinct_organizations: int = 0
    total_members: int = 0
    avg_star_rating: float | str = Field(
        default="N/A", description="Mean rating of medicare plans, 2 decimals; 'N/A' if none"
    )
    high_performing_plans: int = Field(default=0, description="Plans rated >= 4.0")
    failure_counts: dict[str, int] = Field(default_factory=lambda: dict.fromkeys(SEVERITIES, 0))
    plans_with_failures: int = 0
    sources: list[str] = Field(default_factory=list)
    top_states: list[RankedCount] = Field(default_factory=list)
    top_organizations: list[RankedCount] = Field(default_factory=list)


class MergeResult(BaseModel):
    plans: list[Plan] = Field(default_factory=list)
    stats: PlanStats = Field(default_factory=PlanStats)
    skipped_records: int = 0


def collation_key(text: str) -> str:
    """Accent- and case-insensitive sort key, akin to a primary-strength locale compare."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c)).casefold()


def sort_plans(plans: Sequence[Plan]) -> list[Plan]:
    """Stable sort by state, then name."""
    return sorted(plans, key=lambda p: (collation_key(p.state), collation_key(p.name)))


def _ensure_unique_ids(plans: list[Plan]) -> list[Plan]:
    seen: set[str] = set()
    result: list[Plan] = []
    for plan in plans:
        plan_id = plan.id
        suffix = 1
        while plan_id in seen:
            suffix += 1
            plan_id = f"{plan.id}_{suffix}"
        seen.add(plan_id)
        result.append(plan if plan_id == plan.id else plan.model_copy(update={"id": plan_id}))
    return result


def _ranked(df: pl.DataFrame, column: str) -> list[RankedCount]:
    counts = (
        df.group_by(column)
        .agg(pl.len().alias("count"))
        .sort(["count", column], descending=[True, False])
    )
    return [RankedCount(name=row[column], count=row["count"]) for row in counts.iter_rows(named=True)]


def compute_stats(plans: Sequence[Plan]) -> PlanStats:
    """Compute summary statistics; an empty input yields zero/'N/A' defaults."""
    if not plans:
        return PlanStats()

    df = pl.DataFrame(
        {
            "type": [p.type for p in plans],
            "state": [p.state for p in plans],
            "region": [p.region for p in plans],
            "organization": [p.organization for p in plans],
            "members": [p.members for p in plans],
            "star_rating": [p.star_rating for p in plans],
            "rating_synthesized": [p.rating_synthesized for p in plans],
            "source": [p.source for p in plans],
        },
        schema={
            "type": pl.Utf8,
            "state": pl.Utf8,
            "region": pl.Utf8,
            "organization": pl.Utf8,
            "members": pl.Int64,
            "star_rating": pl.Float64,
            "rating_synthesized": pl.Boolean,
            "source": pl.Utf8,
        },
    )

    count_by_type = dict.fromkeys(PLAN_TYPES, 0)
    count_by_type.update({r.name: r.count for r in _ranked(df, "type")})

    by_region = {r.name: r.count for r in _ranked(df, "region")}
    count_by_region = {region: by_region.pop(region) for region in REGIONS if region in by_region}
    count_by_region.update(by_region)

    by_state = _ranked(df, "state")

    # Only supplied ratings count toward the average.
    rated_medicare = df.filter(
        (pl.col("type") == "medicare") & ~pl.col("rating_synthesized")
    )["star_rating"]
    avg_star_rating: float | str = "N/A"
    if rated_medicare.len() > 0:
        avg_star_rating = round(float(rated_medicare.mean()), 2)  # type: ignore[arg-type]

    failure_counts = dict.fromkeys(SEVERITIES, 0)
    for plan in plans:
        for failure in plan.cms_failures:
            failure_counts[classify_severity(failure.target, failure.actual)] += 1

    return PlanStats(
        total_plans=df.height,
        count_by_type=count_by_type,
        count_by_region=count_by_region,
        count_by_state={r.name: r.count for r in by_state},
        distinct_states=df["state"].n_unique(),
        distinct_organizations=df["organization"].n_unique(),
        total_members=int(df["members"].sum()),
        avg_star_rating=avg_star_rating,
        high_performing_plans=df.filter(pl.col("star_rating") >= HIGH_PERFORMING_RATING).height,
        failure_counts=failure_counts,
        plans_with_failures=sum(1 for p in plans if p.cms_failures),
        sources=df["source"].unique(maintain_order=True).to_list(),
        top_states=by_state[:TOP_N],
        top_organizations=_ranked(df, "organization")[:TOP_N],
    )


def merge(
    source_lists: Sequence[tuple[str, Sequence[Any]]],
    rng: np.random.Generator,
    today: date | None = None,
) -> MergeResult:
    """Normalize and combine raw records from every source.

    Args:
        source_lists: (adapter name, raw records) pairs in declaration order.
        rng: Random generator passed to the normalizer.
        today: Fallback update date for records without one.

    Returns:
        MergeResult with plans sorted by (state, name) and stats over them.
    """
    plans: list[Plan] = []
    skipped = 0
    for source_name, records in source_lists:
        logger.info("Merging %d records from %s", len(records), source_name)
        for index, raw in enumerate(records):
            try:
                record = ensure_salvageable(raw, source_name)
            except MalformedRecord as e:
                skipped += 1
                logger.warning("Skipping record %d from %s: %s", index, source_name, e)
                continue
            plans.append(normalize_record(record, source_name, index, rng, today=today))

    plans = sort_plans(_ensure_unique_ids(plans))
    return MergeResult(plans=plans, stats=compute_stats(plans), skipped_records=skipped)
