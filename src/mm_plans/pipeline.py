"""End-to-end plan pipeline.

cache lookup → concurrent fetch from every source → normalize + merge →
dedupe → stats. Every stage takes its full input and returns a new
output. A run always produces a displayable dataset: when every source
comes back empty the generated sample catalog is used instead.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, timedelta
from typing import Any

import httpx
import numpy as np
from pydantic import BaseModel, Field

from mm_plans.cache import JsonFileStore, PlanCache
from mm_plans.config import PipelineConfig
from mm_plans.dedupe import DuplicateGroup, dedupe
from mm_plans.merge import PlanStats, compute_stats, merge
from mm_plans.schema import Plan
from mm_plans.sources import (
    CmsApiAdapter,
    FetchOptions,
    JsonFileAdapter,
    SampleAdapter,
    SourceAdapter,
    SourceResult,
    fetch_all,
)

logger = logging.getLogger(__name__)

FALLBACK_SOURCE_NAME = "sample_fallback"


class PipelineResult(BaseModel):
    """Everything the presentation layer needs from one pipeline run."""

    plans: list[Plan] = Field(default_factory=list)
    stats: PlanStats = Field(default_factory=PlanStats)
    removed_duplicates: int = 0
    duplicate_groups: list[DuplicateGroup] = Field(default_factory=list)
    skipped_records: int = 0
    source_results: list[SourceResult] = Field(default_factory=list)
    from_cache: bool = False
    used_fallback: bool = Field(
        default=False, description="True when every source was empty and sample data was used"
    )


def build_adapters(
    config: PipelineConfig,
    rng: np.random.Generator,
    transport: httpx.AsyncBaseTransport | None = None,
    today: date | None = None,
) -> list[SourceAdapter]:
    """Instantiate adapters for every enabled source, in declaration order."""
    adapters: list[SourceAdapter] = []
    for source in config.sources:
        if not source.enabled:
            continue
        if source.kind == "cms_api":
            adapters.append(
                CmsApiAdapter(
                    source.name,
                    url=source.url,
                    dataset_ids=source.dataset_ids,
                    page_size=source.page_size,
                    max_pages=source.max_pages,
                    transport=transport,
                )
            )
        elif source.kind == "sample":
            adapters.append(SampleAdapter(source.name, rng, config.sample_states, today=today))
        elif source.kind == "json_file":
            if source.path is None:
                raise ValueError(f"Source {source.name!r} of kind 'json_file' needs a path")
            adapters.append(JsonFileAdapter(source.name, source.path))
        else:
            raise ValueError(f"Unknown source kind {source.kind!r} for source {source.name!r}")
    return adapters


def build_cache(config: PipelineConfig) -> PlanCache | None:
    if not config.cache.enabled:
        return None
    return PlanCache(
        JsonFileStore(config.cache.directory),
        key=config.cache.key,
        ttl=timedelta(days=config.cache.ttl_days),
    )


def _merge_and_dedupe(
    source_lists: list[tuple[str, list[Any]]],
    rng: np.random.Generator,
    today: date | None,
) -> tuple[list[Plan], int, list[DuplicateGroup], int]:
    merged = merge(source_lists, rng, today=today)
    deduped = dedupe(merged.plans)
    return deduped.unique_plans, deduped.removed_count, deduped.groups, merged.skipped_records


async def run_pipeline_async(
    config: PipelineConfig,
    adapters: list[SourceAdapter] | None = None,
    cache: PlanCache | None = None,
    refresh: bool = False,
    today: date | None = None,
) -> PipelineResult:
    """Run the full pipeline.

    Args:
        config: Pipeline configuration.
        adapters: Adapters to fetch from; built from config when omitted.
        cache: Plan cache; no caching when omitted.
        refresh: Skip the cache read and fetch fresh data.
        today: Fallback update date for records without one.

    Returns:
        PipelineResult with deduplicated, sorted plans and their stats.
    """
    rng = np.random.default_rng(config.seed)

    if cache is not None and not refresh:
        cached = cache.load()
        if cached:
            return PipelineResult(plans=cached, stats=compute_stats(cached), from_cache=True)

    if adapters is None:
        adapters = build_adapters(config, rng, today=today)

    results = await fetch_all(
        adapters, FetchOptions(timeout_seconds=config.fetch_timeout_seconds)
    )
    plans, removed, groups, skipped = _merge_and_dedupe(
        [(r.name, r.records) for r in results], rng, today
    )

    used_fallback = False
    if not plans:
        logger.warning("All sources returned no plans; falling back to generated sample data")
        fallback = SampleAdapter(FALLBACK_SOURCE_NAME, rng, config.sample_states, today=today)
        plans, removed, groups, skipped = _merge_and_dedupe(
            [(fallback.name, fallback.generate())], rng, today
        )
        used_fallback = True
    elif cache is not None:
        try:
            cache.save(plans)
        except OSError as e:
            logger.warning("Could not write plan cache: %s", e)

    stats = compute_stats(plans)
    logger.info(
        "Pipeline produced %d plans (%d duplicates removed, %d records skipped)",
        stats.total_plans,
        removed,
        skipped,
    )
    return PipelineResult(
        plans=plans,
        stats=stats,
        removed_duplicates=removed,
        duplicate_groups=groups,
        skipped_records=skipped,
        source_results=results,
        used_fallback=used_fallback,
    )


def run_pipeline(
    config: PipelineConfig,
    adapters: list[SourceAdapter] | None = None,
    cache: PlanCache | None = None,
    refresh: bool = False,
    today: date | None = None,
) -> PipelineResult:
    """Synchronous wrapper around run_pipeline_async."""
    return asyncio.run(
        run_pipeline_async(config, adapters=adapters, cache=cache, refresh=refresh, today=today)
    )
