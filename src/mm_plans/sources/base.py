"""Source adapter contract and concurrent fan-out.

Every adapter exposes ``fetch(options)`` which never raises: internal
failures surface as SourceUnavailable inside ``_fetch`` and are mapped to an
empty list plus a logged warning. ``fetch_result`` returns the same records
wrapped in a SourceResult that keeps the failure reason. ``fetch_all`` runs
adapters concurrently, bounds each with a timeout, and returns results in
declaration order.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, Field

from mm_plans.errors import SourceUnavailable

logger = logging.getLogger(__name__)

RECORD_CONTAINER_KEYS = ("results", "data", "records", "plans", "items")


class FetchOptions(BaseModel):
    """Per-run fetch settings shared by all adapters."""

    limit: int | None = Field(default=None, ge=1, description="Cap on records per adapter")
    timeout_seconds: float = Field(default=15.0, gt=0, description="Wait before giving up")


class SourceResult(BaseModel):
    """One adapter's settled outcome."""

    name: str
    records: list[Any] = Field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def extract_records(payload: Any) -> list[Any]:
    """Pull the record list out of a bare list or a wrapping object.

    Raises:
        SourceUnavailable: If no record list can be found.
    """
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in RECORD_CONTAINER_KEYS:
            value = payload.get(key)
            if isinstance(value, list):
                return value
    raise SourceUnavailable(f"Unexpected payload shape: {type(payload).__name__}")


class SourceAdapter(ABC):
    """Base class for a single data origin."""

    def __init__(self, name: str) -> None:
        self.name = name

    @abstractmethod
    async def _fetch(self, options: FetchOptions) -> list[Any]:
        """Fetch raw records, raising SourceUnavailable on failure."""

    async def fetch_result(self, options: FetchOptions | None = None) -> SourceResult:
        """Fetch raw records, keeping the failure reason if the source is unavailable."""
        options = options or FetchOptions()
        try:
            records = await self._fetch(options)
        except SourceUnavailable as e:
            logger.warning("Source %s unavailable: %s", self.name, e)
            return SourceResult(name=self.name, error=str(e) or "unavailable")
        if options.limit is not None:
            records = records[: options.limit]
        logger.info("Fetched %d records from %s", len(records), self.name)
        return SourceResult(name=self.name, records=records)

    async def fetch(self, options: FetchOptions | None = None) -> list[Any]:
        """Fetch raw records; returns an empty list if the source is unavailable."""
        return (await self.fetch_result(options)).records


async def fetch_all(
    adapters: Sequence[SourceAdapter],
    options: FetchOptions | None = None,
) -> list[SourceResult]:
    """Run all adapters concurrently and wait for every one to settle.

    A timed-out, unavailable or crashing adapter yields an empty result
    carrying its error, without affecting the others.
    """
    options = options or FetchOptions()
    outcomes = await asyncio.gather(
        *(asyncio.wait_for(a.fetch_result(options), timeout=options.timeout_seconds) for a in adapters),
        return_exceptions=True,
    )

    results: list[SourceResult] = []
    for adapter, outcome in zip(adapters, outcomes):
        if isinstance(outcome, asyncio.TimeoutError):
            logger.warning(
                "Source %s timed out after %.1fs", adapter.name, options.timeout_seconds
            )
            results.append(SourceResult(name=adapter.name, error="timeout"))
        elif isinstance(outcome, Exception):
            logger.error("Source %s failed: %s", adapter.name, outcome)
            results.append(SourceResult(name=adapter.name, error=str(outcome) or type(outcome).__name__))
        elif isinstance(outcome, BaseException):
            raise outcome
        else:
            results.append(outcome)
    return results
