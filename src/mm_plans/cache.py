"""Expiring key/value cache for the merged plan list.

``JsonFileStore`` is a file-per-key store with get/set/clear and a TTL
stored alongside each value. ``PlanCache`` layers plan serialization on
top: expired entries read as absent and are cleared, and a blob that
fails to parse is discarded so the caller falls back to a fresh fetch.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path

from pydantic import BaseModel, TypeAdapter, ValidationError, field_validator

from mm_plans.errors import CacheCorruption
from mm_plans.schema import Plan

logger = logging.getLogger(__name__)

_PLANS_ADAPTER = TypeAdapter(list[Plan])


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CacheEntry(BaseModel):
    stored_at: datetime
    expires_at: datetime
    value: str

    @field_validator("stored_at", "expires_at")
    @classmethod
    def _assume_utc(cls, v: datetime) -> datetime:
        # Naive timestamps are read as UTC.
        return v if v.tzinfo is not None else v.replace(tzinfo=timezone.utc)


class CacheStatus(BaseModel):
    status: str  # 'no_cache' | 'fresh' | 'expired'
    stored_at: datetime | None = None
    expires_at: datetime | None = None
    age_hours: float | None = None


class JsonFileStore:
    """File-backed key/value store with per-entry expiry."""

    def __init__(self, directory: Path, clock: Callable[[], datetime] = _utcnow) -> None:
        self.directory = Path(directory)
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    def _path(self, key: str) -> Path:
        return self.directory / f"{re.sub(r'[^A-Za-z0-9_.-]', '_', key)}.json"

    def entry(self, key: str) -> CacheEntry | None:
        """Raw entry regardless of expiry.

        Raises:
            CacheCorruption: If the stored envelope cannot be read.
        """
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return CacheEntry.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            raise CacheCorruption(f"Unreadable cache entry {key!r}: {e}") from e

    def get(self, key: str) -> str | None:
        """Return the stored blob, or None if absent or expired (expired entries are cleared)."""
        entry = self.entry(key)
        if entry is None:
            return None
        if self.now() >= entry.expires_at:
            logger.info("Cache entry %r expired at %s", key, entry.expires_at.isoformat())
            self.clear(key)
            return None
        return entry.value

    def set(self, key: str, blob: str, ttl: timedelta) -> None:
        now = self.now()
        entry = CacheEntry(stored_at=now, expires_at=now + ttl, value=blob)
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(entry.model_dump_json(), encoding="utf-8")

    def clear(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


class PlanCache:
    """Persist the merged plan list between sessions."""

    def __init__(self, store: JsonFileStore, key: str, ttl: timedelta) -> None:
        self.store = store
        self.key = key
        self.ttl = ttl

    def save(self, plans: list[Plan]) -> None:
        self.store.set(self.key, _PLANS_ADAPTER.dump_json(plans).decode("utf-8"), self.ttl)
        logger.info("Cached %d plans under %r (ttl=%s)", len(plans), self.key, self.ttl)

    def _decode(self, blob: str) -> list[Plan]:
        try:
            return _PLANS_ADAPTER.validate_json(blob)
        except ValidationError as e:
            raise CacheCorruption(f"Cached plans under {self.key!r} failed to parse: {e}") from e

    def load(self) -> list[Plan] | None:
        """Cached plans, or None on a miss, expiry, or corrupt entry."""
        try:
            blob = self.store.get(self.key)
            if blob is None:
                logger.info("Cache miss for %r", self.key)
                return None
            plans = self._decode(blob)
        except CacheCorruption as e:
            logger.warning("Discarding corrupt cache: %s", e)
            self.clear()
            return None
        logger.info("Loaded %d plans from cache", len(plans))
        return plans

    def clear(self) -> None:
        self.store.clear(self.key)

    def status(self) -> CacheStatus:
        try:
            entry = self.store.entry(self.key)
        except CacheCorruption:
            return CacheStatus(status="no_cache")
        if entry is None:
            return CacheStatus(status="no_cache")
        now = self.store.now()
        return CacheStatus(
            status="expired" if now >= entry.expires_at else "fresh",
            stored_at=entry.stored_at,
            expires_at=entry.expires_at,
            age_hours=round((now - entry.stored_at).total_seconds() / 3600, 2),
        )
