"""Tests for the expiring plan cache."""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from mm_plans.cache import JsonFileStore, PlanCache
from mm_plans.errors import CacheCorruption
from mm_plans.schema import Plan

KEY = "medicare_medicaid_plans"


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(tmp_path: Path, clock: FakeClock) -> PlanCache:
    return PlanCache(JsonFileStore(tmp_path / "cache", clock=clock), key=KEY, ttl=timedelta(days=7))


class TestJsonFileStore:
    def test_set_get_clear(self, tmp_path: Path, clock: FakeClock) -> None:
        store = JsonFileStore(tmp_path, clock=clock)
        store.set("k", "value", timedelta(hours=1))
        assert store.get("k") == "value"
        store.clear("k")
        assert store.get("k") is None

    def test_expired_reads_absent_and_is_removed(self, tmp_path: Path, clock: FakeClock) -> None:
        store = JsonFileStore(tmp_path, clock=clock)
        store.set("k", "value", timedelta(hours=1))
        clock.advance(timedelta(hours=1))
        assert store.get("k") is None
        assert store.entry("k") is None

    def test_key_sanitized(self, tmp_path: Path, clock: FakeClock) -> None:
        store = JsonFileStore(tmp_path, clock=clock)
        store.set("../escape/key", "v", timedelta(hours=1))
        assert not (tmp_path.parent / "escape").exists()
        assert store.get("../escape/key") == "v"

    def test_corrupt_envelope(self, tmp_path: Path, clock: FakeClock) -> None:
        (tmp_path / "k.json").write_text("{not json")
        with pytest.raises(CacheCorruption):
            JsonFileStore(tmp_path, clock=clock).entry("k")

    def test_naive_timestamps_read_as_utc(self, tmp_path: Path, clock: FakeClock) -> None:
        (tmp_path / "k.json").write_text(
            '{"stored_at": "2024-06-01T11:00:00", "expires_at": "2024-06-01T13:00:00", "value": "v"}'
        )
        store = JsonFileStore(tmp_path, clock=clock)
        assert store.get("k") == "v"
        clock.advance(timedelta(hours=1))
        assert store.get("k") is None

    def test_clear_missing_is_noop(self, tmp_path: Path) -> None:
        JsonFileStore(tmp_path).clear("absent")


class TestPlanCache:
    def test_round_trip(self, cache: PlanCache, make_plan: Callable[..., Plan]) -> None:
        plans = [make_plan(id="1"), make_plan(id="2", name="Other", state="TX")]
        cache.save(plans)
        assert cache.load() == plans

    def test_miss(self, cache: PlanCache) -> None:
        assert cache.load() is None

    def test_expiry(self, cache: PlanCache, clock: FakeClock, make_plan: Callable[..., Plan]) -> None:
        cache.save([make_plan()])
        clock.advance(timedelta(days=6, hours=23))
        assert cache.load() is not None
        clock.advance(timedelta(hours=1))
        assert cache.load() is None

    def test_corrupt_blob_is_discarded(
        self, cache: PlanCache, make_plan: Callable[..., Plan]
    ) -> None:
        cache.store.set(KEY, '[{"id": "missing required fields"}]', timedelta(days=1))
        assert cache.load() is None
        assert cache.store.entry(KEY) is None

    def test_corrupt_envelope_is_discarded(self, cache: PlanCache) -> None:
        path = cache.store.directory / f"{KEY}.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("garbage")
        assert cache.load() is None
        assert not path.exists()

    def test_status(self, cache: PlanCache, clock: FakeClock, make_plan: Callable[..., Plan]) -> None:
        assert cache.status().status == "no_cache"
        cache.save([make_plan()])
        clock.advance(timedelta(hours=3))
        status = cache.status()
        assert status.status == "fresh"
        assert status.age_hours == 3.0
        assert status.expires_at == status.stored_at + timedelta(days=7)
        clock.advance(timedelta(days=7))
        assert cache.status().status == "expired"

    def test_clear(self, cache: PlanCache, make_plan: Callable[..., Plan]) -> None:
        cache.save([make_plan()])
        cache.clear()
        assert cache.status().status == "no_cache"
