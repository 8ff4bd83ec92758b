"""Shared test fixtures for the plan pipeline tests."""

from __future__ import annotations

from collections.abc import Callable
from datetime import date
from typing import Any

import numpy as np
import pytest

from mm_plans.config import CacheConfig, PipelineConfig, SourceConfig, get_region
from mm_plans.metrics import classify_severity
from mm_plans.schema import CMSFailure, NCQARating, Plan

TODAY = date(2024, 6, 1)


@pytest.fixture
def config(tmp_path) -> PipelineConfig:
    """Offline configuration: a small sample source and a cache under tmp_path."""
    return PipelineConfig(
        seed=42,
        output_dir=tmp_path / "output",
        sample_states=["CA", "TX", "NY"],
        sources=[SourceConfig(name="sample", kind="sample")],
        cache=CacheConfig(directory=tmp_path / "cache"),
    )


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(42)


@pytest.fixture
def make_failure() -> Callable[..., CMSFailure]:
    """Factory for failures whose impact label matches their gap."""

    def _make(criterion: str = "Care Coordination", target: float = 4.0, actual: float = 3.5) -> CMSFailure:
        return CMSFailure(
            criterion=criterion,
            target=target,
            actual=actual,
            impact=classify_severity(target, actual),
        )

    return _make


@pytest.fixture
def make_plan() -> Callable[..., Plan]:
    """Factory for hand-built plans; region follows state unless overridden."""

    def _make(**overrides: Any) -> Plan:
        state = overrides.get("state", "CA")
        fields: dict[str, Any] = {
            "id": "plan-1",
            "name": "Test Plan",
            "type": "medicare",
            "state": state,
            "region": get_region(state),
            "organization": "Test Health",
            "star_rating": 4.0,
            "ncqa_rating": NCQARating(level="Commendable", score=80, year=2024),
            "members": 1000,
            "contract_id": "H0001",
            "source": "test",
            "last_updated": TODAY,
        }
        fields.update(overrides)
        return Plan(**fields)

    return _make


@pytest.fixture
def raw_records() -> list[dict[str, Any]]:
    """Raw records in three different source shapes."""
    return [
        {
            "Plan Name": "Golden Advantage",
            "Contract ID": "H1234",
            "Organization Name": "Kaiser Permanente",
            "State": "ca",
            "Overall Star Rating": "4.5",
            "Enrollment": "12,500",
        },
        {
            "plan_name": "Lone Star Medicaid",
            "plan_type": "Medicaid Managed Care",
            "org_name": "Molina Healthcare",
            "state": "TX",
            "overall_star_rating": "N/A",
            "enrollment": 40000,
            "last_updated": "2024-03-15",
        },
        {
            "title": "Empire Choice",
            "organization": "Empire Health",
            "state": "New York",
            "rating": 3.0,
        },
    ]
