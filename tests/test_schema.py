"""Tests for schema module."""

from collections.abc import Callable
from datetime import date

import pytest
from pydantic import ValidationError

from mm_plans.schema import (
    EXPORT_COLUMNS,
    NOT_AVAILABLE,
    CMSFailure,
    NCQARating,
    Plan,
)


class TestPlan:
    def test_defaults(self) -> None:
        plan = Plan(
            id="p1",
            name="Plan",
            type="medicare",
            region="West",
            star_rating=3.5,
            ncqa_rating=NCQARating(level="Accredited", score=60, year=2024),
            source="test",
            last_updated=date(2024, 1, 1),
        )
        assert plan.state == "Unknown"
        assert plan.organization == "Unknown Organization"
        assert plan.contract_id == NOT_AVAILABLE
        assert plan.members == 0
        assert plan.cms_failures == []

    def test_frozen(self, make_plan: Callable[..., Plan]) -> None:
        plan = make_plan()
        with pytest.raises(ValidationError):
            plan.name = "Changed"  # type: ignore[misc]

    def test_model_copy_leaves_original(self, make_plan: Callable[..., Plan]) -> None:
        plan = make_plan(id="a")
        copy = plan.model_copy(update={"id": "b"})
        assert (plan.id, copy.id) == ("a", "b")

    @pytest.mark.parametrize("rating", [0.5, 5.5])
    def test_rating_range(self, make_plan: Callable[..., Plan], rating: float) -> None:
        with pytest.raises(ValidationError):
            make_plan(star_rating=rating)

    def test_negative_members_rejected(self, make_plan: Callable[..., Plan]) -> None:
        with pytest.raises(ValidationError):
            make_plan(members=-1)


class TestNestedModels:
    def test_ncqa_score_range(self) -> None:
        with pytest.raises(ValidationError):
            NCQARating(level="Denied", score=0, year=2024)

    def test_failure_scores_on_scale(self) -> None:
        with pytest.raises(ValidationError):
            CMSFailure(criterion="Care Coordination", target=5.3, actual=4.0, impact="High")


class TestExportColumns:
    def test_unique(self) -> None:
        assert len(EXPORT_COLUMNS) == len(set(EXPORT_COLUMNS))

    def test_identity_first(self) -> None:
        assert EXPORT_COLUMNS[:3] == ["id", "name", "type"]
