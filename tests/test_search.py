"""Tests for the filter/search engine and query interface."""

from collections.abc import Callable

import pytest

from mm_plans.schema import CMSFailure, Plan
from mm_plans.search import PlanFilter, filter_plans, matches, matches_failure_severity, query_plans


@pytest.fixture
def plans(
    make_plan: Callable[..., Plan], make_failure: Callable[..., CMSFailure]
) -> list[Plan]:
    return [
        make_plan(id="1", name="Golden Advantage", type="medicare", state="CA", star_rating=4.5,
                  organization="Kaiser Permanente"),
        make_plan(id="2", name="Lone Star Care", type="medicaid", state="TX", star_rating=3.0,
                  organization="Molina Healthcare",
                  cms_failures=[make_failure(target=4.0, actual=2.5)]),
        make_plan(id="3", name="Empire Basic", type="medicare", state="NY", star_rating=2.5,
                  organization="Empire Health",
                  cms_failures=[make_failure(target=3.0, actual=2.6), make_failure(target=3.0, actual=2.9)]),
        make_plan(id="4", name="Pacific Select", type="medicare", state="CA", star_rating=3.5,
                  organization="Blue Shield of California",
                  cms_failures=[make_failure(target=4.0, actual=3.4)]),
    ]


def ids(plans: list[Plan]) -> list[str]:
    return [p.id for p in plans]


class TestFilterPlans:
    def test_all_sentinels_match_everything(self, plans: list[Plan]) -> None:
        assert ids(filter_plans(plans)) == ["1", "2", "3", "4"]
        assert ids(filter_plans(plans, PlanFilter(type="all", state="ALL", query="  "))) == ["1", "2", "3", "4"]

    def test_type(self, plans: list[Plan]) -> None:
        assert ids(filter_plans(plans, PlanFilter(type="medicaid"))) == ["2"]
        assert ids(filter_plans(plans, PlanFilter(type="Medicare"))) == ["1", "3", "4"]

    def test_min_rating_inclusive(self, plans: list[Plan]) -> None:
        assert ids(filter_plans(plans, PlanFilter(min_star_rating=3.5))) == ["1", "4"]

    def test_state_and_region(self, plans: list[Plan]) -> None:
        assert ids(filter_plans(plans, PlanFilter(state="CA"))) == ["1", "4"]
        assert ids(filter_plans(plans, PlanFilter(region="Southwest"))) == ["2"]

    def test_failure_severity(self, plans: list[Plan]) -> None:
        assert ids(filter_plans(plans, PlanFilter(failure_severity="none"))) == ["1"]
        assert ids(filter_plans(plans, PlanFilter(failure_severity="any"))) == ["2", "3", "4"]
        assert ids(filter_plans(plans, PlanFilter(failure_severity="critical"))) == ["2"]
        assert ids(filter_plans(plans, PlanFilter(failure_severity="Medium"))) == ["3"]
        assert ids(filter_plans(plans, PlanFilter(failure_severity="high"))) == ["4"]
        assert ids(filter_plans(plans, PlanFilter(failure_severity="low"))) == ["3"]

    def test_all_severity_matches_directly(self, plans: list[Plan]) -> None:
        assert all(matches_failure_severity(p, "all") for p in plans)
        assert all(matches_failure_severity(p, "ALL") for p in plans)

    def test_unknown_severity_rejected(self, plans: list[Plan]) -> None:
        with pytest.raises(ValueError, match="Unknown failure severity"):
            filter_plans(plans, PlanFilter(failure_severity="severe"))

    def test_query_searches_fields(self, plans: list[Plan]) -> None:
        assert ids(filter_plans(plans, PlanFilter(query="kaiser"))) == ["1"]
        assert ids(filter_plans(plans, PlanFilter(query="northeast"))) == ["3"]
        assert ids(filter_plans(plans, PlanFilter(query="MEDICAID"))) == ["2"]
        assert ids(filter_plans(plans, PlanFilter(query="star"))) == ["2"]

    def test_and_composition_is_intersection(self, plans: list[Plan]) -> None:
        a = PlanFilter(state="CA")
        b = PlanFilter(failure_severity="any")
        both = PlanFilter(state="CA", failure_severity="any")
        expected = [p for p in filter_plans(plans, a) if p in filter_plans(plans, b)]
        assert filter_plans(plans, both) == expected
        assert ids(expected) == ["4"]

    def test_preserves_order_and_input(self, plans: list[Plan]) -> None:
        snapshot = list(plans)
        reversed_plans = list(reversed(plans))
        assert ids(filter_plans(reversed_plans, PlanFilter(type="medicare"))) == ["4", "3", "1"]
        assert plans == snapshot

    def test_matches_single_plan(self, plans: list[Plan]) -> None:
        assert matches(plans[0], PlanFilter(state="CA", min_star_rating=4.0))
        assert not matches(plans[0], PlanFilter(state="TX"))


class TestQueryPlans:
    def test_stats_cover_filtered_subset(self, plans: list[Plan]) -> None:
        result = query_plans(plans, PlanFilter(state="CA"))
        assert ids(result.plans) == ["1", "4"]
        assert result.stats.total_plans == 2
        assert result.stats.avg_star_rating == 4.0

    def test_no_matches(self, plans: list[Plan]) -> None:
        result = query_plans(plans, PlanFilter(query="nothing matches this"))
        assert result.plans == []
        assert result.stats.total_plans == 0
        assert result.stats.avg_star_rating == "N/A"
