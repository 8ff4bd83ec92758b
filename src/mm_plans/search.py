"""Filter/search engine and the query interface exposed to presentation code.

Predicates are independent and combined with AND. Any predicate left at
its "all"/empty sentinel matches everything. Filtering never mutates the
input list and preserves its relative order.
"""

from __future__ import annotations

from collections.abc import Sequence

from pydantic import BaseModel, Field

from mm_plans.merge import PlanStats, compute_stats
from mm_plans.metrics import classify_severity
from mm_plans.schema import Plan

ALL = "all"
FAILURE_SEVERITY_OPTIONS = ["all", "none", "any", "critical", "high", "medium", "low"]
SEARCH_FIELDS = ("name", "state", "region", "type", "organization")


class PlanFilter(BaseModel):
    """Predicate set for plan filtering."""

    type: str = Field(default=ALL, description="'all' | 'medicare' | 'medicaid'")
    min_star_rating: float | None = Field(default=None, description="Keep ratings >= this")
    state: str = Field(default=ALL, description="Exact state match")
    region: str = Field(default=ALL, description="Exact region match")
    failure_severity: str = Field(
        default=ALL, description="'all' | 'none' | 'any' | 'critical' | 'high' | 'medium' | 'low'"
    )
    query: str = Field(default="", description="Case-insensitive substring search")


class QueryResult(BaseModel):
    plans: list[Plan] = Field(default_factory=list)
    stats: PlanStats = Field(default_factory=PlanStats)


def _is_unset(value: str | None) -> bool:
    return value is None or value.strip() == "" or value.strip().casefold() == ALL


def plan_severities(plan: Plan) -> set[str]:
    """Severity labels present in a plan's failure list, lower-cased."""
    return {classify_severity(f.target, f.actual).casefold() for f in plan.cms_failures}


def matches_failure_severity(plan: Plan, severity: str) -> bool:
    if _is_unset(severity):
        return True
    wanted = severity.strip().casefold()
    if wanted == "none":
        return not plan.cms_failures
    if wanted == "any":
        return bool(plan.cms_failures)
    if wanted not in FAILURE_SEVERITY_OPTIONS:
        raise ValueError(
            f"Unknown failure severity {severity!r}; expected one of {FAILURE_SEVERITY_OPTIONS}"
        )
    return wanted in plan_severities(plan)


def matches_query(plan: Plan, query: str) -> bool:
    needle = query.strip().casefold()
    return any(needle in str(getattr(plan, field)).casefold() for field in SEARCH_FIELDS)


def matches(plan: Plan, predicates: PlanFilter) -> bool:
    """True if the plan satisfies every active predicate."""
    if not _is_unset(predicates.type) and plan.type != predicates.type.strip().casefold():
        return False
    if predicates.min_star_rating is not None and plan.star_rating < predicates.min_star_rating:
        return False
    if not _is_unset(predicates.state) and plan.state != predicates.state.strip():
        return False
    if not _is_unset(predicates.region) and plan.region != predicates.region.strip():
        return False
    if not _is_unset(predicates.failure_severity) and not matches_failure_severity(
        plan, predicates.failure_severity
    ):
        return False
    if predicates.query.strip() and not matches_query(plan, predicates.query):
        return False
    return True


def filter_plans(plans: Sequence[Plan], predicates: PlanFilter | None = None) -> list[Plan]:
    """Return the order-preserving subset of plans matching all predicates."""
    predicates = predicates or PlanFilter()
    return [plan for plan in plans if matches(plan, predicates)]


def query_plans(plans: Sequence[Plan], predicates: PlanFilter | None = None) -> QueryResult:
    """Filter plans and summarize the matching subset."""
    matched = filter_plans(plans, predicates)
    return QueryResult(plans=matched, stats=compute_stats(matched))
