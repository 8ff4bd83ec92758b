"""Plan set validation module.

Two-tier validation:
- Critical: enum conformance, region/state consistency, failure integrity,
  unique ids → fail the command.
- Advisory: data quality patterns (unknown states, empty enrollment,
  heavily synthesized ratings) → warn only.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence

import polars as pl
from pydantic import BaseModel, Field

from mm_plans.config import CMS_CRITERIA, get_region
from mm_plans.export import plans_to_frame
from mm_plans.metrics import classify_severity
from mm_plans.schema import (
    MAX_STAR_RATING,
    MIN_STAR_RATING,
    NCQA_LEVELS,
    PLAN_TYPES,
    UNKNOWN_STATE,
    Plan,
)

SYNTHESIZED_SHARE_WARNING = 0.5
MAX_EXAMPLES = 5


class ValidationIssue(BaseModel):
    """A single validation issue found in the plan set."""

    level: str = Field(description="'critical' or 'advisory'")
    rule: str = Field(description="Name of the validation rule")
    message: str = Field(description="Human-readable description")
    affected_rows: int = Field(default=0, description="Number of plans affected")
    examples: list[str] = Field(default_factory=list, description="Example plan ids or values")


class ValidationResult(BaseModel):
    """Result of plan set validation."""

    passed: bool = Field(description="True if no critical issues found")
    total_rows: int = Field(description="Total plans validated")
    critical_issues: list[ValidationIssue] = Field(default_factory=list)
    advisory_issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def all_issues(self) -> list[ValidationIssue]:
        return self.critical_issues + self.advisory_issues


def _issue(level: str, rule: str, message: str, offenders: Sequence[str]) -> ValidationIssue:
    return ValidationIssue(
        level=level,
        rule=rule,
        message=message,
        affected_rows=len(offenders),
        examples=list(offenders[:MAX_EXAMPLES]),
    )


def validate_plans(plans: Sequence[Plan]) -> ValidationResult:
    """Validate a plan set against the canonical record invariants.

    Args:
        plans: Plans to validate.

    Returns:
        ValidationResult with pass/fail status and list of issues.
    """
    critical: list[ValidationIssue] = []
    advisory: list[ValidationIssue] = []
    df = plans_to_frame(plans)
    total_rows = df.height

    # --- Critical: Enum values ---
    enum_checks: dict[str, list[str]] = {
        "type": PLAN_TYPES,
        "ncqa_level": NCQA_LEVELS,
    }
    for col, valid_values in enum_checks.items():
        bad = df.filter(~pl.col(col).is_in(valid_values))
        if bad.height > 0:
            examples = bad.select(col).unique(maintain_order=True).head(MAX_EXAMPLES)
            critical.append(
                ValidationIssue(
                    level="critical",
                    rule="enum_values",
                    message=f"Column '{col}' has {bad.height} rows with invalid values",
                    affected_rows=bad.height,
                    examples=[str(v) for v in examples.to_series().to_list()],
                )
            )

    # --- Critical: Value ranges ---
    out_of_range = df.filter(
        ~pl.col("star_rating").is_between(MIN_STAR_RATING, MAX_STAR_RATING)
    )["id"].to_list()
    if out_of_range:
        critical.append(
            _issue(
                "critical",
                "star_rating_range",
                f"{len(out_of_range)} plans have a star rating outside "
                f"[{MIN_STAR_RATING}, {MAX_STAR_RATING}]",
                out_of_range,
            )
        )

    # --- Critical: NCQA score matches its level ---
    bad_scores = [
        p.id
        for p in plans
        if p.ncqa_rating.level in NCQA_LEVELS
        and p.ncqa_rating.score != (NCQA_LEVELS.index(p.ncqa_rating.level) + 1) * 20
    ]
    if bad_scores:
        critical.append(
            _issue(
                "critical",
                "ncqa_score",
                f"{len(bad_scores)} plans have an NCQA score inconsistent with their level",
                bad_scores,
            )
        )

    # --- Critical: Region derived from state ---
    bad_regions = [p.id for p in plans if p.region != get_region(p.state)]
    if bad_regions:
        critical.append(
            _issue(
                "critical",
                "region_mismatch",
                f"{len(bad_regions)} plans have a region that does not match their state",
                bad_regions,
            )
        )

    # --- Critical: Failure integrity ---
    not_below_target: list[str] = []
    unknown_criterion: list[str] = []
    wrong_impact: list[str] = []
    for plan in plans:
        for failure in plan.cms_failures:
            if failure.target <= failure.actual:
                not_below_target.append(plan.id)
            if failure.criterion not in CMS_CRITERIA:
                unknown_criterion.append(plan.id)
            if failure.impact != classify_severity(failure.target, failure.actual):
                wrong_impact.append(plan.id)
    if not_below_target:
        critical.append(
            _issue(
                "critical",
                "failure_below_target",
                f"{len(not_below_target)} failures have actual >= target",
                not_below_target,
            )
        )
    if unknown_criterion:
        critical.append(
            _issue(
                "critical",
                "failure_criterion",
                f"{len(unknown_criterion)} failures name an unknown criterion",
                unknown_criterion,
            )
        )
    if wrong_impact:
        critical.append(
            _issue(
                "critical",
                "failure_impact",
                f"{len(wrong_impact)} failures carry an impact label that disagrees with their gap",
                wrong_impact,
            )
        )

    # --- Critical: Unique ids ---
    duplicated = sorted(plan_id for plan_id, n in Counter(p.id for p in plans).items() if n > 1)
    if duplicated:
        critical.append(
            _issue("critical", "unique_id", f"{len(duplicated)} plan ids are not unique", duplicated)
        )

    # --- Advisory: Unknown states ---
    unknown_states = df.filter(pl.col("state") == UNKNOWN_STATE)["id"].to_list()
    if unknown_states:
        advisory.append(
            _issue(
                "advisory",
                "unknown_state",
                f"{len(unknown_states)} plans have no usable state",
                unknown_states,
            )
        )

    # --- Advisory: Zero enrollment ---
    zero_members = df.filter(pl.col("members") == 0)["id"].to_list()
    if zero_members:
        advisory.append(
            _issue(
                "advisory",
                "zero_members",
                f"{len(zero_members)} plans report no enrolled members",
                zero_members,
            )
        )

    # --- Advisory: Synthesized ratings ---
    synthesized = [p.id for p in plans if p.rating_synthesized]
    if total_rows > 0 and len(synthesized) / total_rows > SYNTHESIZED_SHARE_WARNING:
        advisory.append(
            _issue(
                "advisory",
                "synthesized_ratings",
                f"{len(synthesized) / total_rows:.1%} of star ratings are synthesized",
                synthesized,
            )
        )

    return ValidationResult(
        passed=len(critical) == 0,
        total_rows=total_rows,
        critical_issues=critical,
        advisory_issues=advisory,
    )
