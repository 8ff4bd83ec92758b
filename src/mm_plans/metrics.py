"""Derived quality metrics for plan records.

Star ratings, CMS criteria scores, criteria failures, and NCQA levels are
synthesized placeholders rather than sourced quality data:
- Criterion scores scatter +/-0.3 around the plan's headline rating.
- Failures trigger with probability (5 - rating) / 4 and pick 1-4 criteria.
- NCQA level follows floor(rating) with organization-based nudges.
- Missing ratings are drawn from a bell-shaped bucket distribution.

Every generator takes an explicit numpy Generator so runs are reproducible
under a seed; outputs are only guaranteed to satisfy range invariants.
"""

from __future__ import annotations

import math
from datetime import date

import numpy as np

from mm_plans.config import (
    CMS_CRITERIA,
    CRITERIA_RECOMMENDATIONS,
    DEFAULT_RECOMMENDATIONS,
    HIGH_QUALITY_ORGANIZATIONS,
)
from mm_plans.schema import (
    MAX_STAR_RATING,
    MIN_STAR_RATING,
    NCQA_LEVELS,
    CMSFailure,
    NCQARating,
)

CRITERION_NOISE = 0.3
FAILURE_TARGET_OFFSET = 0.3
FAILURE_SHORTFALL_RANGE = (0.5, 2.5)
MAX_FAILURES = 4
NCQA_UPGRADE_PROBABILITY = 0.3
NCQA_DOWNGRADE_PROBABILITY = 0.1

# (rating, weight) buckets for synthesized ratings; weights sum to 1.0
STAR_RATING_DISTRIBUTION: list[tuple[float, float]] = [
    (5.0, 0.05),
    (4.5, 0.10),
    (4.0, 0.20),
    (3.5, 0.25),
    (3.0, 0.20),
    (2.5, 0.15),
    (2.0, 0.05),
]

# Severity thresholds on (target - actual), checked in order
SEVERITY_THRESHOLDS: list[tuple[float, str]] = [
    (1.0, "Critical"),
    (0.5, "High"),
    (0.2, "Medium"),
]


def clamp_rating(value: float) -> float:
    """Clamp to [1.0, 5.0] and round to one decimal."""
    return round(min(MAX_STAR_RATING, max(MIN_STAR_RATING, value)), 1)


def synthesize_star_rating(rng: np.random.Generator) -> float:
    """Draw a star rating from the bucket distribution by cumulative weight."""
    ratings = [r for r, _ in STAR_RATING_DISTRIBUTION]
    cumulative = np.cumsum([w for _, w in STAR_RATING_DISTRIBUTION])
    idx = int(np.searchsorted(cumulative, rng.random(), side="right"))
    return ratings[min(idx, len(ratings) - 1)]


def generate_criteria(
    star_rating: float,
    rng: np.random.Generator,
    criteria: list[str] | None = None,
) -> dict[str, float]:
    """Score each quality criterion as the headline rating plus uniform noise."""
    names = CMS_CRITERIA if criteria is None else criteria
    return {
        name: clamp_rating(star_rating + rng.uniform(-CRITERION_NOISE, CRITERION_NOISE))
        for name in names
    }


def classify_severity(target: float, actual: float) -> str:
    """Classify a failure by its shortfall.

    >= 1.0 Critical, >= 0.5 High, >= 0.2 Medium, otherwise Low. The gap is
    rounded to absorb float drift so 3.5 - 3.0 lands exactly on 0.5.
    """
    gap = round(target - actual, 6)
    for threshold, label in SEVERITY_THRESHOLDS:
        if gap >= threshold:
            return label
    return "Low"


def failure_probability(star_rating: float) -> float:
    """Linear failure chance: 0.0 at 5 stars, 1.0 at 1 star."""
    return min(1.0, max(0.0, (MAX_STAR_RATING - star_rating) / 4.0))


def generate_failures(
    star_rating: float,
    criteria: dict[str, float],
    rng: np.random.Generator,
) -> list[CMSFailure]:
    """Pick 1-4 distinct criteria the plan misses, or none.

    Args:
        star_rating: The plan's headline rating.
        criteria: Criterion scores from generate_criteria.
        rng: Random generator.

    Returns:
        Failure records in selection order; empty when the plan is compliant.
    """
    if not criteria or rng.random() >= failure_probability(star_rating):
        return []

    names = list(criteria)
    count = min(int(rng.integers(1, MAX_FAILURES + 1)), len(names))
    selected = rng.choice(len(names), size=count, replace=False)

    failures: list[CMSFailure] = []
    for i in selected:
        criterion = names[int(i)]
        target = round(min(MAX_STAR_RATING, criteria[criterion] + FAILURE_TARGET_OFFSET), 1)
        shortfall = rng.uniform(*FAILURE_SHORTFALL_RANGE)
        actual = round(max(MIN_STAR_RATING, target - shortfall), 1)
        impact = classify_severity(target, actual)
        failures.append(
            CMSFailure(
                criterion=criterion,
                target=target,
                actual=actual,
                impact=impact,
                description=(
                    f"{criterion} scored {actual:.1f} against a target of {target:.1f} "
                    f"({impact.lower()} impact)"
                ),
                recommendations=list(
                    CRITERIA_RECOMMENDATIONS.get(criterion, DEFAULT_RECOMMENDATIONS)
                ),
            )
        )
    return failures


def is_high_quality_organization(organization: str) -> bool:
    lowered = organization.casefold()
    return any(name in lowered for name in HIGH_QUALITY_ORGANIZATIONS)


def generate_ncqa(
    star_rating: float,
    organization: str,
    rng: np.random.Generator,
    year: int | None = None,
) -> NCQARating:
    """Derive an NCQA accreditation level from the star rating.

    The base level is floor(rating) - 1 on the Denied..Excellent scale.
    Recognized organizations may move up one level; any plan may move down
    one level with a small fixed probability. Result is clamped to the scale.
    """
    index = math.floor(star_rating) - 1
    if is_high_quality_organization(organization) and rng.random() < NCQA_UPGRADE_PROBABILITY:
        index += 1
    if rng.random() < NCQA_DOWNGRADE_PROBABILITY:
        index -= 1
    index = min(len(NCQA_LEVELS) - 1, max(0, index))
    level = NCQA_LEVELS[index]

    return NCQARating(
        level=level,
        score=(index + 1) * 20,
        year=year if year is not None else date.today().year,
        details=f"NCQA {level} Accreditation",
    )
