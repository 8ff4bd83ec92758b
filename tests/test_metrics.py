"""Tests for derived quality metric generation."""

from collections import Counter

import numpy as np
import pytest

from mm_plans.config import CMS_CRITERIA
from mm_plans.metrics import (
    STAR_RATING_DISTRIBUTION,
    classify_severity,
    failure_probability,
    generate_criteria,
    generate_failures,
    generate_ncqa,
    synthesize_star_rating,
)
from mm_plans.schema import NCQA_LEVELS


class TestClassifySeverity:
    @pytest.mark.parametrize(
        ("target", "actual", "expected"),
        [
            (4.0, 3.0, "Critical"),
            (4.5, 2.0, "Critical"),
            (3.5, 3.0, "High"),
            (4.3, 3.8, "High"),
            (4.0, 3.8, "Medium"),
            (4.0, 3.9, "Low"),
            (4.0, 4.0, "Low"),
        ],
    )
    def test_thresholds(self, target: float, actual: float, expected: str) -> None:
        assert classify_severity(target, actual) == expected

    def test_boundaries_are_inclusive(self) -> None:
        """A gap of exactly 0.5 is High and exactly 1.0 is Critical."""
        assert classify_severity(3.1, 2.6) == "High"
        assert classify_severity(3.3, 2.3) == "Critical"
        assert classify_severity(2.9, 2.7) == "Medium"


class TestSynthesizeStarRating:
    def test_values_come_from_buckets(self, rng: np.random.Generator) -> None:
        buckets = {r for r, _ in STAR_RATING_DISTRIBUTION}
        assert all(synthesize_star_rating(rng) in buckets for _ in range(500))

    def test_distribution_shape(self, rng: np.random.Generator) -> None:
        counts = Counter(synthesize_star_rating(rng) for _ in range(20_000))
        for rating, weight in STAR_RATING_DISTRIBUTION:
            assert counts[rating] / 20_000 == pytest.approx(weight, abs=0.02)

    def test_seeded_is_reproducible(self) -> None:
        a = [synthesize_star_rating(np.random.default_rng(1)) for _ in range(3)]
        b = [synthesize_star_rating(np.random.default_rng(1)) for _ in range(3)]
        assert a == b


class TestGenerateCriteria:
    def test_covers_every_criterion(self, rng: np.random.Generator) -> None:
        assert list(generate_criteria(3.5, rng)) == CMS_CRITERIA

    def test_scores_near_rating_and_in_range(self, rng: np.random.Generator) -> None:
        for rating in (1.0, 3.0, 5.0):
            for score in generate_criteria(rating, rng).values():
                assert 1.0 <= score <= 5.0
                assert abs(score - rating) <= 0.31


class TestGenerateFailures:
    def test_five_stars_never_fails(self, rng: np.random.Generator) -> None:
        criteria = generate_criteria(5.0, rng)
        for _ in range(200):
            assert generate_failures(5.0, criteria, rng) == []

    def test_one_star_always_fails(self, rng: np.random.Generator) -> None:
        criteria = generate_criteria(1.0, rng)
        for _ in range(200):
            failures = generate_failures(1.0, criteria, rng)
            assert 1 <= len(failures) <= 4

    def test_failure_invariants(self, rng: np.random.Generator) -> None:
        for rating in (1.0, 2.0, 2.5, 3.0, 4.0):
            criteria = generate_criteria(rating, rng)
            for _ in range(100):
                failures = generate_failures(rating, criteria, rng)
                assert len({f.criterion for f in failures}) == len(failures)
                for f in failures:
                    assert f.criterion in criteria
                    assert f.target >= f.actual
                    assert f.target <= 5.0
                    assert f.actual >= 1.0
                    assert f.impact == classify_severity(f.target, f.actual)
                    assert f.recommendations

    def test_empty_criteria(self, rng: np.random.Generator) -> None:
        assert generate_failures(1.0, {}, rng) == []

    def test_probability(self) -> None:
        assert failure_probability(5.0) == 0.0
        assert failure_probability(1.0) == 1.0
        assert failure_probability(3.0) == 0.5


class TestGenerateNCQA:
    def test_level_and_score_consistent(self, rng: np.random.Generator) -> None:
        for rating in (1.0, 2.5, 3.0, 4.5, 5.0):
            ncqa = generate_ncqa(rating, "Acme Health", rng, year=2024)
            assert ncqa.level in NCQA_LEVELS
            assert ncqa.score == (NCQA_LEVELS.index(ncqa.level) + 1) * 20
            assert ncqa.year == 2024

    def test_level_within_one_of_floor(self, rng: np.random.Generator) -> None:
        for _ in range(200):
            ncqa = generate_ncqa(3.5, "Humana", rng)
            assert NCQA_LEVELS.index(ncqa.level) in (1, 2, 3)

    def test_unknown_org_never_upgraded(self, rng: np.random.Generator) -> None:
        for _ in range(200):
            assert generate_ncqa(4.0, "Small Local Plan", rng).level in ("Accredited", "Commendable")

    def test_clamped_to_scale(self, rng: np.random.Generator) -> None:
        for _ in range(200):
            assert generate_ncqa(1.0, "Acme", rng).level == "Denied"
            assert generate_ncqa(5.0, "Kaiser Permanente", rng).level in ("Commendable", "Excellent")
