"""Tests for reporting module."""

from collections.abc import Callable
from pathlib import Path

from mm_plans.config import PipelineConfig
from mm_plans.pipeline import run_pipeline
from mm_plans.reporting import generate_report
from mm_plans.schema import CMSFailure, Plan


class TestReporting:
    def test_report_generated(self, config: PipelineConfig, tmp_path: Path) -> None:
        """Full report generation should produce expected files."""
        result = run_pipeline(config)
        report_path = generate_report(
            config,
            result.plans,
            tmp_path,
            stats=result.stats,
            removed_duplicates=result.removed_duplicates,
        )

        assert report_path == tmp_path / "report.md"
        assert (tmp_path / "figures" / "star_rating_distribution.png").exists()

        content = report_path.read_text(encoding="utf-8")
        assert "Key Metrics" in content
        assert "Star Rating Distribution" in content
        assert "Plans by Region" in content
        assert "Top States" in content
        assert "Top Organizations" in content
        assert "CMS Quality Failures" in content
        assert f"| Total Plans | {result.stats.total_plans:,} |" in content

    def test_failure_table(
        self,
        config: PipelineConfig,
        tmp_path: Path,
        make_plan: Callable[..., Plan],
        make_failure: Callable[..., CMSFailure],
    ) -> None:
        plans = [
            make_plan(id="1", name="Weak Plan", cms_failures=[make_failure(target=4.5, actual=2.0)]),
            make_plan(id="2", name="Solid Plan"),
        ]
        content = generate_report(config, plans, tmp_path).read_text(encoding="utf-8")
        assert "Plans with failures: **1**" in content
        assert "| 1 | Weak Plan | CA | Care Coordination | 4.5 | 2.0 | Critical |" in content

    def test_empty_plan_set(self, config: PipelineConfig, tmp_path: Path) -> None:
        content = generate_report(config, [], tmp_path).read_text(encoding="utf-8")
        assert "| Avg Medicare Star Rating | N/A |" in content
        assert "No plans available." in content
        assert "No plans with CMS criterion failures." in content
        assert not (tmp_path / "figures" / "star_rating_distribution.png").exists()
