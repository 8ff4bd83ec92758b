"""Report generation module.

Produces a Markdown report with key metrics, regional and organizational
breakdowns, CMS failure summaries, and a star rating histogram.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

import matplotlib
matplotlib.use("Agg")  # Non-interactive backend
import matplotlib.pyplot as plt
import numpy as np

from mm_plans.config import PipelineConfig
from mm_plans.merge import PlanStats, compute_stats
from mm_plans.metrics import classify_severity
from mm_plans.schema import SEVERITIES, Plan

TOP_FAILURE_PLANS = 20
RATING_BINS = np.arange(0.75, 5.5, 0.5)


def _save_star_rating_distribution(plans: Sequence[Plan], output_dir: Path) -> str:
    """Generate and save a star rating histogram split by plan type."""
    if not plans:
        return ""

    fig, ax = plt.subplots(figsize=(10, 6))
    medicare = [p.star_rating for p in plans if p.type == "medicare"]
    medicaid = [p.star_rating for p in plans if p.type == "medicaid"]

    ax.hist(
        [medicare, medicaid],
        bins=RATING_BINS,
        color=["#2196F3", "#4CAF50"],
        label=["Medicare", "Medicaid"],
        alpha=0.8,
        edgecolor="white",
        stacked=True,
    )
    ax.set_xlabel("Star Rating")
    ax.set_ylabel("Plans")
    ax.set_title("Star Rating Distribution")
    ax.set_xticks(np.arange(1.0, 5.5, 0.5))
    ax.legend()
    ax.grid(axis="y", alpha=0.3)

    path = output_dir / "figures" / "star_rating_distribution.png"
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path, dpi=150, bbox_inches="tight")
    plt.close(fig)
    return "figures/star_rating_distribution.png"


def _render_failures(plans: Sequence[Plan], stats: PlanStats) -> list[str]:
    """Render the CMS failure section as Markdown lines."""
    lines: list[str] = ["## CMS Quality Failures\n"]
    if stats.plans_with_failures == 0:
        lines.append("No plans with CMS criterion failures.\n")
        return lines

    lines.append(f"Plans with failures: **{stats.plans_with_failures}**\n")
    for severity in SEVERITIES:
        lines.append(f"- **{severity}:** {stats.failure_counts.get(severity, 0)}")
    lines.append("")

    def worst_gap(plan: Plan) -> float:
        return max(f.target - f.actual for f in plan.cms_failures)

    flagged = sorted((p for p in plans if p.cms_failures), key=worst_gap, reverse=True)
    lines.append(f"### Top {TOP_FAILURE_PLANS} Plans by Largest Gap\n")
    lines.append("| # | Plan | State | Criterion | Target | Actual | Impact |")
    lines.append("|---|---|---|---|---|---|---|")
    for i, plan in enumerate(flagged[:TOP_FAILURE_PLANS], 1):
        failure = max(plan.cms_failures, key=lambda f: f.target - f.actual)
        lines.append(
            f"| {i} | {plan.name} | {plan.state} | {failure.criterion} | "
            f"{failure.target:.1f} | {failure.actual:.1f} | "
            f"{classify_severity(failure.target, failure.actual)} |"
        )
    lines.append("")
    return lines


def generate_report(
    config: PipelineConfig,
    plans: Sequence[Plan],
    output_dir: Path,
    stats: PlanStats | None = None,
    removed_duplicates: int = 0,
) -> Path:
    """Generate the Markdown report with visualizations.

    Args:
        config: Pipeline configuration.
        plans: Plans to report on.
        output_dir: Output directory.
        stats: Precomputed stats; computed from plans when omitted.
        removed_duplicates: Duplicates dropped upstream, shown in key metrics.

    Returns:
        Path to the generated report file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    if stats is None:
        stats = compute_stats(plans)
    now = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

    histogram_path = _save_star_rating_distribution(plans, output_dir)

    lines: list[str] = []
    lines.append("# Medicare & Medicaid Plan Report\n")
    lines.append(f"**Generated:** {now}\n")
    lines.append(f"**Seed:** {config.seed} | **Plans:** {stats.total_plans:,}\n")
    lines.append(f"**Sources:** {', '.join(stats.sources) or 'none'}\n")
    lines.append("---\n")

    # --- Key Metrics ---
    lines.append("## Key Metrics\n")
    lines.append("| Metric | Value |")
    lines.append("|---|---|")
    lines.append(f"| Total Plans | {stats.total_plans:,} |")
    lines.append(f"| Medicare Plans | {stats.count_by_type.get('medicare', 0):,} |")
    lines.append(f"| Medicaid Plans | {stats.count_by_type.get('medicaid', 0):,} |")
    lines.append(f"| States | {stats.distinct_states} |")
    lines.append(f"| Organizations | {stats.distinct_organizations} |")
    lines.append(f"| Total Members | {stats.total_members:,} |")
    avg = stats.avg_star_rating
    avg_text = f"{avg:.2f}" if isinstance(avg, float) else str(avg)
    lines.append(f"| Avg Medicare Star Rating | {avg_text} |")
    lines.append(f"| High-Performing Plans (≥4.0) | {stats.high_performing_plans:,} |")
    lines.append(f"| Duplicates Removed | {removed_duplicates:,} |")
    lines.append("")

    # --- Star Rating Distribution ---
    if histogram_path:
        lines.append("## Star Rating Distribution\n")
        lines.append(f"![Star Rating Distribution]({histogram_path})\n")

    # --- Regions ---
    lines.append("## Plans by Region\n")
    if stats.count_by_region:
        lines.append("| Region | Plans |")
        lines.append("|---|---|")
        for region, count in stats.count_by_region.items():
            lines.append(f"| {region} | {count:,} |")
        lines.append("")
    else:
        lines.append("No plans available.\n")

    # --- Top States / Organizations ---
    if stats.top_states:
        lines.append("## Top States\n")
        lines.append("| # | State | Plans |")
        lines.append("|---|---|---|")
        for i, entry in enumerate(stats.top_states, 1):
            lines.append(f"| {i} | {entry.name} | {entry.count:,} |")
        lines.append("")

    if stats.top_organizations:
        lines.append("## Top Organizations\n")
        lines.append("| # | Organization | Plans |")
        lines.append("|---|---|---|")
        for i, entry in enumerate(stats.top_organizations, 1):
            lines.append(f"| {i} | {entry.name} | {entry.count:,} |")
        lines.append("")

    # --- Failures ---
    lines.extend(_render_failures(plans, stats))

    report_path = output_dir / "report.md"
    report_path.write_text("\n".join(lines), encoding="utf-8")
    return report_path
