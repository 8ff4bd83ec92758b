"""CLI entrypoint for the Medicare/Medicaid plan pipeline.

Commands:
  fetch         — Fetch, normalize, merge and dedupe plans; write plans.json
  query         — Filter the last fetched plans and print a table
  export        — Export the last fetched plans as CSV or JSON
  validate      — Validate the last fetched plans
  report        — Generate summary report
  cache-status  — Show cache freshness
  clear-cache   — Drop the cached plan list
  run-all       — Execute the full pipeline end-to-end
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from mm_plans.config import PipelineConfig
from mm_plans.schema import Plan

app = typer.Typer(
    name="mm-plans",
    help="Medicare & Medicaid plans — fetch, normalize, dedupe, filter, export, and report.",
    add_completion=False,
)
console = Console()

PLANS_FILE = "plans.json"


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _get_config(
    seed: int,
    output_dir: Path,
    config_file: Path | None = None,
) -> PipelineConfig:
    """Build pipeline config from CLI args and optional config file."""
    if config_file and config_file.exists():
        raw = json.loads(config_file.read_text())
        return PipelineConfig(**raw)
    return PipelineConfig(seed=seed, output_dir=output_dir)


def _load_plans(output_dir: Path) -> list[Plan]:
    from mm_plans.export import load_json

    plans_path = output_dir / PLANS_FILE
    try:
        return load_json(plans_path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]✗ {e}. Run `mm-plans fetch` first.[/]")
        raise typer.Exit(code=2) from e


def _plans_table(plans: list[Plan], limit: int) -> Table:
    table = Table(title=f"Plans ({len(plans):,} matched)")
    table.add_column("Name", overflow="fold")
    table.add_column("Type")
    table.add_column("State")
    table.add_column("Region")
    table.add_column("Organization", overflow="fold")
    table.add_column("Stars", justify="right")
    table.add_column("NCQA")
    table.add_column("Members", justify="right")
    table.add_column("Failures", justify="right")
    for plan in plans[:limit]:
        table.add_row(
            plan.name,
            plan.type,
            plan.state,
            plan.region,
            plan.organization,
            f"{plan.star_rating:.1f}",
            plan.ncqa_rating.level,
            f"{plan.members:,}",
            str(len(plan.cms_failures)),
        )
    return table


@app.command()
def fetch(
    seed: int = typer.Option(42, help="Random seed for synthesized metrics"),
    output_dir: Path = typer.Option(Path("output"), help="Output directory"),
    config_file: Path | None = typer.Option(None, "--config", help="JSON config file"),
    refresh: bool = typer.Option(False, help="Ignore the cache and fetch fresh data"),
) -> None:
    """Fetch plans from every source and write the merged, deduplicated set."""
    from mm_plans.export import save_json
    from mm_plans.pipeline import build_cache, run_pipeline

    config = _get_config(seed, output_dir, config_file)
    console.print(f"[bold blue]Fetching plans from {len(config.sources)} sources (seed={config.seed})...[/]")

    result = run_pipeline(config, cache=build_cache(config), refresh=refresh)
    out_path = save_json(result.plans, config.output_dir / PLANS_FILE, sources=result.stats.sources)

    if result.from_cache:
        console.print("  [dim]Served from cache[/]")
    for source in result.source_results:
        status = "[green]ok[/]" if source.ok else f"[yellow]{source.error or 'empty'}[/]"
        console.print(f"  {source.name}: {len(source.records):,} records ({status})")
    if result.used_fallback:
        console.print("  [yellow]All sources were empty; using generated sample data[/]")
    console.print(
        f"[green]✓ {result.stats.total_plans:,} plans "
        f"({result.removed_duplicates} duplicates removed) → {out_path}[/]"
    )


@app.command()
def query(
    output_dir: Path = typer.Option(Path("output"), help="Directory with plans.json"),
    plan_type: str = typer.Option("all", "--type", help="all | medicare | medicaid"),
    min_rating: float | None = typer.Option(None, help="Minimum star rating"),
    state: str = typer.Option("all", help="Exact state code"),
    region: str = typer.Option("all", help="Exact region name"),
    failure_severity: str = typer.Option(
        "all", help="all | none | any | critical | high | medium | low"
    ),
    search: str = typer.Option("", help="Case-insensitive text search"),
    limit: int = typer.Option(50, help="Maximum rows to display"),
) -> None:
    """Filter plans and print the matches with summary stats."""
    from mm_plans.search import PlanFilter, query_plans

    plans = _load_plans(output_dir)
    try:
        result = query_plans(
            plans,
            PlanFilter(
                type=plan_type,
                min_star_rating=min_rating,
                state=state,
                region=region,
                failure_severity=failure_severity,
                query=search,
            ),
        )
    except ValueError as e:
        console.print(f"[red]✗ {e}[/]")
        raise typer.Exit(code=2) from e

    console.print(_plans_table(result.plans, limit))
    stats = result.stats
    console.print(
        f"Medicare: {stats.count_by_type['medicare']:,} | Medicaid: {stats.count_by_type['medicaid']:,} | "
        f"Avg stars: {stats.avg_star_rating} | Members: {stats.total_members:,}"
    )


@app.command()
def export(
    output_dir: Path = typer.Option(Path("output"), help="Directory with plans.json"),
    fmt: str = typer.Option("csv", "--format", help="csv | json"),
    output: Path | None = typer.Option(None, "--output", help="Destination file"),
) -> None:
    """Export plans as CSV or JSON."""
    from mm_plans.export import save_csv, save_json

    plans = _load_plans(output_dir)
    fmt = fmt.lower()
    if fmt == "csv":
        path = save_csv(plans, output or output_dir / "plans.csv")
    elif fmt == "json":
        path = save_json(plans, output or output_dir / "plans_export.json")
    else:
        console.print(f"[red]✗ Unknown export format {fmt!r}; expected csv or json[/]")
        raise typer.Exit(code=2)
    console.print(f"[green]✓ Exported {len(plans):,} plans → {path}[/]")


@app.command()
def validate(
    output_dir: Path = typer.Option(Path("output"), help="Directory with plans.json"),
) -> None:
    """Validate plans against the canonical record rules."""
    from mm_plans.validate import validate_plans

    plans_path = output_dir / PLANS_FILE
    console.print(f"[bold blue]Validating {plans_path}...[/]")

    result = validate_plans(_load_plans(output_dir))

    report_path = output_dir / "validation_report.json"
    report_path.parent.mkdir(parents=True, exist_ok=True)
    report_path.write_text(result.model_dump_json(indent=2))

    if result.passed:
        console.print(f"[green]✓ Validation passed ({result.total_rows:,} plans, "
                      f"{len(result.advisory_issues)} advisory warnings)[/]")
    else:
        console.print(f"[red]✗ Validation FAILED — {len(result.critical_issues)} critical issues:[/]")
        for issue in result.critical_issues:
            console.print(f"  [red]• {issue.rule}: {issue.message}[/]")
        raise typer.Exit(code=1)


@app.command()
def report(
    seed: int = typer.Option(42, help="Random seed (for config loading)"),
    output_dir: Path = typer.Option(Path("output"), help="Directory with plans.json"),
    config_file: Path | None = typer.Option(None, "--config", help="JSON config file"),
) -> None:
    """Generate summary report with visualizations."""
    from mm_plans.reporting import generate_report

    config = _get_config(seed, output_dir, config_file)
    console.print("[bold blue]Generating report...[/]")

    report_path = generate_report(config, _load_plans(output_dir), output_dir)
    console.print(f"[green]✓ Report generated → {report_path}[/]")


@app.command()
def cache_status(
    config_file: Path | None = typer.Option(None, "--config", help="JSON config file"),
) -> None:
    """Show whether the cached plan list is fresh, expired, or absent."""
    from mm_plans.pipeline import build_cache

    cache = build_cache(_get_config(42, Path("output"), config_file))
    if cache is None:
        console.print("[yellow]Cache disabled in config[/]")
        return
    status = cache.status()
    if status.status == "no_cache":
        console.print("No cached plans")
        return
    color = "green" if status.status == "fresh" else "yellow"
    console.print(
        f"[{color}]{status.status}[/] — stored {status.stored_at:%Y-%m-%d %H:%M} "
        f"({status.age_hours}h ago), expires {status.expires_at:%Y-%m-%d %H:%M}"
    )


@app.command()
def clear_cache(
    config_file: Path | None = typer.Option(None, "--config", help="JSON config file"),
) -> None:
    """Drop the cached plan list so the next fetch hits every source."""
    from mm_plans.pipeline import build_cache

    cache = build_cache(_get_config(42, Path("output"), config_file))
    if cache is None:
        console.print("[yellow]Cache disabled in config[/]")
        return
    cache.clear()
    console.print("[green]✓ Cache cleared[/]")


@app.command()
def run_all(
    seed: int = typer.Option(42, help="Random seed for synthesized metrics"),
    output_dir: Path = typer.Option(Path("output"), help="Output directory"),
    config_file: Path | None = typer.Option(None, "--config", help="JSON config file"),
    refresh: bool = typer.Option(False, help="Ignore the cache and fetch fresh data"),
) -> None:
    """Execute the full pipeline: fetch → validate → export → report."""
    config = _get_config(seed, output_dir, config_file)
    console.print("[bold blue]═══ Medicare & Medicaid Plans — Full Pipeline ═══[/]\n")

    try:
        # Stage 1: Fetch
        from mm_plans.export import save_csv, save_json
        from mm_plans.pipeline import build_cache, run_pipeline

        console.print("[bold]Stage 1: Fetch, Merge & Dedupe[/]")
        result = run_pipeline(config, cache=build_cache(config), refresh=refresh)
        save_json(result.plans, config.output_dir / PLANS_FILE, sources=result.stats.sources)
        origin = "cache" if result.from_cache else "sample fallback" if result.used_fallback else "sources"
        console.print(
            f"  [green]✓ {result.stats.total_plans:,} plans from {origin} "
            f"({result.removed_duplicates} duplicates removed)[/]\n"
        )

        # Stage 2: Validate
        from mm_plans.validate import validate_plans

        console.print("[bold]Stage 2: Validate[/]")
        validation = validate_plans(result.plans)
        report_path = config.output_dir / "validation_report.json"
        report_path.write_text(validation.model_dump_json(indent=2))

        if not validation.passed:
            console.print("  [red]✗ Validation FAILED[/]")
            for issue in validation.critical_issues:
                console.print(f"    [red]• {issue.rule}: {issue.message}[/]")
            raise typer.Exit(code=1)
        console.print(f"  [green]✓ Passed ({len(validation.advisory_issues)} advisories)[/]\n")

        # Stage 3: Export
        console.print("[bold]Stage 3: Export[/]")
        csv_path = save_csv(result.plans, config.output_dir / "plans.csv")
        console.print(f"  [green]✓ CSV → {csv_path}[/]\n")

        # Stage 4: Report
        from mm_plans.reporting import generate_report

        console.print("[bold]Stage 4: Report Generation[/]")
        report_file = generate_report(
            config,
            result.plans,
            config.output_dir,
            stats=result.stats,
            removed_duplicates=result.removed_duplicates,
        )
        console.print(f"  [green]✓ Report → {report_file}[/]\n")

        console.print("[bold green]═══ Pipeline complete ═══[/]")

    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[red]Pipeline error: {e}[/]")
        raise typer.Exit(code=2) from e


if __name__ == "__main__":
    app()
