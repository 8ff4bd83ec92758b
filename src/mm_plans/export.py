"""Export artifacts for plan sets.

- CSV: one row per plan in the fixed EXPORT_COLUMNS order; nested criteria
  and failures are stored as JSON strings.
- JSON: a ``metadata`` envelope (record count, generation timestamp,
  sources) wrapping a ``plans`` array.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import polars as pl

from mm_plans.schema import EXPORT_COLUMNS, Plan

EXPORT_SCHEMA: dict[str, Any] = {
    "id": pl.Utf8,
    "name": pl.Utf8,
    "type": pl.Utf8,
    "state": pl.Utf8,
    "region": pl.Utf8,
    "organization": pl.Utf8,
    "star_rating": pl.Float64,
    "ncqa_level": pl.Utf8,
    "ncqa_score": pl.Int64,
    "members": pl.Int64,
    "contract_id": pl.Utf8,
    "county": pl.Utf8,
    "zip_code": pl.Utf8,
    "phone": pl.Utf8,
    "website": pl.Utf8,
    "cms_criteria": pl.Utf8,
    "cms_failures": pl.Utf8,
    "failure_count": pl.Int64,
    "performance_tier": pl.Utf8,
    "enrollment_tier": pl.Utf8,
    "data_quality_score": pl.Int64,
    "source": pl.Utf8,
    "last_updated": pl.Date,
}


def _row(plan: Plan) -> dict[str, Any]:
    return {
        "id": plan.id,
        "name": plan.name,
        "type": plan.type,
        "state": plan.state,
        "region": plan.region,
        "organization": plan.organization,
        "star_rating": plan.star_rating,
        "ncqa_level": plan.ncqa_rating.level,
        "ncqa_score": plan.ncqa_rating.score,
        "members": plan.members,
        "contract_id": plan.contract_id,
        "county": plan.county,
        "zip_code": plan.zip_code,
        "phone": plan.phone,
        "website": plan.website,
        "cms_criteria": json.dumps(plan.cms_criteria),
        "cms_failures": json.dumps([f.model_dump() for f in plan.cms_failures]),
        "failure_count": len(plan.cms_failures),
        "performance_tier": plan.performance_tier,
        "enrollment_tier": plan.enrollment_tier,
        "data_quality_score": plan.data_quality_score,
        "source": plan.source,
        "last_updated": plan.last_updated,
    }


def plans_to_frame(plans: Sequence[Plan]) -> pl.DataFrame:
    """Flatten plans into a DataFrame with EXPORT_COLUMNS in order."""
    return pl.DataFrame([_row(p) for p in plans], schema=EXPORT_SCHEMA).select(EXPORT_COLUMNS)


def save_csv(plans: Sequence[Plan], path: Path) -> Path:
    """Write plans as CSV.

    Args:
        plans: Plans to export.
        path: Output file path.

    Returns:
        The path written to.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    plans_to_frame(plans).write_csv(path)
    return path


def build_json_document(
    plans: Sequence[Plan],
    sources: Sequence[str] | None = None,
    generated_at: datetime | None = None,
) -> dict[str, Any]:
    """Wrap plans in the metadata envelope."""
    generated_at = generated_at or datetime.now(timezone.utc)
    if sources is None:
        sources = list(dict.fromkeys(p.source for p in plans))
    return {
        "metadata": {
            "record_count": len(plans),
            "generated_at": generated_at.isoformat(),
            "sources": list(sources),
        },
        "plans": [p.model_dump(mode="json") for p in plans],
    }


def save_json(
    plans: Sequence[Plan],
    path: Path,
    sources: Sequence[str] | None = None,
) -> Path:
    """Write plans as a JSON document with a metadata envelope."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(build_json_document(plans, sources), indent=2), encoding="utf-8")
    return path


def load_json(path: Path) -> list[Plan]:
    """Read plans back from a JSON document written by save_json.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the document has no plans array.
    """
    if not path.exists():
        raise FileNotFoundError(f"Plans file not found: {path}")
    document = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(document, dict) or not isinstance(document.get("plans"), list):
        raise ValueError(f"{path} is not a plans document (missing 'plans' array)")
    return [Plan.model_validate(p) for p in document["plans"]]
