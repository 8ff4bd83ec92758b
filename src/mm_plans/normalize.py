"""Field normalizer: raw source records → canonical Plan records.

Normalization is table-driven. Each canonical field declares an ordered
list of candidate keys; source-specific keys (selected by the source hint)
are tried first, then the generic alternates, then a literal default.
Normalization never fails for a mapping: unresolvable fields take their
defaults and unparseable ratings are synthesized.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any

import numpy as np
from pydantic import BaseModel

from mm_plans.config import get_region
from mm_plans.errors import MalformedRecord
from mm_plans.metrics import (
    clamp_rating,
    generate_criteria,
    generate_failures,
    generate_ncqa,
    synthesize_star_rating,
)
from mm_plans.schema import (
    NOT_AVAILABLE,
    UNKNOWN_ORGANIZATION,
    UNKNOWN_STATE,
    Plan,
)


class FieldRule(BaseModel):
    """Candidate source keys for one canonical field, in priority order."""

    field: str
    keys: tuple[str, ...]
    default: str | None = None


FIELD_RULES: list[FieldRule] = [
    FieldRule(field="plan_id", keys=("id", "plan_id", "planId", "Plan ID", "Plan_ID")),
    FieldRule(
        field="name",
        keys=("name", "plan_name", "planName", "Plan Name", "title", "marketing_name"),
    ),
    FieldRule(field="type", keys=("type", "plan_type", "planType", "Plan Type", "program")),
    FieldRule(
        field="state",
        keys=("state", "State", "state_code", "stateCode", "State_Code", "state_name"),
        default=UNKNOWN_STATE,
    ),
    FieldRule(
        field="organization",
        keys=(
            "organization",
            "org_name",
            "orgName",
            "organization_name",
            "Organization Name",
            "parent_organization",
            "agencyName",
        ),
        default=UNKNOWN_ORGANIZATION,
    ),
    FieldRule(
        field="star_rating",
        keys=(
            "starRating",
            "star_rating",
            "overall_star_rating",
            "overallStarRating",
            "Overall Star Rating",
            "rating",
        ),
    ),
    FieldRule(
        field="members",
        keys=("members", "enrollment", "member_count", "memberCount", "Enrollment", "total_enrollment"),
    ),
    FieldRule(
        field="contract_id",
        keys=("contractId", "contract_id", "Contract ID", "contract_number"),
        default=NOT_AVAILABLE,
    ),
    FieldRule(field="county", keys=("county", "County", "county_name"), default=NOT_AVAILABLE),
    FieldRule(field="zip_code", keys=("zipCode", "zip_code", "zip", "postal_code"), default=NOT_AVAILABLE),
    FieldRule(
        field="phone",
        keys=("phone", "phone_number", "contact_info", "contactInfo"),
        default=NOT_AVAILABLE,
    ),
    FieldRule(field="website", keys=("website", "url", "web_site"), default=NOT_AVAILABLE),
    FieldRule(field="source", keys=("source", "data_source", "dataSource")),
    FieldRule(field="last_updated", keys=("lastUpdated", "last_updated", "Last Updated", "updated_at")),
]

# Keys tried before the generic ones when the source hint contains the prefix
SOURCE_KEYS: dict[str, dict[str, tuple[str, ...]]] = {
    "cms": {
        "plan_id": ("Plan ID", "Plan_ID", "PBP"),
        "name": ("Plan Name", "Plan_Name", "Marketing Name"),
        "organization": ("Organization Name", "Organization_Name", "Parent Organization"),
        "contract_id": ("Contract ID", "Contract_ID", "Contract Number"),
        "state": ("State", "State_Code"),
        "county": ("County", "County_Name"),
        "star_rating": ("Overall Star Rating", "Overall_Star_Rating"),
        "members": ("Enrollment", "Total Enrollment", "Contract Enrollment"),
    },
    "medicaid": {
        "name": ("plan_name", "mco_name", "program_name"),
        "organization": ("mco_name", "managed_care_organization", "org_name"),
        "members": ("enrollment", "enrollees"),
    },
}

# Fields that give a record an identity; a record with none of them is dropped
IDENTITY_FIELDS = ("plan_id", "name", "contract_id", "organization")

_RULES_BY_FIELD = {rule.field: rule for rule in FIELD_RULES}


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def candidate_keys(field: str, source_hint: str) -> list[str]:
    """Ordered candidate keys for a field: source-specific first, then generic."""
    hint = source_hint.casefold()
    keys: list[str] = []
    for prefix, overrides in SOURCE_KEYS.items():
        if prefix in hint:
            keys.extend(overrides.get(field, ()))
    keys.extend(k for k in _RULES_BY_FIELD[field].keys if k not in keys)
    return keys


def resolve_field(raw: Mapping[str, Any], field: str, source_hint: str) -> Any:
    """Return the first non-blank candidate value, else the field default."""
    for key in candidate_keys(field, source_hint):
        value = raw.get(key)
        if not _is_blank(value):
            return value.strip() if isinstance(value, str) else value
    return _RULES_BY_FIELD[field].default


def ensure_salvageable(raw: Any, source_hint: str) -> Mapping[str, Any]:
    """Reject records that are not mappings or carry no identity at all.

    Raises:
        MalformedRecord: If the record cannot be normalized meaningfully.
    """
    if not isinstance(raw, Mapping):
        raise MalformedRecord(f"Expected a mapping, got {type(raw).__name__}")
    for field in IDENTITY_FIELDS:
        for key in candidate_keys(field, source_hint):
            if not _is_blank(raw.get(key)):
                return raw
    raise MalformedRecord("Record has no name, id, contract, or organization")


# ---------------------------------------------------------------------------
# Coercion
# ---------------------------------------------------------------------------
def coerce_members(value: Any) -> int:
    """Parse an enrollment count; unparseable or negative values become 0."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, str):
        value = value.replace(",", "").strip()
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number):
        return 0
    return max(0, int(number))


def coerce_star_rating(value: Any) -> float | None:
    """Parse a supplied star rating; None when missing, non-numeric, or non-positive."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number <= 0:
        return None
    return clamp_rating(number)


def coerce_plan_type(value: Any, source_hint: str) -> str:
    """'medicaid' if the declared type (or, absent one, the source) mentions it."""
    text = source_hint if _is_blank(value) else str(value)
    return "medicaid" if "medicaid" in text.casefold() else "medicare"


def coerce_state(value: Any) -> str:
    state = str(value).strip()
    return state.upper() if len(state) == 2 else state


def coerce_date(value: Any, today: date) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            return today
    return today


# ---------------------------------------------------------------------------
# Derived fields
# ---------------------------------------------------------------------------
def performance_tier(star_rating: float) -> str:
    if star_rating >= 4.5:
        return "Excellent"
    if star_rating >= 4.0:
        return "Good"
    if star_rating >= 3.0:
        return "Average"
    return "Below Average"


def enrollment_tier(members: int) -> str:
    if members >= 100_000:
        return "Large"
    if members >= 50_000:
        return "Medium"
    return "Small"


def data_quality_score(
    name_supplied: bool,
    organization: str,
    state: str,
    contract_id: str,
    rating_synthesized: bool,
    members: int,
) -> int:
    """Completeness score 0-100: identity fields 2 points each, metrics 1 each."""
    score = 0
    score += 2 if name_supplied else 0
    score += 2 if organization != UNKNOWN_ORGANIZATION else 0
    score += 2 if state != UNKNOWN_STATE else 0
    score += 2 if contract_id != NOT_AVAILABLE else 0
    score += 0 if rating_synthesized else 1
    score += 1 if members > 0 else 0
    return round(score / 10 * 100)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------
def normalize_record(
    raw: Mapping[str, Any],
    source_hint: str,
    index: int,
    rng: np.random.Generator,
    today: date | None = None,
) -> Plan:
    """Map one raw record to a canonical Plan.

    Args:
        raw: Record as produced by a source adapter.
        source_hint: Adapter name; selects source-specific keys and is the
            default provenance label and id prefix.
        index: Position of the record within its source, used for
            generated ids and names.
        rng: Random generator for synthesized ratings and quality metrics.
        today: Date used when the record carries no parseable update date.

    Returns:
        A fully populated Plan.
    """
    today = today or date.today()

    plan_id = resolve_field(raw, "plan_id", source_hint)
    raw_name = resolve_field(raw, "name", source_hint)
    name = str(raw_name) if raw_name is not None else f"Plan {index}"
    plan_type = coerce_plan_type(resolve_field(raw, "type", source_hint), source_hint)
    state = coerce_state(resolve_field(raw, "state", source_hint))
    organization = str(resolve_field(raw, "organization", source_hint))
    contract_id = str(resolve_field(raw, "contract_id", source_hint))
    members = coerce_members(resolve_field(raw, "members", source_hint))

    star_rating = coerce_star_rating(resolve_field(raw, "star_rating", source_hint))
    rating_synthesized = star_rating is None
    if star_rating is None:
        star_rating = synthesize_star_rating(rng)

    criteria = generate_criteria(star_rating, rng)
    failures = generate_failures(star_rating, criteria, rng)
    ncqa = generate_ncqa(star_rating, organization, rng, year=today.year)

    source = resolve_field(raw, "source", source_hint)

    return Plan(
        id=str(plan_id) if plan_id is not None else f"{source_hint}_{index}",
        name=name,
        type=plan_type,
        state=state,
        region=get_region(state),
        organization=organization,
        star_rating=star_rating,
        rating_synthesized=rating_synthesized,
        ncqa_rating=ncqa,
        members=members,
        cms_criteria=criteria,
        cms_failures=failures,
        contract_id=contract_id,
        county=str(resolve_field(raw, "county", source_hint)),
        zip_code=str(resolve_field(raw, "zip_code", source_hint)),
        phone=str(resolve_field(raw, "phone", source_hint)),
        website=str(resolve_field(raw, "website", source_hint)),
        source=str(source) if source is not None else source_hint,
        last_updated=coerce_date(resolve_field(raw, "last_updated", source_hint), today),
        performance_tier=performance_tier(star_rating),
        enrollment_tier=enrollment_tier(members),
        data_quality_score=data_quality_score(
            raw_name is not None, organization, state, contract_id, rating_synthesized, members
        ),
    )
