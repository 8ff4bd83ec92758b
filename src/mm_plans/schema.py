"""Schema definitions for canonical plan records.

Provides:
- Pydantic models for the canonical Plan record and its nested metrics.
- Constants for enum-like field values.
- The fixed column order used for tabular export.
"""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Enum-like constants
# ---------------------------------------------------------------------------
PLAN_TYPES = ["medicare", "medicaid"]
NCQA_LEVELS = ["Denied", "Provisional", "Accredited", "Commendable", "Excellent"]
SEVERITIES = ["Critical", "High", "Medium", "Low"]
PERFORMANCE_TIERS = ["Excellent", "Good", "Average", "Below Average"]
ENROLLMENT_TIERS = ["Large", "Medium", "Small"]

UNKNOWN_STATE = "Unknown"
UNKNOWN_ORGANIZATION = "Unknown Organization"
NOT_AVAILABLE = "N/A"

MIN_STAR_RATING = 1.0
MAX_STAR_RATING = 5.0


# ---------------------------------------------------------------------------
# Pydantic record models
# ---------------------------------------------------------------------------
class NCQARating(BaseModel):
    """NCQA-style accreditation classification."""

    model_config = ConfigDict(frozen=True)

    level: str = Field(description="One of NCQA_LEVELS")
    score: int = Field(ge=20, le=100, description="(level index + 1) * 20")
    year: int
    details: str = Field(default="", description="Human-readable accreditation text")


class CMSFailure(BaseModel):
    """A quality criterion where the plan underperforms its target."""

    model_config = ConfigDict(frozen=True)

    criterion: str
    target: float = Field(ge=MIN_STAR_RATING, le=MAX_STAR_RATING)
    actual: float = Field(ge=MIN_STAR_RATING, le=MAX_STAR_RATING)
    impact: str = Field(description="One of SEVERITIES")
    description: str = ""
    recommendations: list[str] = Field(default_factory=list)


class Plan(BaseModel):
    """A canonical, normalized Medicare or Medicaid plan record.

    Plans are immutable once built; pipeline stages return new lists rather
    than editing records in place.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    type: str = Field(description="'medicare' | 'medicaid'")
    state: str = UNKNOWN_STATE
    region: str
    organization: str = UNKNOWN_ORGANIZATION
    star_rating: float = Field(ge=MIN_STAR_RATING, le=MAX_STAR_RATING)
    rating_synthesized: bool = False
    ncqa_rating: NCQARating
    members: int = Field(default=0, ge=0)
    cms_criteria: dict[str, float] = Field(default_factory=dict)
    cms_failures: list[CMSFailure] = Field(default_factory=list)
    contract_id: str = NOT_AVAILABLE
    county: str = NOT_AVAILABLE
    zip_code: str = NOT_AVAILABLE
    phone: str = NOT_AVAILABLE
    website: str = NOT_AVAILABLE
    source: str
    last_updated: date
    performance_tier: str = "Average"
    enrollment_tier: str = "Small"
    data_quality_score: int = Field(default=0, ge=0, le=100)


# ---------------------------------------------------------------------------
# Export column order (canonical Plan fields, nested values flattened)
# ---------------------------------------------------------------------------
EXPORT_COLUMNS: list[str] = [
    "id",
    "name",
    "type",
    "state",
    "region",
    "organization",
    "star_rating",
    "ncqa_level",
    "ncqa_score",
    "members",
    "contract_id",
    "county",
    "zip_code",
    "phone",
    "website",
    "cms_criteria",  # JSON object string
    "cms_failures",  # JSON array string
    "failure_count",
    "performance_tier",
    "enrollment_tier",
    "data_quality_score",
    "source",
    "last_updated",
]
