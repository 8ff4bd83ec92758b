"""Configuration models for the Medicare/Medicaid plan pipeline.

All pipeline behavior is controlled via Pydantic models defined here.
Configuration is the single source of truth for seeds, timeouts, sources,
cache settings, and the static lookup tables used during normalization.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field


class SourceConfig(BaseModel):
    """A single data origin the pipeline fetches raw plan records from."""

    name: str = Field(description="Adapter name; also the provenance hint for normalization")
    kind: str = Field(description="'cms_api' | 'sample' | 'json_file'")
    enabled: bool = Field(default=True, description="Disabled sources are skipped")
    url: str = Field(
        default="https://data.cms.gov/api/1/datastore/query",
        description="Base query URL for remote datasets",
    )
    dataset_ids: list[str] = Field(
        default_factory=list, description="Dataset ids tried in order until one yields records"
    )
    path: Path | None = Field(default=None, description="JSON file path for 'json_file' sources")
    page_size: int = Field(default=500, ge=1, description="Records requested per page")
    max_pages: int = Field(default=20, ge=1, description="Upper bound on pages fetched per dataset")


class CacheConfig(BaseModel):
    """Settings for the on-disk plan cache."""

    enabled: bool = Field(default=True, description="Read and write the cache")
    directory: Path = Field(default=Path(".mm_plans_cache"), description="Cache directory")
    key: str = Field(default="medicare_medicaid_plans", description="Cache entry key")
    ttl_days: float = Field(default=7.0, gt=0, description="Days before a cached entry expires")


class PipelineConfig(BaseModel):
    """Top-level configuration for the plan aggregation pipeline."""

    seed: int | None = Field(
        default=42, description="Random seed for synthesized metrics (None = unseeded)"
    )
    output_dir: Path = Field(default=Path("output"), description="Root output directory")
    fetch_timeout_seconds: float = Field(
        default=15.0, gt=0, description="Per-adapter wait before a fetch counts as failed"
    )
    sample_states: list[str] = Field(
        default_factory=lambda: [
            "CA", "TX", "FL", "NY", "PA", "IL", "OH", "GA",
            "NC", "MI", "NJ", "VA", "WA", "TN", "AZ",
        ],
        description="States used when generating the sample catalog",
    )
    sources: list[SourceConfig] = Field(
        default_factory=lambda: [
            SourceConfig(
                name="cms_medicare",
                kind="cms_api",
                dataset_ids=["9c71c6e5-7f1b-434a-bd0e-4b18b6b99f7e"],
            ),
            SourceConfig(name="sample", kind="sample"),
        ]
    )
    cache: CacheConfig = Field(default_factory=CacheConfig)


# ---------------------------------------------------------------------------
# Static lookup tables
# ---------------------------------------------------------------------------
OTHER_REGION = "Other"

STATES_BY_REGION: dict[str, list[str]] = {
    "Northeast": ["ME", "NH", "VT", "MA", "RI", "CT", "NY", "NJ", "PA", "DE", "MD", "DC"],
    "Southeast": ["FL", "GA", "SC", "NC", "VA", "WV", "KY", "TN", "AL", "MS", "AR", "LA"],
    "Midwest": ["OH", "IN", "IL", "MI", "WI", "MN", "IA", "MO", "ND", "SD", "NE", "KS"],
    "Southwest": ["AZ", "NM", "TX", "OK"],
    "West": ["CA", "OR", "WA", "NV", "ID", "MT", "WY", "UT", "CO", "AK", "HI"],
}
REGIONS = list(STATES_BY_REGION)

STATE_NAMES: dict[str, str] = {
    "Alabama": "AL", "Alaska": "AK", "Arizona": "AZ", "Arkansas": "AR",
    "California": "CA", "Colorado": "CO", "Connecticut": "CT", "Delaware": "DE",
    "District of Columbia": "DC", "Florida": "FL", "Georgia": "GA", "Hawaii": "HI",
    "Idaho": "ID", "Illinois": "IL", "Indiana": "IN", "Iowa": "IA", "Kansas": "KS",
    "Kentucky": "KY", "Louisiana": "LA", "Maine": "ME", "Maryland": "MD",
    "Massachusetts": "MA", "Michigan": "MI", "Minnesota": "MN", "Mississippi": "MS",
    "Missouri": "MO", "Montana": "MT", "Nebraska": "NE", "Nevada": "NV",
    "New Hampshire": "NH", "New Jersey": "NJ", "New Mexico": "NM", "New York": "NY",
    "North Carolina": "NC", "North Dakota": "ND", "Ohio": "OH", "Oklahoma": "OK",
    "Oregon": "OR", "Pennsylvania": "PA", "Rhode Island": "RI", "South Carolina": "SC",
    "South Dakota": "SD", "Tennessee": "TN", "Texas": "TX", "Utah": "UT",
    "Vermont": "VT", "Virginia": "VA", "Washington": "WA", "West Virginia": "WV",
    "Wisconsin": "WI", "Wyoming": "WY",
}

# Twelve canonical Star Ratings quality dimensions
CMS_CRITERIA: list[str] = [
    "Staying Healthy: Screenings, Tests, Vaccines",
    "Managing Chronic (Long Term) Conditions",
    "Member Experience with Health Plan",
    "Member Complaints and Changes in the Health Plan's Performance",
    "Health Plan Customer Service",
    "Drug Plan Customer Service",
    "Member Complaints and Changes in the Drug Plan's Performance",
    "Member Experience with the Drug Plan",
    "Drug Safety and Accuracy of Drug Pricing",
    "Care Coordination",
    "Medication Adherence",
    "Access to Care and Appeals",
]

CRITERIA_RECOMMENDATIONS: dict[str, list[str]] = {
    "Staying Healthy: Screenings, Tests, Vaccines": [
        "Run member outreach for overdue screenings and vaccines",
        "Close preventive-care gaps at annual wellness visits",
    ],
    "Managing Chronic (Long Term) Conditions": [
        "Expand care management for diabetes, COPD and heart failure",
        "Track HbA1c and blood pressure control monthly",
    ],
    "Member Experience with Health Plan": [
        "Survey members after key interactions and act on low scores",
        "Simplify plan materials and benefit explanations",
    ],
    "Member Complaints and Changes in the Health Plan's Performance": [
        "Root-cause recurring complaint categories",
        "Reduce voluntary disenrollment with retention outreach",
    ],
    "Health Plan Customer Service": [
        "Reduce call hold times and first-call escalations",
        "Provide interpreter services on every call line",
    ],
    "Drug Plan Customer Service": [
        "Staff pharmacy help lines for peak enrollment periods",
        "Resolve coverage determination requests within timeframes",
    ],
    "Member Complaints and Changes in the Drug Plan's Performance": [
        "Audit pharmacy complaint handling for timeliness",
    ],
    "Member Experience with the Drug Plan": [
        "Improve formulary transparency at point of sale",
    ],
    "Drug Safety and Accuracy of Drug Pricing": [
        "Review medication therapy management completion rates",
        "Reconcile Plan Finder pricing with claims pricing",
    ],
    "Care Coordination": [
        "Share discharge summaries with primary care within 48 hours",
        "Assign care coordinators to members with frequent admissions",
    ],
    "Medication Adherence": [
        "Offer 90-day refills and mail-order pharmacy",
        "Flag members with refill gaps for pharmacist follow-up",
    ],
    "Access to Care and Appeals": [
        "Monitor network adequacy and appointment wait times",
        "Decide appeals within regulatory timeframes",
    ],
}
DEFAULT_RECOMMENDATIONS = ["Develop a targeted quality improvement plan for this measure"]

# Organizations with a strong accreditation track record (case-insensitive substring match)
HIGH_QUALITY_ORGANIZATIONS: list[str] = [
    "kaiser",
    "unitedhealthcare",
    "humana",
    "aetna",
    "blue cross",
    "blue shield",
    "cigna",
    "anthem",
    "centene",
    "molina",
]

_CODES_BY_NAME = {name.casefold(): code for name, code in STATE_NAMES.items()}


def get_region(state: str) -> str:
    """Map a 2-letter state code or full state name to its region bucket."""
    value = state.strip()
    code = _CODES_BY_NAME.get(value.casefold(), value.upper())
    for region, states in STATES_BY_REGION.items():
        if code in states:
            return region
    return OTHER_REGION
