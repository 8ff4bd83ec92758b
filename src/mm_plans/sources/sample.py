"""Generated sample plan catalog.

Produces raw Medicare Advantage and Medicaid Managed Care records in the
loose field shapes of the published sample files (``plan_name``,
``org_name``, ``overall_star_rating``, ``contact_info``...), so they pass
through the same normalization as any third-party source:
- 2-4 Medicare Advantage plans per state with synthesized star ratings.
- 3 Medicaid plans per state with rating "N/A" (synthesized downstream).

All generation is seeded through the injected generator.
"""

from __future__ import annotations

from datetime import date
from typing import Any

import numpy as np

from mm_plans.config import STATE_NAMES
from mm_plans.metrics import synthesize_star_rating
from mm_plans.sources.base import FetchOptions, SourceAdapter

STATE_DISPLAY_NAMES = {code: name for name, code in STATE_NAMES.items()}

ORGANIZATIONS_BY_STATE: dict[str, list[str]] = {
    "CA": ["Kaiser Permanente", "Golden State Medicare", "Pacific Coast Health", "Blue Shield of California"],
    "TX": ["Lone Star Health", "Humana", "Gulf Coast Care", "UnitedHealthcare"],
    "FL": ["Sunshine Medicare", "Florida Health Network", "Humana", "Coastal Care Plans"],
    "NY": ["Empire Medicare", "New York Health Plus", "Metro Care Network", "Aetna"],
    "PA": ["Keystone Health", "Pennsylvania Medicare", "Liberty Health Plans", "Highmark"],
}

MEDICAID_ORGANIZATIONS = ["Molina Healthcare", "Centene", "Anthem", "Amerigroup", "CareSource"]

MAJOR_COUNTIES: dict[str, str] = {
    "CA": "Los Angeles", "TX": "Harris", "FL": "Miami-Dade", "NY": "New York",
    "PA": "Philadelphia", "IL": "Cook", "OH": "Cuyahoga", "GA": "Fulton",
    "NC": "Mecklenburg", "MI": "Wayne", "NJ": "Bergen", "VA": "Fairfax",
    "WA": "King", "TN": "Davidson", "AZ": "Maricopa",
}


def _organization(state: str, i: int) -> str:
    names = ORGANIZATIONS_BY_STATE.get(state, [])
    return names[i - 1] if i <= len(names) else f"{state} Medicare Organization {i}"


def generate_medicare_records(
    rng: np.random.Generator,
    states: list[str],
    today: date,
) -> list[dict[str, Any]]:
    """Generate 2-4 Medicare Advantage plan records per state."""
    records: list[dict[str, Any]] = []
    for state_index, state in enumerate(states):
        state_name = STATE_DISPLAY_NAMES.get(state, state)
        for i in range(1, int(rng.integers(2, 5)) + 1):
            contract = f"H{state_index * 10 + i:04d}"
            records.append(
                {
                    "plan_type": "Medicare Advantage",
                    "contract_id": contract,
                    "plan_id": f"{contract}-00{i}",
                    "plan_name": f"{state_name} Medicare Advantage Plan {i}",
                    "org_name": _organization(state, i),
                    "state": state,
                    "county": MAJOR_COUNTIES.get(state, "Unknown County"),
                    "enrollment": int(rng.integers(5_000, 180_000)),
                    "overall_star_rating": synthesize_star_rating(rng),
                    "contact_info": f"1-800-{int(rng.integers(100, 1000))}-{int(rng.integers(1000, 10000))}",
                    "zip_code": f"{int(rng.integers(10_000, 100_000)):05d}",
                    "data_source": "Generated Medicare Advantage Sample",
                    "last_updated": today.isoformat(),
                }
            )
    return records


def generate_medicaid_records(
    rng: np.random.Generator,
    states: list[str],
    today: date,
) -> list[dict[str, Any]]:
    """Generate 3 Medicaid Managed Care plan records per state."""
    records: list[dict[str, Any]] = []
    for state in states:
        state_name = STATE_DISPLAY_NAMES.get(state, state)
        for i in range(1, 4):
            records.append(
                {
                    "plan_type": "Medicaid Managed Care",
                    "contract_id": f"MCD-{state}-{i:03d}",
                    "plan_id": f"{state}-MEDICAID-{i}",
                    "plan_name": f"{state_name} Medicaid Health Plan {i}",
                    "org_name": str(rng.choice(MEDICAID_ORGANIZATIONS)),
                    "state": state,
                    "county": MAJOR_COUNTIES.get(state, "Unknown County"),
                    "enrollment": int(rng.integers(20_000, 100_000)),
                    "overall_star_rating": "N/A",
                    "contact_info": f"1-800-{state}-MCD",
                    "website": f"https://{state.lower()}-medicaid.gov",
                    "data_source": "Generated Medicaid Sample",
                    "last_updated": today.isoformat(),
                }
            )
    return records


class SampleAdapter(SourceAdapter):
    """Serve a generated sample catalog; used as a source and as the empty-result fallback."""

    def __init__(
        self,
        name: str,
        rng: np.random.Generator,
        states: list[str],
        today: date | None = None,
    ) -> None:
        super().__init__(name)
        self._rng = rng
        self.states = states
        self.today = today or date.today()

    def generate(self) -> list[dict[str, Any]]:
        return generate_medicare_records(self._rng, self.states, self.today) + generate_medicaid_records(
            self._rng, self.states, self.today
        )

    async def _fetch(self, options: FetchOptions) -> list[Any]:
        return self.generate()
