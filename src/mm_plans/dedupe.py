"""Plan deduplication.

Identity key = trimmed/case-folded name + type + state + trimmed/case-folded
organization + contract id, omitting empty or placeholder parts. The first
occurrence of each key survives, in original order; later occurrences are
reported as duplicate groups with their original positions.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

from mm_plans.schema import NOT_AVAILABLE, UNKNOWN_ORGANIZATION, UNKNOWN_STATE, Plan

logger = logging.getLogger(__name__)

KEY_SEPARATOR = "|"
_PLACEHOLDERS = {NOT_AVAILABLE, UNKNOWN_STATE, UNKNOWN_ORGANIZATION}


class DuplicateGroup(BaseModel):
    """All positions that share one identity key."""

    key: str
    original_index: int = Field(description="Position of the kept (first) occurrence")
    duplicate_indices: list[int] = Field(default_factory=list)

    @property
    def pairs(self) -> list[tuple[int, int]]:
        """(original-index, duplicate-index) pairs."""
        return [(self.original_index, i) for i in self.duplicate_indices]


class DedupeResult(BaseModel):
    """Outcome of a deduplication pass."""

    unique_plans: list[Plan] = Field(default_factory=list)
    removed_count: int = 0
    groups: list[DuplicateGroup] = Field(default_factory=list)


def _part(value: str, fold: bool = False) -> str:
    text = value.strip()
    if text in _PLACEHOLDERS:
        return ""
    return text.casefold() if fold else text


def identity_key(plan: Plan) -> str:
    """Stable identity key for a plan; empty parts are left out."""
    parts = [
        _part(plan.name, fold=True),
        plan.type,
        _part(plan.state),
        _part(plan.organization, fold=True),
        _part(plan.contract_id),
    ]
    return KEY_SEPARATOR.join(p for p in parts if p)


def dedupe(plans: list[Plan]) -> DedupeResult:
    """Remove repeated plans, keeping the first occurrence of each key.

    Args:
        plans: Plans in their working order.

    Returns:
        DedupeResult with unique plans (first-occurrence order), the number
        removed, and one group per key that had duplicates.
    """
    first_seen: dict[str, int] = {}
    groups: dict[str, DuplicateGroup] = {}
    unique: list[Plan] = []

    for position, plan in enumerate(plans):
        key = identity_key(plan)
        if key not in first_seen:
            first_seen[key] = position
            unique.append(plan)
            continue
        group = groups.setdefault(
            key, DuplicateGroup(key=key, original_index=first_seen[key])
        )
        group.duplicate_indices.append(position)
        logger.debug("Duplicate plan %r at %d (first seen at %d)", plan.name, position, first_seen[key])

    removed = len(plans) - len(unique)
    if removed:
        logger.info("Removed %d duplicate plans across %d groups", removed, len(groups))

    return DedupeResult(
        unique_plans=unique,
        removed_count=removed,
        groups=sorted(groups.values(), key=lambda g: g.original_index),
    )
