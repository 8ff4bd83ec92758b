"""Error taxonomy for the plan pipeline.

None of these are fatal to a pipeline run: each is raised close to the
failing step and recovered one level up (empty source result, skipped
record, discarded cache entry).
"""

from __future__ import annotations


class PlanPipelineError(Exception):
    """Base class for recoverable pipeline errors."""


class SourceUnavailable(PlanPipelineError):
    """An adapter could not produce records (network, status, or payload error)."""


class MalformedRecord(PlanPipelineError):
    """A raw record has no salvageable identity and cannot be normalized."""


class CacheCorruption(PlanPipelineError):
    """A cached blob failed to parse or validate."""
