"""Adapter for third-party JSON files of arbitrary plan shapes."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

from mm_plans.errors import SourceUnavailable
from mm_plans.sources.base import FetchOptions, SourceAdapter, extract_records


def load_json_records(path: Path) -> list[Any]:
    """Read a JSON file and return its record list.

    Raises:
        SourceUnavailable: If the file is missing, unreadable, or has no record list.
    """
    if not path.exists():
        raise SourceUnavailable(f"JSON source not found: {path}")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise SourceUnavailable(f"Failed to read JSON source {path}: {e}") from e
    return extract_records(payload)


class JsonFileAdapter(SourceAdapter):
    def __init__(self, name: str, path: Path) -> None:
        super().__init__(name)
        self.path = Path(path)

    async def _fetch(self, options: FetchOptions) -> list[Any]:
        return await asyncio.to_thread(load_json_records, self.path)
