"""Remote adapter for CMS datastore query endpoints.

Pages through ``<url>/<dataset_id>?limit=&offset=`` and tries each
configured dataset id in order, keeping the first one that yields records.
Uses httpx for HTTP calls.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from mm_plans.errors import SourceUnavailable
from mm_plans.sources.base import FetchOptions, SourceAdapter, extract_records

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "Accept": "application/json",
    "User-Agent": "mm-plans/0.1",
}


class CmsApiAdapter(SourceAdapter):
    """Fetch plan records from a paginated CMS datastore API."""

    def __init__(
        self,
        name: str,
        url: str,
        dataset_ids: list[str],
        page_size: int = 500,
        max_pages: int = 20,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            name: Adapter name (provenance hint).
            url: Base query URL; the dataset id is appended as a path segment.
            dataset_ids: Datasets to try in order.
            page_size: Records requested per page.
            max_pages: Upper bound on pages fetched per dataset.
            transport: Optional httpx transport (e.g. MockTransport in tests).
        """
        super().__init__(name)
        self.url = url.rstrip("/")
        self.dataset_ids = dataset_ids
        self.page_size = page_size
        self.max_pages = max_pages
        self._transport = transport

    async def _fetch_page(
        self,
        client: httpx.AsyncClient,
        dataset_id: str,
        offset: int,
    ) -> list[Any]:
        logger.debug("Fetching %s dataset %s: offset=%d limit=%d", self.name, dataset_id, offset, self.page_size)
        try:
            response = await client.get(
                f"{self.url}/{dataset_id}",
                params={"limit": self.page_size, "offset": offset},
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise SourceUnavailable(
                f"HTTP {e.response.status_code} from dataset {dataset_id}"
            ) from e
        except httpx.HTTPError as e:
            raise SourceUnavailable(f"Request to dataset {dataset_id} failed: {e}") from e
        except ValueError as e:
            raise SourceUnavailable(f"Malformed JSON from dataset {dataset_id}: {e}") from e
        return extract_records(payload)

    async def _fetch_dataset(
        self,
        client: httpx.AsyncClient,
        dataset_id: str,
        limit: int | None,
    ) -> list[Any]:
        records: list[Any] = []
        for page in range(self.max_pages):
            batch = await self._fetch_page(client, dataset_id, page * self.page_size)
            records.extend(batch)
            if len(batch) < self.page_size or (limit is not None and len(records) >= limit):
                break
        return records

    async def _fetch(self, options: FetchOptions) -> list[Any]:
        if not self.dataset_ids:
            raise SourceUnavailable("No dataset ids configured")

        last_error: SourceUnavailable | None = None
        async with httpx.AsyncClient(
            transport=self._transport,
            headers=DEFAULT_HEADERS,
            timeout=options.timeout_seconds,
        ) as client:
            for dataset_id in self.dataset_ids:
                try:
                    records = await self._fetch_dataset(client, dataset_id, options.limit)
                except SourceUnavailable as e:
                    logger.warning("Dataset %s failed, trying next: %s", dataset_id, e)
                    last_error = e
                    continue
                if records:
                    logger.info("Dataset %s yielded %d records", dataset_id, len(records))
                    return records

        if last_error is not None:
            raise last_error
        return []
