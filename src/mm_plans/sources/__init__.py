"""Source adapters that fetch raw plan records from each data origin."""

from mm_plans.sources.base import FetchOptions, SourceAdapter, SourceResult, fetch_all
from mm_plans.sources.cms_api import CmsApiAdapter
from mm_plans.sources.json_file import JsonFileAdapter
from mm_plans.sources.sample import SampleAdapter

__all__ = [
    "CmsApiAdapter",
    "FetchOptions",
    "JsonFileAdapter",
    "SampleAdapter",
    "SourceAdapter",
    "SourceResult",
    "fetch_all",
]
