"""Crawler package: config, shared types, and the concurrent crawl engine."""

from .config import CrawlConfig, load_config, save_config
from .fetcher import Fetcher
from .frontier import EnqueueResult, EnqueueStatus, Frontier
from .parsers import ExtractionError, LinkExtractor, LinkExtractorConfig
from .pipeline import Pipeline, crawl
from .stats import StatsCollector
from .storage import dump_site_map, save_site_map
from .types import (
    ContentKind,
    CrawlStage,
    CrawlStats,
    FetchResult,
    Job,
    Message,
    PageLinks,
    PageResult,
    SiteMap,
    infer_content_kind,
    utc_now_iso,
)
from .url import URLParseError, canonicalize, host_key, is_internal, resolve_href, validate_start_url
from .work_queue import IncrementingIDGenerator, LeaseError, QueueClosedError, WorkQueue

__all__ = [
    "ContentKind",
    "CrawlConfig",
    "CrawlStage",
    "CrawlStats",
    "EnqueueResult",
    "EnqueueStatus",
    "ExtractionError",
    "FetchResult",
    "Fetcher",
    "Frontier",
    "IncrementingIDGenerator",
    "Job",
    "LeaseError",
    "LinkExtractor",
    "LinkExtractorConfig",
    "Message",
    "PageLinks",
    "PageResult",
    "Pipeline",
    "QueueClosedError",
    "SiteMap",
    "StatsCollector",
    "URLParseError",
    "WorkQueue",
    "canonicalize",
    "crawl",
    "dump_site_map",
    "host_key",
    "infer_content_kind",
    "is_internal",
    "load_config",
    "resolve_href",
    "save_config",
    "save_site_map",
    "utc_now_iso",
    "validate_start_url",
]
