"""Core type definitions for the crawl engine.

This module is intentionally dependency-light so queue, frontier, and
pipeline modules can share records without introducing cycles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ContentKind(str, Enum):
    """Coarse content categories used to decide whether a page is parseable."""

    HTML = "html"
    TEXT = "text"
    BINARY = "binary"
    UNKNOWN = "unknown"


class CrawlStage(str, Enum):
    """Crawl stage names for error reporting."""

    FETCH = "fetch"
    PARSE = "parse"
    WORKER = "worker"


JSONPrimitive = str | int | float | bool | None
JSONValue = JSONPrimitive | list["JSONValue"] | dict[str, "JSONValue"]
JSONDict = dict[str, JSONValue]


def utc_now_iso() -> str:
    """Return an RFC3339-like UTC timestamp string."""

    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def infer_content_kind(content_type: str | None, url: str) -> ContentKind:
    """Infer coarse content kind from HTTP content type and URL."""

    normalized = (content_type or "").split(";", maxsplit=1)[0].strip().lower()
    lower_path = url.lower().split("?", maxsplit=1)[0]

    if normalized in {"text/html", "application/xhtml+xml"}:
        return ContentKind.HTML
    if not normalized and lower_path.endswith((".html", ".htm", "/")):
        return ContentKind.HTML
    if normalized.startswith("text/"):
        return ContentKind.TEXT
    if normalized:
        return ContentKind.BINARY
    return ContentKind.UNKNOWN


@dataclass(frozen=True, slots=True)
class Job:
    """One canonical URL to fetch and parse."""

    url: str
    depth: int = 0
    referrer: str | None = None


@dataclass(slots=True)
class Message:
    """Queue envelope around a job.

    `id` is assigned once at enqueue time and never reused. `attempts` is
    bumped by the queue on every retry.
    """

    id: int
    job: Job
    attempts: int = 0


@dataclass(frozen=True, slots=True)
class PageLinks:
    """Links discovered on one HTML page, in document order."""

    internal_links: list[str] = field(default_factory=list)
    external_links: list[str] = field(default_factory=list)
    assets: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class PageResult:
    """Result of one successfully fetched and parsed page."""

    url: str
    internal_links: list[str] = field(default_factory=list)
    external_links: list[str] = field(default_factory=list)
    assets: list[str] = field(default_factory=list)
    attempts: int = 0

    def to_json(self) -> JSONDict:
        return {
            "internal_links": list(self.internal_links),
            "external_links": list(self.external_links),
            "assets": list(self.assets),
        }


@dataclass(slots=True)
class SiteMap:
    """Every page reached from `start_url`, keyed by canonical URL."""

    start_url: str
    pages: dict[str, PageResult] = field(default_factory=dict)
    dead_links: list[str] = field(default_factory=list)
    stats: dict[str, Any] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.pages)

    def __contains__(self, url: object) -> bool:
        return url in self.pages

    def to_json(
        self,
        *,
        include_dead_links: bool = False,
        include_stats: bool = False,
    ) -> JSONDict:
        payload: JSONDict = {
            "pages": {url: page.to_json() for url, page in sorted(self.pages.items())},
        }
        if include_dead_links:
            payload["dead_links"] = sorted(self.dead_links)
        if include_stats:
            payload["stats"] = dict(self.stats)
        return payload


@dataclass(slots=True)
class FetchResult:
    """Result of attempting to download one URL."""

    requested_url: str
    final_url: str | None
    status_code: int | None
    content_type: str | None
    body: bytes | None
    fetched_at: str = field(default_factory=utc_now_iso)
    elapsed_ms: int | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return (
            self.error is None
            and self.status_code is not None
            and 200 <= self.status_code < 300
            and self.body is not None
        )

    @property
    def retryable(self) -> bool:
        """Transport errors, timeouts, throttling and server errors may heal."""

        if self.error is not None or self.status_code is None:
            return True
        return self.status_code in {408, 429} or self.status_code >= 500

    @property
    def content_length(self) -> int | None:
        return None if self.body is None else len(self.body)

    @property
    def normalized_content_kind(self) -> ContentKind:
        return infer_content_kind(self.content_type, self.final_url or self.requested_url)

    def describe_failure(self) -> str:
        if self.error:
            return self.error
        if self.status_code is not None:
            return f"HTTP status {self.status_code}"
        return "Unknown fetch failure"


@dataclass(slots=True)
class CrawlStats:
    """Simple mutable counters used for crawl summary reporting."""

    frontier_enqueued: int = 0
    frontier_skipped_seen: int = 0
    frontier_skipped_invalid: int = 0
    frontier_skipped_out_of_scope: int = 0
    frontier_skipped_depth: int = 0
    frontier_skipped_budget: int = 0

    fetched_ok: int = 0
    fetched_error: int = 0
    retries: int = 0
    dropped_pages: int = 0
    parsed_ok: int = 0
    parsed_error: int = 0
    pages_recorded: int = 0
    dead_links: int = 0
    invariant_violations: int = 0

    started_at: str = field(default_factory=utc_now_iso)
    finished_at: str | None = None

    def finish(self) -> None:
        self.finished_at = utc_now_iso()

    def to_json(self) -> JSONDict:
        return {
            "frontier_enqueued": self.frontier_enqueued,
            "frontier_skipped_seen": self.frontier_skipped_seen,
            "frontier_skipped_invalid": self.frontier_skipped_invalid,
            "frontier_skipped_out_of_scope": self.frontier_skipped_out_of_scope,
            "frontier_skipped_depth": self.frontier_skipped_depth,
            "frontier_skipped_budget": self.frontier_skipped_budget,
            "fetched_ok": self.fetched_ok,
            "fetched_error": self.fetched_error,
            "retries": self.retries,
            "dropped_pages": self.dropped_pages,
            "parsed_ok": self.parsed_ok,
            "parsed_error": self.parsed_error,
            "pages_recorded": self.pages_recorded,
            "dead_links": self.dead_links,
            "invariant_violations": self.invariant_violations,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
        }


__all__ = [
    "ContentKind",
    "CrawlStage",
    "CrawlStats",
    "FetchResult",
    "Job",
    "JSONDict",
    "JSONPrimitive",
    "JSONValue",
    "Message",
    "PageLinks",
    "PageResult",
    "SiteMap",
    "infer_content_kind",
    "utc_now_iso",
]
