"""Deduplicating URL frontier in front of the work queue."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import threading

from .types import Job
from .url import URLParseError, canonicalize, host_key
from .work_queue import QueueClosedError, WorkQueue


class EnqueueStatus(str, Enum):
    """Result status for frontier enqueue attempts."""

    ENQUEUED = "enqueued"
    SKIPPED_INVALID_URL = "skipped_invalid_url"
    SKIPPED_OUT_OF_SCOPE = "skipped_out_of_scope"
    SKIPPED_DEPTH = "skipped_depth"
    SKIPPED_SEEN = "skipped_seen"
    SKIPPED_BUDGET = "skipped_budget"
    SKIPPED_CLOSED = "skipped_closed"


@dataclass(frozen=True, slots=True)
class EnqueueResult:
    """Outcome of one enqueue attempt."""

    status: EnqueueStatus
    normalized_url: str | None = None
    job: Job | None = None

    @property
    def accepted(self) -> bool:
        return self.status == EnqueueStatus.ENQUEUED


class Frontier:
    """Set of canonical URLs already handed to the work queue.

    - `try_claim` is the only dedup gate: check-and-set under one lock.
    - A claim is never released, so each URL is enqueued at most once per crawl.
    - Scope is the start URL's host; optional depth and page budgets apply.
    """

    def __init__(
        self,
        queue: WorkQueue,
        start_url: str,
        *,
        max_depth: int | None = None,
        max_pages: int | None = None,
    ) -> None:
        self.queue = queue
        self.start_url = start_url
        self.max_depth = max_depth
        self.max_pages = max_pages

        self._scope = host_key(start_url)
        self._lock = threading.Lock()
        self._claimed: set[str] = set()

        self._skipped_seen_count = 0
        self._skipped_budget_count = 0

    def try_claim(self, url: str) -> bool:
        """Claim a canonical URL; False if it was claimed before or the budget is spent."""

        with self._lock:
            if url in self._claimed:
                self._skipped_seen_count += 1
                return False
            if self.max_pages is not None and len(self._claimed) >= self.max_pages:
                self._skipped_budget_count += 1
                return False
            self._claimed.add(url)
            return True

    def seed(self) -> EnqueueResult:
        """Enqueue the start URL as the depth-0 job."""

        return self.push(self.start_url, base=self.start_url, depth=0, referrer=None)

    def push(
        self,
        link: str,
        *,
        base: str,
        depth: int,
        referrer: str | None = None,
    ) -> EnqueueResult:
        """Canonicalize, filter, claim, and enqueue one discovered link."""

        try:
            normalized = canonicalize(base, link)
        except URLParseError:
            return EnqueueResult(EnqueueStatus.SKIPPED_INVALID_URL)

        if host_key(normalized) != self._scope:
            return EnqueueResult(EnqueueStatus.SKIPPED_OUT_OF_SCOPE, normalized_url=normalized)

        if self.max_depth is not None and depth > self.max_depth:
            return EnqueueResult(EnqueueStatus.SKIPPED_DEPTH, normalized_url=normalized)

        if not self.try_claim(normalized):
            status = EnqueueStatus.SKIPPED_SEEN if normalized in self else EnqueueStatus.SKIPPED_BUDGET
            return EnqueueResult(status, normalized_url=normalized)

        job = Job(url=normalized, depth=depth, referrer=referrer)
        try:
            self.queue.add(job)
        except QueueClosedError:
            return EnqueueResult(EnqueueStatus.SKIPPED_CLOSED, normalized_url=normalized)

        return EnqueueResult(EnqueueStatus.ENQUEUED, normalized_url=normalized, job=job)

    def __contains__(self, url: object) -> bool:
        with self._lock:
            return url in self._claimed

    def __len__(self) -> int:
        with self._lock:
            return len(self._claimed)

    def claimed_urls(self) -> set[str]:
        """Return snapshot of claimed URLs."""

        with self._lock:
            return set(self._claimed)

    def snapshot(self) -> dict[str, int]:
        """Return frontier counters for logs/stats reporting."""

        with self._lock:
            return {
                "claimed": len(self._claimed),
                "skipped_seen": self._skipped_seen_count,
                "skipped_budget": self._skipped_budget_count,
            }


__all__ = [
    "EnqueueResult",
    "EnqueueStatus",
    "Frontier",
]
