"""Thread-safe crawl statistics aggregation utilities."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timezone
import threading
from typing import Any, Mapping

from .frontier import EnqueueResult, EnqueueStatus
from .types import CrawlStage, CrawlStats, FetchResult


class StatsCollector:
    """Collect and summarize crawler runtime statistics.

    The collector is thread-safe and intended for use across concurrent
    fetch/parse workers.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.reset()

    def reset(self) -> None:
        """Drop every counter and restart the clock."""

        with self._lock:
            self._core = CrawlStats()

            self._queue_snapshot: dict[str, int | bool] = {}
            self._frontier_snapshot: dict[str, int] = {}

            self._fetch_status_code_counts: dict[str, int] = defaultdict(int)
            self._fetch_error_type_counts: dict[str, int] = defaultdict(int)
            self._fetch_content_kind_counts: dict[str, int] = defaultdict(int)
            self._fetch_elapsed_ms_total = 0
            self._fetch_elapsed_samples = 0
            self._fetch_bytes_total = 0

            self._error_stage_counts: dict[str, int] = defaultdict(int)
            self._custom_counters: dict[str, int] = defaultdict(int)

    def record_enqueue(self, result_or_status: EnqueueResult | EnqueueStatus) -> None:
        """Record one frontier enqueue outcome."""

        if isinstance(result_or_status, EnqueueResult):
            status = result_or_status.status
        else:
            status = result_or_status

        with self._lock:
            if status == EnqueueStatus.ENQUEUED:
                self._core.frontier_enqueued += 1
            elif status == EnqueueStatus.SKIPPED_SEEN:
                self._core.frontier_skipped_seen += 1
            elif status == EnqueueStatus.SKIPPED_INVALID_URL:
                self._core.frontier_skipped_invalid += 1
            elif status == EnqueueStatus.SKIPPED_OUT_OF_SCOPE:
                self._core.frontier_skipped_out_of_scope += 1
            elif status == EnqueueStatus.SKIPPED_DEPTH:
                self._core.frontier_skipped_depth += 1
            elif status == EnqueueStatus.SKIPPED_BUDGET:
                self._core.frontier_skipped_budget += 1
            else:
                self._custom_counters[f"frontier_{status.value}"] += 1

    def record_fetch(self, result: FetchResult) -> None:
        """Record one fetch result."""

        with self._lock:
            if result.ok:
                self._core.fetched_ok += 1
            else:
                self._core.fetched_error += 1

            if result.status_code is not None:
                self._fetch_status_code_counts[str(result.status_code)] += 1

            if result.error:
                err_type = result.error.split(":", maxsplit=1)[0].strip() or "Unknown"
                self._fetch_error_type_counts[err_type] += 1

            self._fetch_content_kind_counts[result.normalized_content_kind.value] += 1

            if result.elapsed_ms is not None:
                self._fetch_elapsed_ms_total += int(result.elapsed_ms)
                self._fetch_elapsed_samples += 1

            if result.content_length is not None:
                self._fetch_bytes_total += int(result.content_length)

    def record_parse(self, ok: bool) -> None:
        with self._lock:
            if ok:
                self._core.parsed_ok += 1
            else:
                self._core.parsed_error += 1

    def record_retry(self) -> None:
        with self._lock:
            self._core.retries += 1

    def record_dropped(self, stage: CrawlStage) -> None:
        """Record a page abandoned without a result."""

        with self._lock:
            self._core.dropped_pages += 1
            self._error_stage_counts[stage.value] += 1

    def record_page(self) -> None:
        with self._lock:
            self._core.pages_recorded += 1

    def record_dead_links(self, count: int) -> None:
        if count <= 0:
            return
        with self._lock:
            self._core.dead_links += count

    def record_invariant_violation(self) -> None:
        with self._lock:
            self._core.invariant_violations += 1

    def record_queue_snapshot(self, snapshot: Mapping[str, int | bool]) -> None:
        """Attach latest work queue snapshot for diagnostics."""

        with self._lock:
            self._queue_snapshot = dict(snapshot)

    def record_frontier_snapshot(self, snapshot: Mapping[str, int]) -> None:
        """Attach latest frontier snapshot for diagnostics."""

        with self._lock:
            self._frontier_snapshot = dict(snapshot)

    def finish(self) -> None:
        """Mark crawl as finished."""

        with self._lock:
            self._core.finish()

    def to_json(self) -> dict[str, Any]:
        """Return a JSON-serializable summary payload."""

        with self._lock:
            core = self._core.to_json()

            start = _parse_iso_utc(self._core.started_at)
            end = _parse_iso_utc(self._core.finished_at) if self._core.finished_at else datetime.now(
                timezone.utc
            )
            duration_seconds = max(0.0, (end - start).total_seconds())

            fetch_elapsed_avg = (
                self._fetch_elapsed_ms_total / self._fetch_elapsed_samples
                if self._fetch_elapsed_samples > 0
                else 0.0
            )
            fetched_total = self._core.fetched_ok + self._core.fetched_error

            return {
                **core,
                "duration_seconds": duration_seconds,
                "throughput": {
                    "fetched_per_second": (
                        fetched_total / duration_seconds if duration_seconds > 0 else 0.0
                    ),
                    "pages_per_second": (
                        self._core.pages_recorded / duration_seconds if duration_seconds > 0 else 0.0
                    ),
                },
                "queue": dict(self._queue_snapshot),
                "frontier": dict(self._frontier_snapshot),
                "fetch": {
                    "status_code_counts": dict(self._fetch_status_code_counts),
                    "error_type_counts": dict(self._fetch_error_type_counts),
                    "content_kind_counts": dict(self._fetch_content_kind_counts),
                    "elapsed_ms_total": self._fetch_elapsed_ms_total,
                    "elapsed_ms_samples": self._fetch_elapsed_samples,
                    "elapsed_ms_avg": fetch_elapsed_avg,
                    "bytes_total": self._fetch_bytes_total,
                },
                "dropped_by_stage": dict(self._error_stage_counts),
                "custom_counters": dict(self._custom_counters),
            }


def _parse_iso_utc(value: str | None) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return datetime.now(timezone.utc)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


__all__ = ["StatsCollector"]
