"""Concurrent crawl orchestration: a fixed worker pool plus its coordinator."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import queue
import threading
from typing import Any

from .config import CrawlConfig
from .constants import DEFAULT_CONCURRENCY
from .fetcher import Fetcher
from .frontier import EnqueueStatus, Frontier
from .parsers import ExtractionError, LinkExtractor, LinkExtractorConfig
from .stats import StatsCollector
from .types import CrawlStage, Message, PageResult, SiteMap
from .url import validate_start_url
from .work_queue import LeaseError, WorkQueue


LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class _CrawlRun:
    """State shared by the workers of one `Pipeline.run` call."""

    start_url: str
    work_queue: WorkQueue
    frontier: Frontier
    fetcher: Any
    results: queue.SimpleQueue = field(default_factory=queue.SimpleQueue)
    dead_links: queue.SimpleQueue = field(default_factory=queue.SimpleQueue)


class Pipeline:
    """Maps one site: seeds the queue, runs the workers, builds the `SiteMap`.

    Each worker leases a message, fetches and parses the page, pushes newly
    discovered internal links through the frontier, and settles the lease
    with exactly one `delete` or `error`. The coordinator returns once the
    work queue reports that nothing is pending or leased.
    """

    def __init__(
        self,
        config: CrawlConfig,
        *,
        fetcher: Any | None = None,
        extractor: LinkExtractor | None = None,
        stats: StatsCollector | None = None,
    ) -> None:
        self.config = config

        self.fetcher = fetcher
        self.extractor = extractor or LinkExtractor(
            LinkExtractorConfig(include_nofollow_links=config.include_nofollow_links)
        )
        self.stats = stats or StatsCollector()

        self._cancelled = threading.Event()
        self._active_queue: WorkQueue | None = None

    def run(self) -> SiteMap:
        """Crawl from `config.start_url` and return the finished site map."""

        start_url = validate_start_url(self.config.start_url)
        self.stats.reset()
        fetcher = self.fetcher if self.fetcher is not None else Fetcher(self.config)

        work_queue = WorkQueue()
        frontier = Frontier(
            work_queue,
            start_url,
            max_depth=self.config.max_depth,
            max_pages=self.config.max_pages,
        )
        state = _CrawlRun(
            start_url=start_url,
            work_queue=work_queue,
            frontier=frontier,
            fetcher=fetcher,
        )

        self._active_queue = work_queue
        if self._cancelled.is_set():
            work_queue.close()

        seed = frontier.seed()
        self.stats.record_enqueue(seed)
        if seed.status not in {EnqueueStatus.ENQUEUED, EnqueueStatus.SKIPPED_CLOSED}:
            raise RuntimeError(f"Could not seed crawl with {start_url}: {seed.status.value}")

        LOGGER.info(
            "Starting crawl: start_url=%s, workers=%d",
            start_url,
            self.config.concurrency,
        )

        workers = [
            threading.Thread(
                target=self._worker,
                args=(state,),
                name=f"crawler-worker-{idx}",
                daemon=True,
            )
            for idx in range(self.config.concurrency)
        ]

        for worker in workers:
            worker.start()

        try:
            drained = work_queue.wait()
        except KeyboardInterrupt:
            work_queue.close()
            raise
        finally:
            for worker in workers:
                worker.join(timeout=self.config.worker_join_timeout_seconds)
            if self.fetcher is None:
                fetcher.close()

        if not drained:
            LOGGER.warning(
                "Crawl of %s cancelled with %d messages outstanding",
                start_url,
                work_queue.outstanding,
            )

        return self._build_site_map(state)

    def cancel(self) -> None:
        """Stop handing out work; `run` returns with whatever was collected."""

        self._cancelled.set()
        work_queue = self._active_queue
        if work_queue is not None:
            work_queue.close()

    def _worker(self, state: _CrawlRun) -> None:
        while True:
            message = state.work_queue.next()
            if message is None:
                return

            try:
                self._process(state, message)
            except Exception as exc:
                # The lease is still open here; settle it so the queue can drain.
                LOGGER.exception("Worker failed while processing %s", message.job.url)
                self._retry_or_drop(
                    state.work_queue,
                    message,
                    CrawlStage.WORKER,
                    f"{exc.__class__.__name__}: {exc}",
                )

    def _process(self, state: _CrawlRun, message: Message) -> None:
        job = message.job
        LOGGER.info("Crawling %s (attempt %d)", job.url, message.attempts + 1)

        fetch_result = state.fetcher.fetch(job.url)
        self.stats.record_fetch(fetch_result)

        if not fetch_result.ok:
            reason = fetch_result.describe_failure()
            if fetch_result.retryable:
                self._retry_or_drop(state.work_queue, message, CrawlStage.FETCH, reason)
            else:
                LOGGER.warning("Dropping %s: %s", job.url, reason)
                self.stats.record_dropped(CrawlStage.FETCH)
                self._settle(state.work_queue, message, retry=False)
            return

        try:
            links = self.extractor.extract(
                job.url,
                fetch_result.body or b"",
                content_type=fetch_result.content_type,
            )
        except ExtractionError as exc:
            LOGGER.warning("Abandoning %s: %s", job.url, exc)
            self.stats.record_parse(False)
            self.stats.record_dropped(CrawlStage.PARSE)
            self._settle(state.work_queue, message, retry=False)
            return
        self.stats.record_parse(True)

        for link in links.external_links:
            state.dead_links.put(link)
        self.stats.record_dead_links(len(links.external_links))

        internal_links: list[str] = []
        seen: set[str] = set()
        for link in links.internal_links:
            result = state.frontier.push(
                link,
                base=job.url,
                depth=job.depth + 1,
                referrer=job.url,
            )
            self.stats.record_enqueue(result)
            if result.normalized_url is None:
                LOGGER.debug("Skipping malformed link %r on %s", link, job.url)
                continue
            if result.normalized_url in seen:
                continue
            seen.add(result.normalized_url)
            internal_links.append(result.normalized_url)

        state.results.put(
            PageResult(
                url=job.url,
                internal_links=internal_links,
                external_links=list(links.external_links),
                assets=list(links.assets),
                attempts=message.attempts,
            )
        )
        self.stats.record_page()
        self._settle(state.work_queue, message, retry=False)

    def _retry_or_drop(
        self,
        work_queue: WorkQueue,
        message: Message,
        stage: CrawlStage,
        reason: str,
    ) -> None:
        attempt = message.attempts + 1
        max_attempts = self.config.max_attempts

        if max_attempts is not None and attempt >= max_attempts:
            LOGGER.error(
                "Giving up on %s after %d attempts: %s",
                message.job.url,
                attempt,
                reason,
            )
            self.stats.record_dropped(stage)
            self._settle(work_queue, message, retry=False)
            return

        delay = self.config.retry_backoff_seconds * attempt
        LOGGER.warning(
            "Attempt %d for %s failed (%s); retrying in %.2fs",
            attempt,
            message.job.url,
            reason,
            delay,
        )
        if delay > 0:
            # Linear backoff, cut short by cancellation.
            self._cancelled.wait(delay)

        self.stats.record_retry()
        self._settle(work_queue, message, retry=True)

    def _settle(self, work_queue: WorkQueue, message: Message, *, retry: bool) -> None:
        try:
            if retry:
                work_queue.error(message)
            else:
                work_queue.delete(message)
        except LeaseError:
            self.stats.record_invariant_violation()
            LOGGER.exception("Lease invariant violated for message %d", message.id)

    def _build_site_map(self, state: _CrawlRun) -> SiteMap:
        pages: dict[str, PageResult] = {}
        while True:
            try:
                page = state.results.get_nowait()
            except queue.Empty:
                break
            if page.url in pages:
                LOGGER.warning("Ignoring duplicate result for %s", page.url)
                continue
            pages[page.url] = page

        dead_links: list[str] = []
        while True:
            try:
                dead_links.append(state.dead_links.get_nowait())
            except queue.Empty:
                break

        self.stats.record_queue_snapshot(state.work_queue.snapshot())
        self.stats.record_frontier_snapshot(state.frontier.snapshot())
        self.stats.finish()
        summary = self.stats.to_json()

        LOGGER.info(
            "Crawl finished: pages=%d, dead_links=%d, retries=%d, dropped=%d",
            len(pages),
            len(dead_links),
            summary["retries"],
            summary["dropped_pages"],
        )

        return SiteMap(
            start_url=state.start_url,
            pages=pages,
            dead_links=dead_links,
            stats=summary,
        )


def crawl(
    start_url: str,
    concurrency: int = DEFAULT_CONCURRENCY,
    **overrides: Any,
) -> SiteMap:
    """Map the site at `start_url` with default components."""

    config = CrawlConfig(start_url=start_url, concurrency=concurrency, **overrides)
    return Pipeline(config).run()


__all__ = [
    "Pipeline",
    "crawl",
]
