import threading

import pytest

from sitemapper.crawler import (
    CrawlConfig,
    CrawlStage,
    LinkExtractor,
    Pipeline,
    StatsCollector,
    URLParseError,
)
from tests.conftest import FakeFetcher


START = "http://x/index.html"


def run_pipeline(fetcher, *, start_url=START, extractor=None, **overrides):
    overrides.setdefault("concurrency", 4)
    overrides.setdefault("retry_backoff_seconds", 0)
    config = CrawlConfig(start_url=start_url, **overrides)
    return Pipeline(config, fetcher=fetcher, extractor=extractor).run()


def test_maps_small_site():
    fetcher = FakeFetcher(
        {
            START: '<a href="about.html">About</a><a href="https://other.com">Other</a>',
            "http://x/about.html": (
                '<link rel="stylesheet" href="/style.css">'
                '<a href="/index.html#top">Home</a>'
            ),
        }
    )

    site_map = run_pipeline(fetcher)

    assert site_map.to_json(include_dead_links=True) == {
        "pages": {
            "http://x/about.html": {
                "internal_links": ["http://x/index.html"],
                "external_links": [],
                "assets": ["http://x/style.css"],
            },
            "http://x/index.html": {
                "internal_links": ["http://x/about.html"],
                "external_links": ["https://other.com"],
                "assets": [],
            },
        },
        "dead_links": ["https://other.com"],
    }
    assert site_map.stats["pages_recorded"] == 2
    assert site_map.stats["invariant_violations"] == 0
    assert site_map.stats["queue"]["drained"] is True


def _ring_site(size):
    pages = {}
    for idx in range(size):
        links = [(idx + 1) % size, (idx * 7) % size, (idx + 3) % size]
        body = "".join(f'<a href="/p{link}.html">p{link}</a>' for link in links)
        body += f'<a href="https://ext{idx % 3}.org/">ext</a>'
        pages[f"http://x/p{idx}.html"] = body
    return pages


@pytest.mark.parametrize("concurrency", [1, 3, 8])
def test_output_does_not_depend_on_concurrency(concurrency):
    pages = _ring_site(30)
    baseline = run_pipeline(FakeFetcher(pages), start_url="http://x/p0.html", concurrency=1)

    site_map = run_pipeline(
        FakeFetcher(pages), start_url="http://x/p0.html", concurrency=concurrency
    )

    assert len(site_map) == 30
    assert site_map.to_json(include_dead_links=True) == baseline.to_json(include_dead_links=True)
    dead_links = site_map.to_json(include_dead_links=True)["dead_links"]
    assert len(dead_links) == 30
    assert sorted(set(dead_links)) == ["https://ext0.org/", "https://ext1.org/", "https://ext2.org/"]
    assert dead_links.count("https://ext0.org/") == 10


def test_repeated_external_links_are_all_reported():
    fetcher = FakeFetcher(
        {
            START: '<a href="https://b.com/">1</a><a href="https://b.com/">2</a><a href="/a">a</a>',
            "http://x/a": '<a href="https://b.com/">3</a>',
        }
    )

    site_map = run_pipeline(fetcher)

    assert site_map.pages[START].external_links == ["https://b.com/", "https://b.com/"]
    assert site_map.to_json(include_dead_links=True)["dead_links"] == ["https://b.com/"] * 3
    assert site_map.stats["dead_links"] == 3


def test_cycles_fetch_each_page_once():
    fetcher = FakeFetcher(
        {
            "http://x/a": '<a href="/b">b</a><a href="/c?x=1">c</a>',
            "http://x/b": '<a href="/c">c</a><a href="/a#again">a</a>',
            "http://x/c": '<a href="/a">a</a><a href="/b">b</a><a href="/c">self</a>',
        }
    )

    site_map = run_pipeline(fetcher, start_url="http://x/a", concurrency=8)

    assert sorted(site_map.pages) == ["http://x/a", "http://x/b", "http://x/c"]
    for url in site_map.pages:
        assert fetcher.call_count(url) == 1
    assert site_map.pages["http://x/c"].internal_links == ["http://x/a", "http://x/b", "http://x/c"]


def test_dot_segment_links_map_to_one_page():
    fetcher = FakeFetcher(
        {
            START: '<a href="/about.html">a</a><a href="http://x/sub/../about.html">b</a>',
            "http://x/about.html": '<a href="./sub/../index.html">home</a>',
        }
    )

    site_map = run_pipeline(fetcher)

    assert sorted(site_map.pages) == ["http://x/about.html", START]
    assert site_map.pages[START].internal_links == ["http://x/about.html"]
    assert site_map.pages["http://x/about.html"].internal_links == [START]
    assert fetcher.call_count("http://x/about.html") == 1


def test_transient_failure_is_retried():
    fetcher = FakeFetcher({START: "<p>hello</p>"}, failures={START: 1})

    site_map = run_pipeline(fetcher, max_attempts=3)

    assert START in site_map
    assert site_map.pages[START].attempts == 1
    assert fetcher.call_count(START) == 2
    assert site_map.stats["retries"] == 1
    assert site_map.stats["dropped_pages"] == 0


def test_exhausted_retries_drop_the_page():
    fetcher = FakeFetcher(
        {START: '<a href="/flaky.html">flaky</a>', "http://x/flaky.html": "<p>never</p>"},
        failures={"http://x/flaky.html": 10},
    )

    site_map = run_pipeline(fetcher, max_attempts=3)

    assert list(site_map.pages) == [START]
    assert site_map.pages[START].internal_links == ["http://x/flaky.html"]
    assert fetcher.call_count("http://x/flaky.html") == 3
    assert site_map.stats["dropped_pages"] == 1
    assert site_map.stats["dropped_by_stage"] == {"fetch": 1}


def test_client_errors_are_not_retried():
    fetcher = FakeFetcher({START: '<a href="/missing.html">gone</a>'})

    site_map = run_pipeline(fetcher)

    assert list(site_map.pages) == [START]
    assert fetcher.call_count("http://x/missing.html") == 1
    assert site_map.stats["retries"] == 0
    assert site_map.stats["fetch"]["status_code_counts"] == {"200": 1, "404": 1}


def test_non_html_pages_are_abandoned():
    fetcher = FakeFetcher(
        {
            START: '<a href="/doc.pdf">doc</a>',
            "http://x/doc.pdf": ("application/pdf", "%PDF-1.4"),
        }
    )

    site_map = run_pipeline(fetcher)

    assert list(site_map.pages) == [START]
    assert site_map.pages[START].internal_links == ["http://x/doc.pdf"]
    assert site_map.stats["parsed_error"] == 1
    assert site_map.stats["dropped_by_stage"] == {"parse": 1}


class CrashOnceExtractor(LinkExtractor):
    def __init__(self):
        super().__init__()
        self.crashed = False
        self._lock = threading.Lock()

    def extract(self, page_url, body, *, content_type=None):
        with self._lock:
            crash, self.crashed = not self.crashed, True
        if crash:
            raise RuntimeError("boom")
        return super().extract(page_url, body, content_type=content_type)


def test_unexpected_worker_error_settles_the_lease():
    fetcher = FakeFetcher({START: "<p>ok</p>"})

    site_map = run_pipeline(fetcher, extractor=CrashOnceExtractor())

    assert START in site_map
    assert site_map.pages[START].attempts == 1
    assert site_map.stats["retries"] == 1
    assert site_map.stats["invariant_violations"] == 0


class AlwaysCrashExtractor(LinkExtractor):
    def extract(self, page_url, body, *, content_type=None):
        raise RuntimeError("boom")


def test_repeated_worker_errors_drop_the_page_at_worker_stage():
    fetcher = FakeFetcher({START: "<p>ok</p>"})

    site_map = run_pipeline(fetcher, extractor=AlwaysCrashExtractor(), max_attempts=2)

    assert len(site_map) == 0
    assert fetcher.call_count(START) == 2
    assert site_map.stats["dropped_by_stage"] == {CrawlStage.WORKER.value: 1}
    assert {stage.value for stage in CrawlStage} == {"fetch", "parse", "worker"}


def test_stats_restart_with_each_run():
    stats = StatsCollector()
    pipeline = Pipeline(
        CrawlConfig(start_url=START, concurrency=2, retry_backoff_seconds=0),
        fetcher=FakeFetcher({START: '<a href="/a">a</a>', "http://x/a": ""}),
        stats=stats,
    )
    stats.record_retry()
    stats.record_dropped(CrawlStage.FETCH)

    first = pipeline.run()
    second = pipeline.run()

    assert len(first) == len(second) == 2
    assert second.stats["fetched_ok"] == 2
    assert second.stats["pages_recorded"] == 2
    assert second.stats["frontier_enqueued"] == 2
    assert first.stats["retries"] == 0
    assert first.stats["dropped_by_stage"] == {}


class BlockingFetcher(FakeFetcher):
    def __init__(self, pages):
        super().__init__(pages)
        self.started = threading.Event()
        self.release = threading.Event()

    def fetch(self, url):
        self.started.set()
        self.release.wait(timeout=5)
        return super().fetch(url)


def test_cancel_stops_a_running_crawl():
    fetcher = BlockingFetcher(
        {START: "".join(f'<a href="/p{idx}.html">p</a>' for idx in range(20))}
    )
    pipeline = Pipeline(
        CrawlConfig(start_url=START, concurrency=1, retry_backoff_seconds=0),
        fetcher=fetcher,
    )
    outcome = {}

    thread = threading.Thread(target=lambda: outcome.setdefault("site_map", pipeline.run()))
    thread.start()

    assert fetcher.started.wait(timeout=5)
    pipeline.cancel()
    fetcher.release.set()
    thread.join(timeout=10)

    assert not thread.is_alive()
    assert fetcher.calls == [START]
    assert list(outcome["site_map"].pages) == [START]


def test_cancel_before_run_returns_empty_map():
    fetcher = FakeFetcher({START: "<p>never fetched</p>"})
    pipeline = Pipeline(CrawlConfig(start_url=START, concurrency=2), fetcher=fetcher)

    pipeline.cancel()
    site_map = pipeline.run()

    assert len(site_map) == 0
    assert fetcher.calls == []


def test_page_budget_limits_fetches():
    fetcher = FakeFetcher({START: '<a href="/about.html">about</a>', "http://x/about.html": ""})

    site_map = run_pipeline(fetcher, max_pages=1)

    assert list(site_map.pages) == [START]
    assert site_map.pages[START].internal_links == ["http://x/about.html"]
    assert fetcher.calls == [START]
    assert site_map.stats["frontier_skipped_budget"] == 1


def test_depth_limit_keeps_links_but_skips_fetch():
    fetcher = FakeFetcher({START: '<a href="/about.html">about</a>', "http://x/about.html": ""})

    site_map = run_pipeline(fetcher, max_depth=0)

    assert site_map.pages[START].internal_links == ["http://x/about.html"]
    assert fetcher.calls == [START]
    assert site_map.stats["frontier_skipped_depth"] == 1


def test_invalid_start_url_is_rejected():
    fetcher = FakeFetcher({})
    pipeline = Pipeline(CrawlConfig(start_url="example.com"), fetcher=fetcher)

    with pytest.raises(URLParseError):
        pipeline.run()
    assert fetcher.calls == []
