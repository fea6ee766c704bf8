import socket

from sitemapper.crawler import CrawlConfig, Fetcher, Pipeline, crawl


def _unused_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def test_fetch_ok_page(site_server):
    url = f"{site_server}/index.html"
    with Fetcher(CrawlConfig(start_url=url, timeout_seconds=5)) as fetcher:
        result = fetcher.fetch(url)

    assert result.ok
    assert result.status_code == 200
    assert result.content_type.startswith("text/html")
    assert b"about.html" in result.body
    assert result.elapsed_ms is not None


def test_fetch_missing_page_is_not_retryable(site_server):
    url = f"{site_server}/nope.html"
    with Fetcher(CrawlConfig(start_url=url, timeout_seconds=5)) as fetcher:
        result = fetcher.fetch(url)

    assert not result.ok
    assert result.status_code == 404
    assert not result.retryable
    assert result.describe_failure() == "HTTP status 404"


def test_fetch_connection_error_is_reported(monkeypatch):
    for name in ("HTTP_PROXY", "http_proxy", "ALL_PROXY", "all_proxy"):
        monkeypatch.delenv(name, raising=False)
    url = f"http://127.0.0.1:{_unused_port()}/"

    with Fetcher(CrawlConfig(start_url=url, timeout_seconds=2)) as fetcher:
        result = fetcher.fetch(url)

    assert not result.ok
    assert result.status_code is None
    assert result.error.startswith("ConnectionError")
    assert result.retryable


def test_closed_fetcher_refuses_work():
    fetcher = Fetcher(CrawlConfig(start_url="http://127.0.0.1/"))
    fetcher.close()

    result = fetcher.fetch("http://127.0.0.1/")

    assert result.error == "Fetcher is closed"


def test_crawl_local_site(site_server):
    site_map = crawl(f"{site_server}/index.html", concurrency=3, timeout_seconds=5)

    assert site_map.to_json(include_dead_links=True) == {
        "pages": {
            f"{site_server}/about.html": {
                "internal_links": [f"{site_server}/blog.html"],
                "external_links": [],
                "assets": [f"{site_server}/css/example.css"],
            },
            f"{site_server}/blog.html": {
                "internal_links": [],
                "external_links": ["https://google.com", "https://bbc.com"],
                "assets": [f"{site_server}/css/example.css"],
            },
            f"{site_server}/index.html": {
                "internal_links": [f"{site_server}/about.html", f"{site_server}/blog.html"],
                "external_links": [],
                "assets": [],
            },
        },
        "dead_links": ["https://bbc.com", "https://google.com"],
    }


def test_pipeline_can_run_twice_with_its_own_fetcher(site_server):
    config = CrawlConfig(start_url=f"{site_server}/index.html", concurrency=2, timeout_seconds=5)
    pipeline = Pipeline(config)

    first = pipeline.run()
    second = pipeline.run()

    assert len(first) == len(second) == 3
    assert second.stats["fetched_ok"] == 3
    assert second.stats["fetched_error"] == 0
