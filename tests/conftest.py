"""Shared fixtures: an in-memory fetcher and a local static site server."""

from __future__ import annotations

import functools
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
import threading

import pytest

from sitemapper.crawler import FetchResult


PROXY_ENV_VARS = (
    "HTTP_PROXY",
    "HTTPS_PROXY",
    "ALL_PROXY",
    "http_proxy",
    "https_proxy",
    "all_proxy",
)


class FakeFetcher:
    """Serve canned pages from a dict.

    Values are HTML strings or `(content_type, body)` tuples. URLs listed in
    `failures` fail with a transport error that many times before succeeding.
    Unknown URLs get a 404.
    """

    def __init__(
        self,
        pages: dict[str, str | tuple[str, str]],
        *,
        failures: dict[str, int] | None = None,
    ) -> None:
        self.pages = dict(pages)
        self.failures = dict(failures or {})
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def fetch(self, url: str) -> FetchResult:
        with self._lock:
            self.calls.append(url)
            remaining = self.failures.get(url, 0)
            if remaining:
                self.failures[url] = remaining - 1

        if remaining:
            return FetchResult(
                requested_url=url,
                final_url=None,
                status_code=None,
                content_type=None,
                body=None,
                error="ConnectionError: simulated failure",
            )

        if url not in self.pages:
            return FetchResult(
                requested_url=url,
                final_url=url,
                status_code=404,
                content_type="text/html",
                body=b"not found",
            )

        page = self.pages[url]
        if isinstance(page, tuple):
            content_type, body = page
        else:
            content_type, body = "text/html; charset=utf-8", page
        return FetchResult(
            requested_url=url,
            final_url=url,
            status_code=200,
            content_type=content_type,
            body=body.encode("utf-8"),
        )

    def call_count(self, url: str) -> int:
        with self._lock:
            return self.calls.count(url)


@pytest.fixture
def make_fetcher():
    return FakeFetcher


class _QuietHandler(SimpleHTTPRequestHandler):
    def log_message(self, format, *args):  # noqa: A002
        pass


EXAMPLE_SITE = {
    "index.html": """<head></head>
<body>
    <h1>My Heading<h1>
    <p>Some text</p>
    <a href="about.html">About Me</a>
    <a href="blog.html">Blog</a>
</body>
""",
    "about.html": """<head>
    <link rel="stylesheet" href="css/example.css">
</head>
<body>
    <a href="blog.html#latest">Blog</a>
</body>
""",
    "blog.html": """<head>
    <link rel="stylesheet" href="/css/example.css">
</head>
<body>
    <a href="https://google.com">Search</a>
    <a href="https://bbc.com">News</a>
</body>
""",
    "css/example.css": "body { color: black; }\n",
}


@pytest.fixture
def site_server(tmp_path, monkeypatch):
    """Serve EXAMPLE_SITE over HTTP on an ephemeral localhost port."""

    for name in PROXY_ENV_VARS:
        monkeypatch.delenv(name, raising=False)

    root = tmp_path / "www-example"
    for relative, content in EXAMPLE_SITE.items():
        target = root / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")

    handler = functools.partial(_QuietHandler, directory=str(root))
    server = ThreadingHTTPServer(("127.0.0.1", 0), handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}"
    finally:
        server.shutdown()
        server.server_close()
