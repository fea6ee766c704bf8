"""Default values shared by config, fetcher, and CLI."""

from __future__ import annotations

DEFAULT_CONCURRENCY = 10
DEFAULT_TIMEOUT_SECONDS = 15.0
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RETRY_BACKOFF_SECONDS = 0.5
DEFAULT_MAX_DEPTH: int | None = None
DEFAULT_MAX_PAGES: int | None = None
DEFAULT_INCLUDE_NOFOLLOW_LINKS = True
DEFAULT_WORKER_JOIN_TIMEOUT_SECONDS = 5.0

DEFAULT_USER_AGENT = "sitemapper/0.1 (+https://pypi.org/project/sitemapper/)"
DEFAULT_HTTP_HEADERS: dict[str, str] = {
    "Accept": "text/html,application/xhtml+xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.8",
}

JSON_INDENT = 2
SUPPORTED_CONFIG_SUFFIXES = (".json", ".yaml", ".yml")
SUPPORTED_OUTPUT_FORMATS = ("json", "yaml")
