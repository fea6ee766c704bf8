"""CLI entrypoint: map a site and print its site map."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
import sys
from typing import Any

if __package__ in {None, ""}:
    repo_root = Path(__file__).resolve().parents[1]
    if str(repo_root) not in sys.path:
        sys.path.insert(0, str(repo_root))

from sitemapper.crawler import (
    CrawlConfig,
    Pipeline,
    URLParseError,
    dump_site_map,
    save_site_map,
    validate_start_url,
)
from sitemapper.crawler.config import load_config_payload
from sitemapper.crawler.constants import SUPPORTED_OUTPUT_FORMATS
from sitemapper.crawler.storage import FORMAT_BY_SUFFIX


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sitemapper",
        description="Crawl every page reachable from URL on the same host and print a site map.",
    )

    parser.add_argument(
        "url",
        nargs="?",
        default=None,
        help="Absolute start URL (scheme and host required). Overrides the config file.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to JSON/YAML crawl config.",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Number of concurrent workers (default 10).",
    )

    parser.add_argument("--timeout_seconds", type=float, default=None)
    parser.add_argument(
        "--max_attempts",
        type=int,
        default=None,
        help="Fetch attempts per page before giving up. Use 0 for no limit.",
    )
    parser.add_argument("--retry_backoff_seconds", type=float, default=None)
    parser.add_argument("--max_depth", type=int, default=None)
    parser.add_argument("--max_pages", type=int, default=None)
    parser.add_argument("--user_agent", type=str, default=None)
    parser.add_argument(
        "--skip_nofollow",
        action="store_true",
        help="Do not follow links marked rel=nofollow.",
    )

    parser.add_argument(
        "--format",
        type=str,
        choices=list(SUPPORTED_OUTPUT_FORMATS),
        default="json",
        help="Output format for stdout.",
    )
    parser.add_argument(
        "--no_indent",
        action="store_true",
        help="Print site map without indentation.",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write the site map to this .json/.yaml file instead of stdout.",
    )
    parser.add_argument(
        "--include_dead_links",
        action="store_true",
        help="Include the external links observed during the crawl.",
    )
    parser.add_argument(
        "--include_stats",
        action="store_true",
        help="Include crawl statistics in the output.",
    )

    parser.add_argument(
        "--log_file",
        type=Path,
        default=None,
        help="Also write logs to this file.",
    )
    parser.add_argument(
        "--verbose",
        "--debug",
        dest="verbose",
        action="store_true",
        help="Enable debug logging.",
    )

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def build_config(args: argparse.Namespace) -> CrawlConfig:
    payload: dict[str, Any] = {}
    if args.config is not None:
        payload = load_config_payload(args.config)

    if args.url is not None:
        payload["start_url"] = args.url

    if not payload.get("start_url"):
        raise ValueError("No start URL provided. Pass URL or use --config.")

    if args.concurrency is not None:
        payload["concurrency"] = args.concurrency
    if args.timeout_seconds is not None:
        payload["timeout_seconds"] = args.timeout_seconds
    if args.max_attempts is not None:
        payload["max_attempts"] = None if args.max_attempts <= 0 else args.max_attempts
    if args.retry_backoff_seconds is not None:
        payload["retry_backoff_seconds"] = args.retry_backoff_seconds
    if args.max_depth is not None:
        payload["max_depth"] = args.max_depth
    if args.max_pages is not None:
        payload["max_pages"] = args.max_pages
    if args.user_agent is not None:
        payload["user_agent"] = args.user_agent
    if args.skip_nofollow:
        payload["include_nofollow_links"] = False

    return CrawlConfig.from_dict(payload)


def check_output_path(path: Path | None) -> None:
    if path is not None and path.suffix.lower() not in FORMAT_BY_SUFFIX:
        raise ValueError(
            f"Unsupported output suffix '{path.suffix}'. Supported: {tuple(FORMAT_BY_SUFFIX)}"
        )


def setup_logging(verbose: bool, log_file: Path | None = None) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO

    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(log_level)

    # stdout carries the site map.
    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setLevel(log_level)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    logging.getLogger("urllib3").setLevel(logging.WARNING)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose, args.log_file)

    try:
        config = build_config(args)
        validate_start_url(config.start_url)
        check_output_path(args.output)
    except URLParseError as exc:
        parser.error(f"Could not validate url: {exc}")
    except (OSError, ValueError) as exc:
        logging.error("Failed to build config: %s", exc)
        return 2

    logging.info(
        "Starting sitemapper: start_url=%s, concurrency=%d",
        config.start_url,
        config.concurrency,
    )

    try:
        site_map = Pipeline(config).run()
    except KeyboardInterrupt:
        logging.error("Interrupted by user")
        return 130
    except Exception:
        logging.exception("Crawl failed")
        return 1

    indent = None if args.no_indent else 2
    if args.output is not None:
        path = save_site_map(
            site_map,
            args.output,
            indent=indent,
            include_dead_links=args.include_dead_links,
            include_stats=args.include_stats,
        )
        logging.info("Site map written to %s", path)
        return 0

    sys.stdout.write(
        dump_site_map(
            site_map,
            fmt=args.format,
            indent=indent,
            include_dead_links=args.include_dead_links,
            include_stats=args.include_stats,
        )
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
