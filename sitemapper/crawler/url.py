"""URL canonicalization, href resolution, and host classification helpers."""

from __future__ import annotations

from typing import Sequence
from urllib.parse import SplitResult, urljoin, urlsplit, urlunsplit


DEFAULT_ALLOWED_SCHEMES = ("http", "https")
SKIP_HREF_PREFIXES = ("javascript:", "mailto:", "tel:", "data:")


class URLParseError(ValueError):
    """Raised when a URL or href cannot be parsed."""


def _split(url: str) -> SplitResult:
    try:
        parsed = urlsplit(url)
        # Accessing `.port` validates the port component.
        _ = parsed.port
    except ValueError as exc:
        raise URLParseError(f"Malformed URL {url!r}: {exc}") from exc
    return parsed


def _normalize_netloc(netloc: str) -> str:
    userinfo, sep, hostport = netloc.rpartition("@")
    return f"{userinfo}{sep}{hostport.lower()}"


def _remove_dot_segments(path: str) -> str:
    """Drop `.` and `..` segments; empty segments and a trailing slash survive."""

    if not path:
        return path

    segments = path.split("/")
    output: list[str] = []
    for segment in segments:
        if segment == ".":
            continue
        if segment == "..":
            # Never pop the empty root segment of an absolute path.
            if output and (len(output) > 1 or output[0] != ""):
                output.pop()
            continue
        output.append(segment)

    if segments[-1] in {".", ".."}:
        output.append("")
    return "/".join(output)


def canonicalize(base: str, raw: str) -> str:
    """Resolve `raw` against `base`, then strip query and fragment.

    Two URLs are the same page for dedup purposes iff their canonical forms
    are equal strings. Raises `URLParseError` on malformed input.
    """

    candidate = (raw or "").strip()
    base = (base or "").strip()
    if not candidate and not base:
        raise URLParseError("Cannot canonicalize an empty URL")

    if any(ord(char) < 0x20 or ord(char) == 0x7F for char in candidate):
        raise URLParseError(f"Malformed URL {raw!r}: control characters")

    _split(candidate)
    if base:
        _split(base)
        try:
            absolute = urljoin(base, candidate)
        except ValueError as exc:
            raise URLParseError(f"Cannot resolve {raw!r} against {base!r}: {exc}") from exc
    else:
        absolute = candidate

    parsed = _split(absolute)
    return urlunsplit(
        (
            parsed.scheme,
            _normalize_netloc(parsed.netloc),
            _remove_dot_segments(parsed.path),
            "",
            "",
        )
    )


def is_http_url(url: str, allowed_schemes: Sequence[str] = DEFAULT_ALLOWED_SCHEMES) -> bool:
    """Return True if URL is absolute and has an allowed HTTP-like scheme."""

    try:
        parsed = _split(url)
    except URLParseError:
        return False
    if not parsed.scheme or not parsed.netloc:
        return False
    return parsed.scheme.lower() in {scheme.lower() for scheme in allowed_schemes}


def validate_start_url(raw: str) -> str:
    """Canonicalize a crawl start URL, requiring an http(s) scheme and a host."""

    canonical = canonicalize("", raw)
    parsed = urlsplit(canonical)
    if parsed.scheme not in DEFAULT_ALLOWED_SCHEMES:
        raise URLParseError(f"Start URL {raw!r} must use http or https")
    if not parsed.hostname:
        raise URLParseError(f"Start URL {raw!r} has no host")
    return canonical


def host_key(url: str) -> str:
    """Return lower-cased `host[:port]` used to tell internal from external links."""

    parsed = urlsplit(url)
    host = (parsed.hostname or "").lower()
    try:
        port = parsed.port
    except ValueError:
        return parsed.netloc.lower()
    return f"{host}:{port}" if port is not None else host


def is_internal(page_url: str, link: str) -> bool:
    """A resolved link is internal iff its host matches the page's host."""

    return host_key(page_url) == host_key(link)


def resolve_href(
    base_url: str,
    href: str | None,
    *,
    allowed_schemes: Sequence[str] = DEFAULT_ALLOWED_SCHEMES,
) -> str | None:
    """Resolve a possibly relative href against the page URL.

    Returns `None` for hrefs that are not page links (fragments, `mailto:`
    and friends) and for malformed hrefs.
    """

    if href is None:
        return None

    candidate = href.strip()
    if not candidate or candidate.startswith("#"):
        return None

    lowered = candidate.lower()
    if any(lowered.startswith(prefix) for prefix in SKIP_HREF_PREFIXES):
        return None

    try:
        _split(candidate)
        parsed = _split(urljoin(base_url, candidate))
    except (URLParseError, ValueError):
        return None

    absolute = urlunsplit(parsed._replace(path=_remove_dot_segments(parsed.path)))
    if is_http_url(absolute, allowed_schemes=allowed_schemes):
        return absolute
    return None


__all__ = [
    "DEFAULT_ALLOWED_SCHEMES",
    "SKIP_HREF_PREFIXES",
    "URLParseError",
    "canonicalize",
    "host_key",
    "is_http_url",
    "is_internal",
    "resolve_href",
    "validate_start_url",
]
