"""HTML link and asset discovery with BeautifulSoup."""

from __future__ import annotations

from dataclasses import dataclass, field

from bs4 import BeautifulSoup
from bs4.builder import ParserRejectedMarkup

from ..types import ContentKind, PageLinks, infer_content_kind
from ..url import is_internal, resolve_href


class ExtractionError(RuntimeError):
    """Raised when a fetched page cannot be parsed for links."""


ANCHOR_TAGS = ("a", "area")

DEFAULT_ASSET_ATTRIBUTES: dict[str, str] = {
    "link": "href",
    "script": "src",
    "img": "src",
    "source": "src",
}


@dataclass(slots=True)
class LinkExtractorConfig:
    """Config for link extraction."""

    parser_features: str = "lxml"
    include_nofollow_links: bool = True
    dedupe_links: bool = True
    asset_attributes: dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_ASSET_ATTRIBUTES)
    )


class LinkExtractor:
    """Split a page's references into internal links, external links, and assets."""

    def __init__(self, config: LinkExtractorConfig | None = None) -> None:
        self.config = config or LinkExtractorConfig()

    def extract(
        self,
        page_url: str,
        body: str | bytes,
        *,
        content_type: str | None = None,
    ) -> PageLinks:
        content_kind = infer_content_kind(content_type, page_url)
        if content_kind not in {ContentKind.HTML, ContentKind.UNKNOWN}:
            raise ExtractionError(
                f"Unsupported content kind for {page_url}: {content_kind.value} ({content_type})"
            )

        try:
            soup = BeautifulSoup(body, self.config.parser_features)
        except ParserRejectedMarkup as exc:
            raise ExtractionError(f"Markup rejected for {page_url}: {exc}") from exc

        buckets: dict[str, list[str]] = {"internal": [], "external": [], "assets": []}
        seen: set[tuple[str, str]] = set()

        tag_names = list(ANCHOR_TAGS) + list(self.config.asset_attributes)
        for element in soup.find_all(tag_names):
            if element.name in ANCHOR_TAGS:
                if not self._follow(element):
                    continue
                resolved = resolve_href(page_url, element.get("href"))
                if resolved is None:
                    continue
                kind = "internal" if is_internal(page_url, resolved) else "external"
            else:
                attribute = self.config.asset_attributes[element.name]
                resolved = resolve_href(page_url, element.get(attribute))
                if resolved is None:
                    continue
                kind = "assets"

            # External links are reported once per occurrence.
            if self.config.dedupe_links and kind != "external":
                key = (kind, resolved)
                if key in seen:
                    continue
                seen.add(key)
            buckets[kind].append(resolved)

        return PageLinks(
            internal_links=buckets["internal"],
            external_links=buckets["external"],
            assets=buckets["assets"],
        )

    def _follow(self, element) -> bool:
        if self.config.include_nofollow_links:
            return True
        rel_values = {value.lower() for value in (element.get("rel") or [])}
        return "nofollow" not in rel_values


__all__ = [
    "DEFAULT_ASSET_ATTRIBUTES",
    "ExtractionError",
    "LinkExtractor",
    "LinkExtractorConfig",
]
