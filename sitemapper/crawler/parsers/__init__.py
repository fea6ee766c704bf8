"""Parser package exports."""

from .html_parser import (
    DEFAULT_ASSET_ATTRIBUTES,
    ExtractionError,
    LinkExtractor,
    LinkExtractorConfig,
)

__all__ = [
    "DEFAULT_ASSET_ATTRIBUTES",
    "ExtractionError",
    "LinkExtractor",
    "LinkExtractorConfig",
]
