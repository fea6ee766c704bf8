"""Site map serialization to JSON/YAML text and files."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path

import yaml  # type: ignore

from .constants import JSON_INDENT, SUPPORTED_OUTPUT_FORMATS
from .types import SiteMap


FORMAT_BY_SUFFIX: dict[str, str] = {
    ".json": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
}


def dump_site_map(
    site_map: SiteMap,
    *,
    fmt: str = "json",
    indent: int | None = JSON_INDENT,
    include_dead_links: bool = False,
    include_stats: bool = False,
) -> str:
    """Render a site map as JSON or YAML with deterministic key order."""

    resolved = fmt.strip().lower()
    if resolved not in SUPPORTED_OUTPUT_FORMATS:
        raise ValueError(
            f"Unsupported output format '{fmt}'. Supported: {SUPPORTED_OUTPUT_FORMATS}"
        )

    payload = site_map.to_json(
        include_dead_links=include_dead_links,
        include_stats=include_stats,
    )

    if resolved == "yaml":
        return yaml.safe_dump(payload, sort_keys=True, default_flow_style=False)

    if indent is None:
        return json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":")) + "\n"
    return json.dumps(payload, ensure_ascii=False, indent=indent, sort_keys=True) + "\n"


def save_site_map(
    site_map: SiteMap,
    path: str | Path,
    *,
    indent: int | None = JSON_INDENT,
    include_dead_links: bool = False,
    include_stats: bool = False,
) -> Path:
    """Write a site map atomically; the format follows the file suffix."""

    out_path = Path(path)
    fmt = FORMAT_BY_SUFFIX.get(out_path.suffix.lower())
    if fmt is None:
        raise ValueError(
            f"Unsupported output suffix '{out_path.suffix}'. Supported: {tuple(FORMAT_BY_SUFFIX)}"
        )

    content = dump_site_map(
        site_map,
        fmt=fmt,
        indent=indent,
        include_dead_links=include_dead_links,
        include_stats=include_stats,
    )
    out_path.parent.mkdir(parents=True, exist_ok=True)
    _atomic_write_text(out_path, content)
    return out_path


def _atomic_write_text(path: Path, content: str) -> None:
    tmp_fd, tmp_path = tempfile.mkstemp(
        dir=str(path.parent),
        prefix=path.name + ".",
        suffix=".tmp",
    )
    try:
        with os.fdopen(tmp_fd, "w", encoding="utf-8") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    except Exception:
        try:
            os.unlink(tmp_path)
        except FileNotFoundError:
            pass
        raise


__all__ = [
    "FORMAT_BY_SUFFIX",
    "dump_site_map",
    "save_site_map",
]
