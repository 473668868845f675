"""package.json reading and parsing."""

from __future__ import annotations

import json
from pathlib import Path

import structlog

from filesentinel.core.exceptions import ManifestUnreadableError
from filesentinel.engines.whitelist_audit.models import ManifestParse

log = structlog.get_logger("filesentinel.engine")

MANIFEST_NAME = "package.json"


def parse_manifest(text: str, *, source: str = "<memory>") -> ManifestParse:
    """Parse JSON manifest text.

    Never raises: malformed JSON (or a non-object document) yields an empty
    mapping together with the error, so callers can tell "declares nothing"
    apart from "could not be read".
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError) as exc:
        log.warning("manifest.parse_failed", source=source, error=str(exc))
        return ManifestParse(data={}, error=f"invalid JSON: {exc}")

    if not isinstance(data, dict):
        err = f"expected a JSON object, got {type(data).__name__}"
        log.warning("manifest.parse_failed", source=source, error=err)
        return ManifestParse(data={}, error=err)

    return ManifestParse(data=data)


def read_manifest(package_dir: Path) -> ManifestParse:
    """Read and parse ``<package_dir>/package.json``.

    Raises ManifestUnreadableError if the file is missing or cannot be read.
    """
    file_path = package_dir / MANIFEST_NAME
    try:
        text = file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ManifestUnreadableError(str(file_path), str(exc)) from exc
    return parse_manifest(text, source=str(file_path))
