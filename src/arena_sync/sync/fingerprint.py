"""Change-detection helpers for remote blocks.

``compute_fingerprint`` encodes a small projection of the fields that matter
for display (title, description, source, image, timestamps) so a re-sync
can tell "nothing changed" without diffing whole documents.  It is a cheap
equality oracle, not a cryptographic hash.

``build_image_signature`` is kept separate so an image-only change can gate
asset uploads independently of other content changes.
"""

from __future__ import annotations

import base64
import json
import logging
from typing import Any

logger = logging.getLogger(__name__)


def _get(mapping: Any, *path: str) -> Any:
    """Walk nested mappings, returning ``None`` at the first missing step."""
    current = mapping
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def build_image_signature(item: dict[str, Any]) -> str | None:
    """Return ``"<original url>|<file size>"`` or ``None`` without an image.

    A missing or zero file size is rendered as an empty string.
    """
    url = _get(item, "image", "original", "url")
    if not url:
        return None
    size = _get(item, "image", "original", "file_size")
    return f"{url}|{size or ''}"


def compute_fingerprint(item: dict[str, Any]) -> str | None:
    """Return a stable string for the tracked fields of *item*.

    Returns ``None`` if the projection cannot be encoded.
    """
    source = _get(item, "source")
    original = _get(item, "image", "original")
    core = {
        "id": _get(item, "id"),
        "title": _get(item, "title"),
        "class": _get(item, "class"),
        "updated_at": _get(item, "updated_at"),
        "description_html": _get(item, "description_html"),
        "source": (
            {"url": source.get("url"), "title": source.get("title")}
            if isinstance(source, dict)
            else None
        ),
        "image": (
            {"url": original.get("url"), "size": original.get("file_size")}
            if isinstance(original, dict)
            else None
        ),
    }
    try:
        encoded = json.dumps(
            core, separators=(",", ":"), ensure_ascii=False
        ).encode("utf-8")
    except (TypeError, ValueError) as exc:
        logger.debug("Cannot fingerprint block %r: %s", core["id"], exc)
        return None
    return base64.b64encode(encoded).decode("ascii")
