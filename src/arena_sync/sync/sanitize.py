"""Storage-safe rewriting of remote payloads."""

from __future__ import annotations

import re
import uuid
from typing import Any

_DISALLOWED_KEY_CHARS = re.compile(r"[^A-Za-z0-9_-]")

# Fields dropped from the stored raw payload
VOLATILE_RAW_FIELDS = ("metadata", "embed")


def sanitize_for_storage(value: Any) -> Any:
    """Recursively replace characters outside ``[A-Za-z0-9_-]`` in dict keys.

    Lists are walked element by element; scalars and ``None`` are returned
    unchanged.
    """
    if isinstance(value, dict):
        return {
            _DISALLOWED_KEY_CHARS.sub("_", str(key)): sanitize_for_storage(v)
            for key, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [sanitize_for_storage(v) for v in value]
    return value


def prune_raw(item: dict[str, Any]) -> dict[str, Any]:
    """Return a shallow copy of *item* without the volatile raw fields."""
    return {k: v for k, v in item.items() if k not in VOLATILE_RAW_FIELDS}


def new_key() -> str:
    return str(uuid.uuid4())


def ensure_keys(entries: list[Any] | None) -> list[Any]:
    """Give every dict entry lacking a ``_key`` a fresh random one.

    Entries that already have a key are returned as-is; the input list and
    its dicts are never mutated.  Non-dict entries pass through.
    """
    keyed = []
    for entry in entries or []:
        if isinstance(entry, dict) and not entry.get("_key"):
            entry = {**entry, "_key": new_key()}
        keyed.append(entry)
    return keyed
