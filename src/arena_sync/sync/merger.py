"""Channel-membership merge for synced documents.

A document can belong to several channels.  Each sync pass observes only
the channel currently being walked, so membership is merged into the
stored list instead of replacing it:

* entries already stored keep their position and their ``_key``;
* newly observed slugs are appended in the order first seen;
* titles are refreshed from the run's title lookup;
* nothing is ever removed here.  Removal is drift cleanup's job.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from .sanitize import ensure_keys, new_key


def merge_channels(
    existing: Iterable[dict[str, Any]] | None,
    observed: Iterable[dict[str, Any]] | None,
    title_lookup: Mapping[str, str],
) -> list[dict[str, Any]]:
    """Merge *observed* membership entries into *existing*.

    Args:
        existing: The document's current ``channels`` list (may be ``None``).
        observed: Entries seen during this pass, each with ``slug`` and an
            optional ``title``.
        title_lookup: Slug to display title for the run.

    Returns:
        A new list: existing slugs in their original order, then new slugs
        in first-observed order.  Every entry has a ``_key``.
    """
    existing_entries = [
        entry
        for entry in existing or []
        if isinstance(entry, dict) and entry.get("slug")
    ]
    by_slug: dict[str, dict[str, Any]] = {}
    for entry in existing_entries:
        by_slug[entry["slug"]] = entry

    for entry in observed or []:
        slug = entry.get("slug") if isinstance(entry, dict) else None
        if not slug:
            continue
        prior = by_slug.get(slug)
        by_slug[slug] = {
            "_key": (prior or {}).get("_key") or new_key(),
            "slug": slug,
            "title": title_lookup.get(slug) or entry.get("title") or slug,
        }

    existing_order = []
    for entry in existing_entries:
        if entry["slug"] not in existing_order:
            existing_order.append(entry["slug"])

    kept = [by_slug[slug] for slug in existing_order]
    added = [
        entry for slug, entry in by_slug.items() if slug not in existing_order
    ]
    return ensure_keys(kept + added)


def channels_equal(a: Any, b: Any) -> bool:
    """Return ``True`` if both lists match pairwise on slug and title."""
    if not isinstance(a, list) or not isinstance(b, list):
        return False
    if len(a) != len(b):
        return False
    for left, right in zip(a, b):
        left = left if isinstance(left, dict) else {}
        right = right if isinstance(right, dict) else {}
        if left.get("slug") != right.get("slug"):
            return False
        if left.get("title") != right.get("title"):
            return False
    return True
