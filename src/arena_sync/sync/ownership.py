"""Field ownership rules shared by the reconciler.

Each synced document carries ``syncPolicy.owner``, a map from field name to
``"studio"`` (edited by people, hands off) or ``"arena"`` (written by the
sync).  ``lockAll`` freezes a document entirely and ``lockImage`` freezes
only ``mainImage``; both apply regardless of the owner map.
"""

from __future__ import annotations

from typing import Any

from .models import ImageUploadMode

OWNER_STUDIO = "studio"
OWNER_ARENA = "arena"

# Fields the sync may write on existing documents
ARENA_OWNED = frozenset(
    {
        "arenaId",
        "arenaBlockUrl",
        "blockType",
        "description",
        "contentHtml",
        "sourceUrl",
        "sourceTitle",
        "sourceProviderName",
        "arenaCreatedAt",
        "arenaUpdatedAt",
        "rawArenaData",
        "externalImageUrl",
        "externalImageThumbUrl",
        "channels",
        "arenaImageSignature",
        "arenaFingerprint",
        "isOrphan",
        "lastSyncedAt",
        "lastSyncedBy",
    }
)

# Kinds of block whose image is copied into the store
UPLOADABLE_KINDS = frozenset({"Image", "Link"})


def default_sync_policy() -> dict[str, Any]:
    return {
        "owner": {
            "title": OWNER_STUDIO,
            "sourceTitle": OWNER_ARENA,
            "mainImage": OWNER_ARENA,
            "channels": OWNER_ARENA,
        }
    }


def owner_map(document: dict[str, Any] | None) -> dict[str, Any]:
    """Return the document's ``syncPolicy.owner`` map, or ``{}``."""
    policy = (document or {}).get("syncPolicy")
    if not isinstance(policy, dict):
        return {}
    owner = policy.get("owner")
    return owner if isinstance(owner, dict) else {}


def owned_by_studio(document: dict[str, Any] | None, field: str) -> bool:
    return owner_map(document).get(field) == OWNER_STUDIO


def is_locked(document: dict[str, Any] | None) -> bool:
    return bool((document or {}).get("lockAll"))


def image_update_allowed(document: dict[str, Any] | None) -> bool:
    """Whether ``mainImage`` may be written on *document*.

    New documents (``None``) always allow it.
    """
    if document is None:
        return True
    return not (
        is_locked(document)
        or document.get("lockImage")
        or owned_by_studio(document, "mainImage")
    )


def should_upload_image(
    mode: ImageUploadMode | str,
    *,
    existing: dict[str, Any] | None,
    image_signature_changed: bool,
) -> bool:
    """Decide whether the upload policy wants a fresh asset upload.

    * ``off``: never.
    * ``on``: whenever the image signature changed.
    * ``auto``: only when no ``mainImage`` is set yet and the signature
      changed.

    Ownership and locks are checked separately by ``image_update_allowed``.
    """
    mode = ImageUploadMode(mode)
    if mode is ImageUploadMode.OFF:
        return False
    if mode is ImageUploadMode.ON:
        return image_signature_changed
    return not (existing or {}).get("mainImage") and image_signature_changed


def filter_owned(
    fields: dict[str, Any], *, extra: frozenset[str] = frozenset()
) -> dict[str, Any]:
    """Keep only the fields the sync is allowed to write."""
    allowed = ARENA_OWNED | extra
    return {k: v for k, v in fields.items() if k in allowed}
