"""Per-channel reconciliation of Are.na blocks into Sanity documents.

``ChannelReconciler`` walks one channel page by page and, for each block:

1. Reads the existing document ``arenaBlock-<id>`` (a failed read counts as
   "absent").
2. Merges the channel into the document's membership list.
3. Compares the stored fingerprint and ``arenaUpdatedAt`` with the block.
   When both match only membership is refreshed; otherwise the full set of
   engine-owned fields is written, uploading the image first if the
   upload policy and the ownership rules allow it.

After the last page, drift cleanup removes this channel from documents that
still claim it but were not seen during the pass, flagging documents left
without any channel as orphans.

Error handling is per block: a failing block is logged and counted, and
processing continues.  Only a failed page fetch ends the channel early.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, MutableMapping, TypeVar
from urllib.parse import urlparse

from arena_sync.core.async_utils import (
    TimeBudget,
    fetch_with_timeout,
    retry,
    with_timeout,
)
from arena_sync.core.protocols import ContentSource, DocumentStore
from arena_sync.sync.events import EventLog
from arena_sync.sync.fingerprint import (
    build_image_signature,
    compute_fingerprint,
)
from arena_sync.sync.merger import channels_equal, merge_channels
from arena_sync.sync.models import ChannelResult
from arena_sync.sync.options import SyncOptions
from arena_sync.sync.ownership import (
    UPLOADABLE_KINDS,
    default_sync_policy,
    filter_owned,
    image_update_allowed,
    is_locked,
    owned_by_studio,
    should_upload_image,
)
from arena_sync.sync.sanitize import (
    VOLATILE_RAW_FIELDS,
    ensure_keys,
    prune_raw,
    sanitize_for_storage,
)

T = TypeVar("T")
logger = logging.getLogger(__name__)

DOCUMENT_PREFIX = "arenaBlock"
DOCUMENT_TYPE = "areNaBlock"
SYNC_ACTOR = "arena-sync"
BLOCK_URL = "https://www.are.na/block/{id}"

DRIFT_QUERY = (
    '*[_type=="areNaBlock" && channels[].slug==$slug]'
    "{ _id, arenaId, channels, lockAll, syncPolicy }"
)
VOLATILE_RAW_PATHS = [f"rawArenaData.{name}" for name in VOLATILE_RAW_FIELDS]


def document_id(block_id: Any) -> str:
    """Return the deterministic document id for a remote block id."""
    return f"{DOCUMENT_PREFIX}-{block_id}"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _safe_host(url: str) -> str:
    try:
        return urlparse(url).hostname or "unknown"
    except ValueError:
        return "unknown"


def _image_filename(block: dict[str, Any]) -> str:
    image = block.get("image") or {}
    if image.get("filename"):
        return image["filename"]
    content_type = image.get("content_type") or ""
    extension = content_type.split("/")[1] if "/" in content_type else "jpg"
    return f"arena-{block['id']}-{int(time.time() * 1000)}.{extension}"


class _Stats:
    """Mutable counters while a channel is in progress."""

    def __init__(self) -> None:
        self.created = 0
        self.updated = 0
        self.skipped_unchanged = 0
        self.orphaned_updated = 0
        self.errors = 0
        self.processed = 0

    def to_result(self, success: bool, message: str) -> ChannelResult:
        return ChannelResult(
            success=success,
            created=self.created,
            updated=self.updated,
            skipped_unchanged=self.skipped_unchanged,
            orphaned_updated=self.orphaned_updated,
            errors=self.errors,
            message=message,
            items_processed=self.processed,
        )


class ChannelReconciler:
    """Reconcile one Are.na channel into the document store.

    Args:
        source: Paged Are.na access.
        store: Destination document store.
        channel_slug: Channel to walk.
        title_lookup: Slug to display title; the channel's own entry may be
            refined from the first page.
        options: Run options.
        events: Run-scoped event emitter.
        budget: Soft time budget shared by the whole run.
    """

    def __init__(
        self,
        source: ContentSource,
        store: DocumentStore,
        channel_slug: str,
        title_lookup: MutableMapping[str, str],
        options: SyncOptions,
        events: EventLog,
        budget: TimeBudget,
    ) -> None:
        self.source = source
        self.store = store
        self.channel_slug = channel_slug
        self.title_lookup = title_lookup
        self.options = options
        self.events = events
        self.budget = budget

        self._stats = _Stats()
        self._seen_ids: set[str] = set()
        self._budget_reported = False
        self._upload_slots = asyncio.Semaphore(options.image_concurrency)

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    async def run(self) -> ChannelResult:
        """Reconcile the channel and return its result.  Never raises."""
        slug = self.channel_slug
        heartbeat = asyncio.create_task(self._heartbeat())
        try:
            first = await self._fetch_page(1, label="arena.initial")
            items = first.get("items") if isinstance(first, dict) else None
            if items is None:
                self.events.warn("empty_channel", ch=slug)
                return self._stats.to_result(True, "empty_or_inaccessible")

            page_title = first.get("title")
            if page_title and self.title_lookup.get(slug, slug) == slug:
                self.title_lookup[slug] = page_title

            total_pages = first.get("total_pages") or 1
            self.events.log(
                "first_page", ch=slug, count=len(items), totalPages=total_pages
            )
            await self._process_page(items)

            page = 2
            while page <= total_pages and self._within_budget():
                self.events.log(
                    "fetching_page", ch=slug, page=page, totalPages=total_pages
                )
                data = await self._fetch_page(page, label=f"arena.page.{page}")
                page_items = (data or {}).get("items") or []
                self.events.log(
                    "page_fetched", ch=slug, page=page, added=len(page_items)
                )
                if page_items:
                    await self._process_page(page_items)
                page += 1

            if self.options.drift_fix and self._within_budget():
                await self._fix_drift()

            return self._stats.to_result(True, "channel_processed")
        except Exception as exc:
            logger.debug("Channel %s failed", slug, exc_info=True)
            self.events.error("channel_error", ch=slug, error=str(exc))
            self._stats.errors += 1
            return self._stats.to_result(False, str(exc) or "error")
        finally:
            heartbeat.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await heartbeat

    # ------------------------------------------------------------------
    # Remote call wrappers
    # ------------------------------------------------------------------

    async def _call(
        self,
        operation: Callable[[], Awaitable[T]],
        ms: int,
        label: str,
    ) -> T:
        """Run *operation* under timeout and retry with the run's policy."""
        return await retry(
            lambda: with_timeout(operation(), ms, label),
            retries=self.options.retries,
            backoff_ms=self.options.backoff_ms,
            label=label,
        )

    async def _fetch_page(self, page: int, label: str) -> dict[str, Any] | None:
        return await self._call(
            lambda: self.source.get_page(
                self.channel_slug,
                page=page,
                page_size=self.options.page_size,
            ),
            self.options.source_timeout_ms,
            label,
        )

    async def _store_call(
        self, operation: Callable[[], Awaitable[T]], label: str
    ) -> T:
        return await self._call(operation, self.options.store_timeout_ms, label)

    async def _read_existing(
        self, doc_id: str, block_id: Any
    ) -> dict[str, Any] | None:
        try:
            return await with_timeout(
                self.store.get_by_id(doc_id),
                self.options.store_timeout_ms,
                "store.get",
            )
        except Exception as exc:
            self.events.warn("get_document_failed", id=block_id, err=str(exc))
            return None

    # ------------------------------------------------------------------
    # Budget and liveness
    # ------------------------------------------------------------------

    def _within_budget(self) -> bool:
        if self.budget.within():
            return True
        if not self._budget_reported:
            self._budget_reported = True
            self.events.warn(
                "budget_exhausted",
                ch=self.channel_slug,
                processed=self._stats.processed,
            )
        return False

    async def _heartbeat(self) -> None:
        interval = self.options.heartbeat_ms / 1000
        while True:
            await asyncio.sleep(interval)
            self.events.log("heartbeat", ch=self.channel_slug)

    def _count_processed(self) -> None:
        self._stats.processed += 1
        if self._stats.processed % self.options.progress_log_interval == 0:
            self.events.log(
                "progress", ch=self.channel_slug, processed=self._stats.processed
            )

    # ------------------------------------------------------------------
    # Per-block processing
    # ------------------------------------------------------------------

    async def _process_page(self, items: list[Any]) -> None:
        for item in items:
            if not self._within_budget():
                break
            block_id = item.get("id") if isinstance(item, dict) else None
            try:
                await self._process_block(item)
            except Exception as exc:
                logger.debug("Block %s failed", block_id, exc_info=True)
                self._stats.errors += 1
                self.events.warn(
                    "block_processing_failed", id=block_id, err=str(exc)
                )

    async def _process_block(self, block: Any) -> None:
        slug = self.channel_slug
        block_id = block.get("id") if isinstance(block, dict) else None
        if block_id is None or block_id == "":
            self.events.warn("invalid_block", ch=slug)
            return

        self._seen_ids.add(str(block_id))
        doc_id = document_id(block_id)
        existing = await self._read_existing(doc_id, block_id)

        observed = [{"slug": slug, "title": self.title_lookup.get(slug, slug)}]
        channels = merge_channels(
            (existing or {}).get("channels"), observed, self.title_lookup
        )

        image_signature = build_image_signature(block)
        fingerprint = compute_fingerprint(block)
        updated_at = block.get("updated_at")

        if (
            existing is not None
            and existing.get("arenaUpdatedAt") == updated_at
            and existing.get("arenaFingerprint") == fingerprint
        ):
            await self._refresh_membership(doc_id, existing, channels)
        else:
            await self._write_block(
                block, doc_id, existing, channels, image_signature, fingerprint
            )
        self._count_processed()

    async def _refresh_membership(
        self,
        doc_id: str,
        existing: dict[str, Any],
        channels: list[dict[str, Any]],
    ) -> None:
        """Content unchanged: write membership only if it actually changed."""
        if is_locked(existing) or owned_by_studio(existing, "channels"):
            self._stats.skipped_unchanged += 1
            return

        stored = existing.get("channels") or []
        if channels_equal(channels, stored):
            self._stats.skipped_unchanged += 1
            return

        fields: dict[str, Any] = {
            "channels": channels,
            "lastSyncedAt": _now_iso(),
            "lastSyncedBy": SYNC_ACTOR,
        }
        if existing.get("isOrphan"):
            fields["isOrphan"] = False
        await self._store_call(
            lambda: self.store.patch(doc_id).set(fields).commit(),
            "store.patch.channels",
        )
        self._stats.updated += 1
        self.events.log("channels_updated", id=existing.get("arenaId"), docId=doc_id)

    async def _write_block(
        self,
        block: dict[str, Any],
        doc_id: str,
        existing: dict[str, Any] | None,
        channels: list[dict[str, Any]],
        image_signature: str | None,
        fingerprint: str | None,
    ) -> None:
        """Content changed or document missing: write all engine-owned fields."""
        block_id = block["id"]
        if existing is not None and is_locked(existing):
            self._stats.skipped_unchanged += 1
            self.events.log("skipped_locked", id=block_id)
            return

        image_signature_changed = bool(image_signature) and (
            image_signature != (existing or {}).get("arenaImageSignature")
        )
        main_image: dict[str, Any] = {}
        wants_upload = image_update_allowed(existing) and should_upload_image(
            self.options.image_upload_mode,
            existing=existing,
            image_signature_changed=image_signature_changed,
        )
        if wants_upload and block.get("class") in UPLOADABLE_KINDS:
            main_image = await self._upload_image(block)

        source = block.get("source") or {}
        image = block.get("image") or {}
        source_title = block.get("title") or block.get("generated_title") or None
        fields = filter_owned(
            {
                "channels": channels,
                "arenaId": block_id,
                "arenaBlockUrl": BLOCK_URL.format(id=block_id),
                "blockType": block.get("class"),
                "description": block.get("description_html") or None,
                "contentHtml": block.get("content_html") or None,
                "sourceUrl": source.get("url") or None,
                "sourceTitle": source_title,
                "sourceProviderName": (source.get("provider") or {}).get("name")
                or None,
                "externalImageUrl": (image.get("display") or {}).get("url")
                or None,
                "externalImageThumbUrl": (image.get("thumb") or {}).get("url")
                or None,
                "arenaCreatedAt": block.get("created_at"),
                "arenaUpdatedAt": block.get("updated_at"),
                "rawArenaData": sanitize_for_storage(prune_raw(block)),
                "arenaImageSignature": image_signature or None,
                "arenaFingerprint": fingerprint or None,
                "isOrphan": False,
                "lastSyncedAt": _now_iso(),
                "lastSyncedBy": SYNC_ACTOR,
                **main_image,
            },
            extra=frozenset(main_image),
        )
        if existing is not None and owned_by_studio(existing, "channels"):
            fields.pop("channels", None)

        title = source_title or f"Block {block_id}"

        if existing is None:
            document = {
                "_id": doc_id,
                "_type": DOCUMENT_TYPE,
                "title": title,
                **fields,
                "syncPolicy": default_sync_policy(),
            }
            await self._store_call(
                lambda: self.store.create(document), "store.create"
            )
            self._stats.created += 1
            self.events.log("doc_committed", id=block_id, action="create")
            return

        await self._store_call(
            lambda: self.store.patch(doc_id)
            .set(fields)
            .unset(VOLATILE_RAW_PATHS)
            .set_if_missing({"title": title})
            .set_if_missing({"syncPolicy": default_sync_policy()})
            .commit(),
            "store.patch",
        )
        self._stats.updated += 1
        self.events.log("doc_committed", id=block_id, action="update")

    async def _upload_image(self, block: dict[str, Any]) -> dict[str, Any]:
        """Copy the block's original image into the store.

        Returns a ``{"mainImage": ...}`` fragment, or ``{}`` when the image
        could not be fetched or uploaded.
        """
        block_id = block["id"]
        url = ((block.get("image") or {}).get("original") or {}).get("url")
        if not url:
            return {}

        self.events.log("image_fetch_start", id=block_id, host=_safe_host(url))
        try:
            async with self._upload_slots:
                response = await fetch_with_timeout(
                    url, self.options.asset_timeout_ms
                )
                if not response.ok:
                    self.events.warn(
                        "image_fetch_not_ok",
                        id=block_id,
                        status=response.status_code,
                        statusText=response.reason,
                    )
                    return {}
                body = response.content
                filename = _image_filename(block)
                asset = await self._store_call(
                    lambda: self.store.upload_asset(
                        "image", body, filename=filename
                    ),
                    "store.upload",
                )
        except Exception as exc:
            self.events.warn("image_upload_failed", id=block_id, err=str(exc))
            return {}

        asset_id = asset.get("id") or asset.get("_id")
        self.events.log("image_uploaded", id=block_id, assetId=asset_id)
        return {
            "mainImage": {
                "_type": "image",
                "asset": {"_type": "reference", "_ref": asset_id},
            }
        }

    # ------------------------------------------------------------------
    # Drift cleanup
    # ------------------------------------------------------------------

    async def _fix_drift(self) -> None:
        """Detach this channel from documents not seen during the pass."""
        slug = self.channel_slug
        try:
            documents = await self._store_call(
                lambda: self.store.query(DRIFT_QUERY, {"slug": slug}),
                "store.drift.query",
            )
        except Exception as exc:
            self.events.warn("drift_fetch_failed", ch=slug, err=str(exc))
            return

        for document in documents or []:
            if str(document.get("arenaId")) in self._seen_ids:
                continue
            doc_id = document.get("_id")
            if is_locked(document) or owned_by_studio(document, "channels"):
                self.events.log("skipped_locked", docId=doc_id, ch=slug)
                continue

            remaining = ensure_keys(
                [
                    c
                    for c in document.get("channels") or []
                    if not (isinstance(c, dict) and c.get("slug") == slug)
                ]
            )
            fields: dict[str, Any] = {
                "channels": remaining,
                "lastSyncedAt": _now_iso(),
                "lastSyncedBy": SYNC_ACTOR,
            }
            if not remaining:
                fields["isOrphan"] = True
            try:
                await self._store_call(
                    lambda: self.store.patch(doc_id).set(fields).commit(),
                    "store.patch.drift",
                )
            except Exception as exc:
                self._stats.errors += 1
                self.events.warn("orphan_patch_failed", id=doc_id, err=str(exc))
                continue
            self._stats.orphaned_updated += 1
            self.events.log("orphaned_updated", id=doc_id, orphan=not remaining)
