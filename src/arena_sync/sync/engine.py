"""Run orchestrator: sync a list of Are.na channels one after another.

The ``SyncEngine``:

1. Validates the channel list (configuration errors raise ``ValueError``).
2. Resolves a slug-to-title lookup once, falling back to the slug.
3. Runs a ``ChannelReconciler`` per channel, sequentially and in order.
4. Stops starting new channels once the time budget is used up.
5. Aggregates per-channel results into a ``RunResult``.

A run is reported as failed only when every processed channel failed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Sequence

from arena_sync.core.async_utils import TimeBudget, with_timeout
from arena_sync.core.protocols import (
    ChannelInfoSource,
    ContentSource,
    DocumentStore,
)
from arena_sync.sync.events import EventLog, new_run_id
from arena_sync.sync.models import ChannelRunResult, RunResult
from arena_sync.sync.options import SyncOptions
from arena_sync.sync.reconciler import ChannelReconciler

logger = logging.getLogger(__name__)


class SyncEngine:
    """Sync Are.na channels into a document store.

    Args:
        source: Are.na content source (``get_page`` and optionally
            ``get_channel_info``).
        store: Destination document store.
        options: Run options; defaults to ``SyncOptions()``.
    """

    def __init__(
        self,
        source: ContentSource,
        store: DocumentStore,
        options: SyncOptions | None = None,
    ) -> None:
        self.source = source
        self.store = store
        self.options = options or SyncOptions()

    async def run(self, channels: Sequence[str]) -> RunResult:
        """Sync *channels* in order and return the aggregate result.

        Raises:
            ValueError: If no channel slug was given.
        """
        slugs = [slug.strip() for slug in channels if slug and slug.strip()]
        if not slugs:
            raise ValueError("At least one channel slug is required.")

        started_at = datetime.now(timezone.utc).isoformat()
        budget = TimeBudget(self.options.time_budget_ms)
        events = EventLog(new_run_id(), self.options.on_log)
        events.log("run_started", channels=slugs)

        title_lookup = await self._resolve_titles(slugs, events)

        results: list[ChannelRunResult] = []
        skipped: list[str] = []
        for index, slug in enumerate(slugs):
            reconciler = ChannelReconciler(
                source=self.source,
                store=self.store,
                channel_slug=slug,
                title_lookup=title_lookup,
                options=self.options,
                events=events,
                budget=budget,
            )
            result = await reconciler.run()
            results.append(
                ChannelRunResult(channel=slug, **result.model_dump())
            )
            if not budget.within():
                skipped = slugs[index + 1 :]
                if skipped:
                    events.warn("budget_exhausted", skippedChannels=skipped)
                break

        run_result = self._aggregate(
            events.run_id, results, skipped, started_at
        )
        events.log(
            "run_finished",
            success=run_result.success,
            updatedOrCreated=run_result.updated_or_created,
        )
        return run_result

    async def _resolve_titles(
        self, slugs: list[str], events: EventLog
    ) -> dict[str, str]:
        """Build the slug-to-title lookup.  Failures fall back to the slug."""
        lookup: dict[str, str] = {}
        can_lookup = isinstance(self.source, ChannelInfoSource)
        for slug in slugs:
            if not can_lookup:
                lookup[slug] = slug
                continue
            try:
                info = await with_timeout(
                    self.source.get_channel_info(slug),  # type: ignore[attr-defined]
                    self.options.source_timeout_ms,
                    "arena.channel_info",
                )
            except Exception as exc:
                events.warn("channel_info_failed", ch=slug, err=str(exc))
                info = None
            lookup[slug] = (info or {}).get("title") or slug
        return lookup

    @staticmethod
    def _aggregate(
        run_id: str,
        results: list[ChannelRunResult],
        skipped: list[str],
        started_at: str,
    ) -> RunResult:
        failed = [r for r in results if not r.success]
        all_failed = bool(results) and len(failed) == len(results)

        if all_failed:
            message = "All channels failed during sync."
        elif failed:
            message = (
                f"{len(failed)} of {len(results)} channels failed during sync."
            )
        else:
            message = "All channels processed successfully."
        if skipped:
            message += (
                f" Time budget exhausted; {len(skipped)} channel(s) not started."
            )

        return RunResult(
            success=not all_failed,
            message=message,
            run_id=run_id,
            updated_or_created=sum(r.created + r.updated for r in results),
            channels=results,
            status_messages=[f"{r.channel}: {r.message}" for r in results],
            skipped_channels=skipped,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc).isoformat(),
        )


async def sync_channels(
    source: ContentSource,
    store: DocumentStore,
    channels: Sequence[str],
    options: SyncOptions | None = None,
    **overrides: Any,
) -> RunResult:
    """Run a sync in one call.

    Keyword *overrides* replace individual fields of *options*, e.g.
    ``sync_channels(arena, sanity, ["my-channel"], image_upload_mode="off")``.
    """
    opts = options or SyncOptions()
    if overrides:
        opts = SyncOptions.model_validate(
            {**opts.model_dump(), "on_log": opts.on_log, **overrides}
        )
    return await SyncEngine(source, store, opts).run(channels)
