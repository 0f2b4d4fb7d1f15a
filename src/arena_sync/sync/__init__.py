"""Are.na to Sanity reconciliation engine.

Public API for syncing remotely-owned Are.na channels into a Sanity
dataset, one document per block.

Architecture
------------
Each run walks the configured channels sequentially.  Per block the engine
decides between *create*, *update* and *skip* by comparing a fingerprint of
the tracked fields with the one stored on the document, merges channel
membership without dropping other channels, and respects per-field
ownership (``syncPolicy.owner``) and lock flags set by editors.

Modules:

- ``engine``       -- ``SyncEngine``: runs channels and aggregates results.
- ``reconciler``   -- ``ChannelReconciler``: pages, per-block writes, drift.
- ``fingerprint``  -- content fingerprint and image signature.
- ``sanitize``     -- storage-safe keys, raw payload pruning, ``_key``s.
- ``merger``       -- channel-membership merge and comparison.
- ``ownership``    -- owned-field set, locks, image upload policy.
- ``models``       -- ``ChannelResult``, ``RunResult``, ``ImageUploadMode``.
- ``options``      -- ``SyncOptions``.
- ``events``       -- ``EventLog``: structured progress events.
- ``reporter``     -- human-readable and JSON reports.
- ``status``       -- record a run on the sync configuration document.

Usage example
-------------
::

    from arena_sync.core import ArenaClient, SanityClient
    from arena_sync.sync import SyncEngine, SyncOptions, format_run_report

    engine = SyncEngine(
        source=ArenaClient(token),
        store=SanityClient(project_id, dataset, sanity_token),
        options=SyncOptions(image_upload_mode="auto", time_budget_ms=260_000),
    )
    result = await engine.run(["my-channel", "another-channel"])
    print(format_run_report(result))
"""

from .engine import SyncEngine, sync_channels
from .events import EventLog
from .fingerprint import build_image_signature, compute_fingerprint
from .merger import channels_equal, merge_channels
from .models import ChannelResult, ChannelRunResult, ImageUploadMode, RunResult
from .options import SyncOptions
from .ownership import should_upload_image
from .reconciler import ChannelReconciler, document_id
from .reporter import (
    format_dry_run_preview,
    format_run_report,
    run_result_to_json,
)
from .sanitize import ensure_keys, prune_raw, sanitize_for_storage
from .status import record_sync_status

__all__ = [
    "ChannelReconciler",
    "ChannelResult",
    "ChannelRunResult",
    "EventLog",
    "ImageUploadMode",
    "RunResult",
    "SyncEngine",
    "SyncOptions",
    "build_image_signature",
    "channels_equal",
    "compute_fingerprint",
    "document_id",
    "ensure_keys",
    "format_dry_run_preview",
    "format_run_report",
    "merge_channels",
    "prune_raw",
    "record_sync_status",
    "run_result_to_json",
    "sanitize_for_storage",
    "should_upload_image",
    "sync_channels",
]
