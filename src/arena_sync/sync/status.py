"""Record the outcome of a run on the dataset's sync configuration document.

The editing studio shows ``lastSyncDate``, ``lastSyncStatus`` and
``lastSuccessfullySyncedSlugs`` from a singleton document, so a scheduled
run can report back without any other side channel.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from arena_sync.core.async_utils import with_timeout
from arena_sync.core.protocols import DocumentStore
from arena_sync.sync.models import RunResult

logger = logging.getLogger(__name__)

STATUS_DOCUMENT_ID = "arenaSyncConfiguration"


def build_status_fields(result: RunResult) -> dict:
    """Return the fields written to the configuration document."""
    status_lines = [result.message, *result.status_messages]
    return {
        "lastSyncDate": result.completed_at
        or datetime.now(timezone.utc).isoformat(),
        "lastSyncStatus": "\n".join(status_lines),
        "lastSuccessfullySyncedSlugs": [
            c.channel for c in result.channels if c.success
        ],
    }


async def record_sync_status(
    store: DocumentStore,
    result: RunResult,
    doc_id: str = STATUS_DOCUMENT_ID,
    timeout_ms: int = 20000,
) -> bool:
    """Patch the configuration document with *result*.

    Returns ``True`` on success.  Failures are logged, never raised.
    """
    fields = build_status_fields(result)
    try:
        await with_timeout(
            store.patch(doc_id).set(fields).commit(),
            timeout_ms,
            "store.status",
        )
    except Exception as exc:
        logger.warning("Could not record sync status on %s: %s", doc_id, exc)
        return False
    logger.info("Recorded sync status on %s", doc_id)
    return True
