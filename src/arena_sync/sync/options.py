"""Option bag accepted by ``SyncEngine``."""

from __future__ import annotations

from typing import Any, Callable

from pydantic import BaseModel, Field

from .models import ImageUploadMode


class SyncOptions(BaseModel):
    """Tuning knobs for a sync run.  ``SyncOptions()`` gives the defaults.

    Timeouts and intervals are in milliseconds.  ``image_concurrency`` caps
    how many image uploads may be in flight at once.
    """

    page_size: int = Field(
        default=100, ge=1, le=1000, description="Blocks per page request"
    )
    source_timeout_ms: int = Field(
        default=15000, ge=1, description="Timeout for Are.na page requests"
    )
    asset_timeout_ms: int = Field(
        default=15000, ge=1, description="Timeout for image downloads"
    )
    store_timeout_ms: int = Field(
        default=20000, ge=1, description="Timeout for Sanity writes and queries"
    )
    retries: int = Field(
        default=3, ge=1, le=20, description="Attempts per remote call"
    )
    backoff_ms: int = Field(
        default=600,
        ge=0,
        description="Linear backoff step between attempts",
    )
    progress_log_interval: int = Field(
        default=25, ge=1, description="Emit a progress event every N blocks"
    )
    heartbeat_ms: int = Field(
        default=10000, ge=1, description="Heartbeat interval per channel"
    )
    image_upload_mode: ImageUploadMode = Field(
        default=ImageUploadMode.AUTO, description="off, auto or on"
    )
    image_concurrency: int = Field(
        default=3,
        ge=1,
        le=32,
        description="Upper bound on simultaneous image uploads",
    )
    drift_fix: bool = Field(
        default=True,
        description="Remove memberships for blocks no longer in a channel",
    )
    time_budget_ms: int | None = Field(
        default=None,
        ge=0,
        description="Soft wall-clock budget for the whole run (None: unbounded)",
    )
    on_log: Callable[[dict[str, Any]], Any] | None = Field(
        default=None, exclude=True, description="Structured event sink"
    )

    model_config = {"frozen": True}
