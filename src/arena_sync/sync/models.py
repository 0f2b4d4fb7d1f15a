"""Pydantic models for sync results.

- ``ImageUploadMode``: Enum of asset upload policies.
- ``ChannelResult``: Outcome of reconciling one channel.
- ``ChannelRunResult``: ``ChannelResult`` tagged with its channel slug.
- ``RunResult``: Aggregate result for a full run.

All models are frozen (immutable); they are built once when a channel or
run completes.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class ImageUploadMode(str, Enum):
    """When block images are downloaded and uploaded as store assets."""

    OFF = "off"
    AUTO = "auto"
    ON = "on"


class ChannelResult(BaseModel):
    """Result of reconciling one channel.

    Attributes:
        success: ``False`` only when the channel hit a hard error (for
            example the first page could not be fetched).
        created: Documents created.
        updated: Documents patched (content or membership).
        skipped_unchanged: Blocks that needed no write, including locked
            documents.
        orphaned_updated: Documents whose membership drift was fixed.
        errors: Per-block and drift-fix failures, plus one for a hard
            channel error.
        message: Short status code or error text.
        items_processed: Blocks fully handled (created, updated or skipped).
    """

    success: bool
    created: int = 0
    updated: int = 0
    skipped_unchanged: int = 0
    orphaned_updated: int = 0
    errors: int = 0
    message: str
    items_processed: int = 0

    model_config = {"frozen": True}


class ChannelRunResult(ChannelResult):
    """A ``ChannelResult`` together with the channel slug it belongs to."""

    channel: str


class RunResult(BaseModel):
    """Aggregate result for a sync run.

    Attributes:
        success: ``False`` only if every processed channel failed.
        message: Human-readable overall status.
        run_id: Identifier attached to every log event of the run.
        updated_or_created: Sum of created and updated across channels.
        channels: Per-channel results in processing order.
        status_messages: ``"<slug>: <message>"`` per processed channel.
        skipped_channels: Channels not started because the time budget
            ran out.
        started_at: ISO 8601 timestamp when the run started.
        completed_at: ISO 8601 timestamp when the run finished.
    """

    success: bool
    message: str
    run_id: str
    updated_or_created: int = 0
    channels: list[ChannelRunResult] = []
    status_messages: list[str] = []
    skipped_channels: list[str] = []
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    @property
    def failed_channels(self) -> list[ChannelRunResult]:
        return [c for c in self.channels if not c.success]

    @property
    def succeeded_channels(self) -> list[ChannelRunResult]:
        return [c for c in self.channels if c.success]

    @property
    def total_errors(self) -> int:
        return sum(c.errors for c in self.channels)

    def summary(self) -> str:
        """Format a short multi-line summary with counts per channel."""
        lines = [
            f"Sync run {self.run_id}: {self.message}",
            f"  Updated or created: {self.updated_or_created}",
        ]
        for c in self.channels:
            lines.append(
                f"  {c.channel}: {c.created} created, {c.updated} updated, "
                f"{c.skipped_unchanged} unchanged, "
                f"{c.orphaned_updated} orphaned, {c.errors} errors"
            )
        if self.skipped_channels:
            lines.append(
                f"  Not started (time budget): {', '.join(self.skipped_channels)}"
            )
        return "\n".join(lines)
