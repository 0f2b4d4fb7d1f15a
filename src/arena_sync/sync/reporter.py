"""Sync report formatting functions.

- ``format_run_report`` -- human-readable post-sync summary.
- ``format_dry_run_preview`` -- what a run would do, without contacting
  any remote service.
- ``format_event`` -- one line per structured event for verbose output.
- ``run_result_to_json`` -- structured dict for JSON output.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import TYPE_CHECKING, Any, Sequence

if TYPE_CHECKING:
    from .models import RunResult
    from .options import SyncOptions

RULE = "-" * 40


def format_duration(seconds: float) -> str:
    """Format a duration as ``850ms``, ``12s`` or ``3m 4s``."""
    ms = int(seconds * 1000)
    if ms < 1000:
        return f"{ms}ms"
    whole = ms // 1000
    if whole < 60:
        return f"{whole}s"
    return f"{whole // 60}m {whole % 60}s"


# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_run_report(result: RunResult, duration_s: float | None = None) -> str:
    """Format a completed run as human-readable text.

    Args:
        result: The run result.
        duration_s: Wall-clock duration to show, if known.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = [RULE]
    lines.append(f"Status:   {'SUCCESS' if result.success else 'FAILED'}")
    if duration_s is not None:
        lines.append(f"Duration: {format_duration(duration_s)}")
    lines.append(f"Updated:  {result.updated_or_created} documents")
    lines.append(f"Run:      {result.run_id}")
    lines.append("")

    if result.channels:
        lines.append("Per-channel results:")
        for c in result.channels:
            mark = "✓" if c.success else "✗"
            lines.append(
                f"  {mark} {c.channel}: {c.created} created, "
                f"{c.updated} updated, {c.skipped_unchanged} unchanged"
            )
            if c.orphaned_updated:
                lines.append(f"    ({c.orphaned_updated} drift fixes)")
            if c.errors:
                lines.append(f"    ({c.errors} errors)")
            if not c.success:
                lines.append(f"    error: {c.message}")
        lines.append("")

    if result.skipped_channels:
        lines.append(
            "Not started (time budget): " + ", ".join(result.skipped_channels)
        )
        lines.append("")

    lines.append(result.message)
    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Dry-run preview
# ------------------------------------------------------------------


def format_dry_run_preview(
    channels: Sequence[str], options: SyncOptions
) -> str:
    """Describe the run that would be performed.

    Args:
        channels: Channel slugs in processing order.
        options: Options the run would use.
    """
    budget = (
        "unbounded"
        if options.time_budget_ms is None
        else format_duration(options.time_budget_ms / 1000)
    )
    lines = [
        "DRY RUN -- No changes will be made",
        f"Image upload: {options.image_upload_mode.value}",
        f"Drift fix:    {'on' if options.drift_fix else 'off'}",
        f"Page size:    {options.page_size}",
        f"Time budget:  {budget}",
        "",
        "Would sync the following channels:",
    ]
    lines.extend(f"  - {slug}" for slug in channels)
    return "\n".join(lines)


# ------------------------------------------------------------------
# Event lines
# ------------------------------------------------------------------


def format_event(event: dict[str, Any], now: datetime | None = None) -> str:
    """Render a structured event as ``[HH:MM:SS] LEVEL msg {extra}``."""
    stamp = (now or datetime.now()).strftime("%H:%M:%S")
    extra = {
        k: v for k, v in event.items() if k not in ("lvl", "msg", "run")
    }
    extra_text = f" {json.dumps(extra, default=str)}" if extra else ""
    level = str(event.get("lvl", "log")).upper()
    return f"[{stamp}] {level} {event.get('msg', '')}{extra_text}"


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def run_result_to_json(result: RunResult) -> dict:
    """Convert a run result to a JSON-serialisable dict with totals."""
    data = result.model_dump(mode="json")
    data["counts"] = {
        "channels": len(result.channels),
        "failed_channels": len(result.failed_channels),
        "created": sum(c.created for c in result.channels),
        "updated": sum(c.updated for c in result.channels),
        "skipped_unchanged": sum(c.skipped_unchanged for c in result.channels),
        "orphaned_updated": sum(c.orphaned_updated for c in result.channels),
        "errors": result.total_errors,
    }
    return data
