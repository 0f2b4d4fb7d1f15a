"""Tests for sync reporter formatting functions.

Covers:
- format_run_report with successful, failed and budget-limited runs
- format_dry_run_preview formatting
- format_event line rendering
- run_result_to_json structure and totals
"""

from __future__ import annotations

import json
from datetime import datetime

from arena_sync.sync.models import ChannelRunResult, RunResult
from arena_sync.sync.options import SyncOptions
from arena_sync.sync.reporter import (
    format_dry_run_preview,
    format_duration,
    format_event,
    format_run_report,
    run_result_to_json,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _channel(slug: str = "ch", success: bool = True, **counts) -> ChannelRunResult:
    return ChannelRunResult(
        channel=slug,
        success=success,
        message=counts.pop("message", "channel_processed"),
        **counts,
    )


def _make_result(
    channels: list[ChannelRunResult] | None = None,
    success: bool = True,
    message: str = "All channels processed successfully.",
    skipped: list[str] | None = None,
) -> RunResult:
    channels = channels or []
    return RunResult(
        success=success,
        message=message,
        run_id="1700000000000-abc123",
        updated_or_created=sum(c.created + c.updated for c in channels),
        channels=channels,
        status_messages=[f"{c.channel}: {c.message}" for c in channels],
        skipped_channels=skipped or [],
        started_at="2026-02-07T10:00:00+00:00",
        completed_at="2026-02-07T10:01:00+00:00",
    )


class TestFormatDuration:
    def test_milliseconds(self):
        assert format_duration(0.25) == "250ms"

    def test_seconds(self):
        assert format_duration(12.7) == "12s"

    def test_minutes(self):
        assert format_duration(184) == "3m 4s"


# ---------------------------------------------------------------------------
# format_run_report
# ---------------------------------------------------------------------------


class TestFormatRunReport:
    """Tests for format_run_report()."""

    def test_success_header(self):
        text = format_run_report(_make_result(), duration_s=2)
        assert "Status:   SUCCESS" in text
        assert "Duration: 2s" in text
        assert "1700000000000-abc123" in text

    def test_no_duration_line_when_unknown(self):
        assert "Duration" not in format_run_report(_make_result())

    def test_per_channel_counts(self):
        result = _make_result(
            [_channel("a", created=2, updated=1, skipped_unchanged=4)]
        )
        text = format_run_report(result)
        assert "✓ a: 2 created, 1 updated, 4 unchanged" in text
        assert "Updated:  3 documents" in text

    def test_failed_channel_shows_error(self):
        result = _make_result(
            [_channel("a", success=False, errors=1, message="arena down")],
            success=False,
            message="All channels failed during sync.",
        )
        text = format_run_report(result)
        assert "Status:   FAILED" in text
        assert "✗ a:" in text
        assert "(1 errors)" in text
        assert "error: arena down" in text
        assert text.endswith("All channels failed during sync.")

    def test_drift_fixes_listed(self):
        result = _make_result([_channel("a", orphaned_updated=3)])
        assert "(3 drift fixes)" in format_run_report(result)

    def test_skipped_channels_listed(self):
        result = _make_result([_channel("a")], skipped=["b", "c"])
        assert "Not started (time budget): b, c" in format_run_report(result)


# ---------------------------------------------------------------------------
# format_dry_run_preview
# ---------------------------------------------------------------------------


class TestFormatDryRunPreview:
    def test_lists_channels_and_options(self):
        text = format_dry_run_preview(
            ["a", "b"], SyncOptions(image_upload_mode="off", time_budget_ms=90000)
        )
        assert text.startswith("DRY RUN -- No changes will be made")
        assert "Image upload: off" in text
        assert "Time budget:  1m 30s" in text
        assert "  - a" in text
        assert "  - b" in text

    def test_unbounded_budget(self):
        text = format_dry_run_preview(["a"], SyncOptions(drift_fix=False))
        assert "Time budget:  unbounded" in text
        assert "Drift fix:    off" in text


# ---------------------------------------------------------------------------
# format_event
# ---------------------------------------------------------------------------


class TestFormatEvent:
    def test_renders_level_message_and_extra(self):
        event = {"run": "r", "lvl": "warn", "msg": "invalid_block", "ch": "a"}
        line = format_event(event, now=datetime(2026, 1, 1, 9, 5, 3))
        assert line == '[09:05:03] WARN invalid_block {"ch": "a"}'

    def test_no_extra(self):
        event = {"run": "r", "lvl": "log", "msg": "run_started"}
        line = format_event(event, now=datetime(2026, 1, 1, 9, 5, 3))
        assert line == "[09:05:03] LOG run_started"


# ---------------------------------------------------------------------------
# run_result_to_json
# ---------------------------------------------------------------------------


class TestRunResultToJson:
    def test_serialisable_with_counts(self):
        result = _make_result(
            [
                _channel("a", created=2, skipped_unchanged=1),
                _channel("b", success=False, errors=1, message="boom"),
            ],
            message="1 of 2 channels failed during sync.",
        )
        data = run_result_to_json(result)

        json.dumps(data)
        assert data["run_id"] == "1700000000000-abc123"
        assert data["channels"][0]["channel"] == "a"
        assert data["counts"] == {
            "channels": 2,
            "failed_channels": 1,
            "created": 2,
            "updated": 0,
            "skipped_unchanged": 1,
            "orphaned_updated": 0,
            "errors": 1,
        }
