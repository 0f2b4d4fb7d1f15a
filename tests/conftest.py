"""Shared pytest fixtures for arena-sync tests."""

from __future__ import annotations

from typing import Any

import pytest

from arena_sync.config import Config
from arena_sync.sync.options import SyncOptions


@pytest.fixture
def fast_options():
    """SyncOptions with no backoff and a long heartbeat, for quick tests."""

    def _make(**overrides: Any) -> SyncOptions:
        values = {"backoff_ms": 0, "heartbeat_ms": 60_000}
        values.update(overrides)
        return SyncOptions(**values)

    return _make


@pytest.fixture
def mock_config():
    """Create a Config instance for testing."""
    return Config(
        arena_token="arena-token",
        sanity_project_id="abc123",
        sanity_dataset="production",
        sanity_token="sanity-token",
    )
