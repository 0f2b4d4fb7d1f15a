"""Unified configuration schema for arena_sync.

Defines Pydantic models for the config file sections (Are.na connection,
Sanity connection, sync channels and options, logging).  ``SyncOptions``
itself lives in ``arena_sync.sync.options`` and is re-exported here.

Usage:
    from arena_sync.config_schema import build_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

from .sync.options import SyncOptions

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class ArenaSection(BaseModel):
    """Are.na API settings."""

    token: str | None = Field(default=None, description="Are.na access token")
    api_url: str | None = Field(default=None, description="Are.na API base URL")

    model_config = {"frozen": True}


class SanitySection(BaseModel):
    """Sanity project settings.

    All fields are optional so env vars and CLI args can supply them.
    """

    project_id: str | None = Field(default=None, description="Project ID")
    dataset: str | None = Field(default=None, description="Dataset name")
    token: str | None = Field(
        default=None, description="API token with write access"
    )
    api_version: str | None = Field(default=None, description="API version date")

    model_config = {"frozen": True}


class SyncSection(BaseModel):
    """Channels to sync and option overrides."""

    channels: list[str] = Field(default_factory=list)
    options: SyncOptions = Field(default_factory=SyncOptions)

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
        format: "text" or "json".
    """

    level: str | None = Field(
        default=None, description="Log level; unset falls back to WARNING"
    )
    file: str | None = Field(default=None, description="Log file path")
    format: str = Field(default="text", description="text or json")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has defaults, so ``UnifiedConfig()`` is always valid.
    """

    arena: ArenaSection = Field(default_factory=ArenaSection)
    sanity: SanitySection = Field(default_factory=SanitySection)
    sync: SyncSection = Field(default_factory=SyncSection)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Missing sections get defaults.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)
