"""Command-line entry point: ``arena-sync``.

Loads credentials and options (CLI > env / .env > YAML config > defaults),
runs the sync and prints a report.  Exit status is 0 when the run succeeded
and 1 when it failed or the configuration was invalid.
"""

import argparse
import asyncio
import json
import logging
import os
import sys
import time
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from . import __version__
from .config import load_config
from .config_loader import load_hierarchical_config
from .config_schema import UnifiedConfig, build_config
from .core.arena_client import ArenaClient
from .core.sanity_client import SanityClient
from .logger import setup_logging
from .sync.engine import SyncEngine
from .sync.options import SyncOptions
from .sync.reporter import (
    RULE,
    format_dry_run_preview,
    format_event,
    format_run_report,
    run_result_to_json,
)
from .sync.status import record_sync_status
from .validators import parse_channel_list

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="arena-sync",
        description="Sync Are.na channels into a Sanity dataset",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment variables (required unless set in config.yml):
  ARENA_ACCESS_TOKEN        Are.na API access token
  SANITY_PROJECT_ID         Sanity project ID
  SANITY_DATASET            Sanity dataset name
  SANITY_TOKEN              Sanity API token with write access
  ARENA_CHANNELS            Comma-separated channel slugs (if --channels is omitted)

Examples:
  # Sync a single channel
  arena-sync --channels my-channel

  # Sync multiple channels without images
  arena-sync -c channel-1,channel-2 -i off

  # Verbose output, stop starting new work after 4 minutes
  arena-sync -c my-channel -v --time-budget 240
        """,
    )
    parser.add_argument(
        "-c",
        "--channels",
        help="Comma-separated channel slugs (falls back to ARENA_CHANNELS and config.yml)",
    )
    parser.add_argument(
        "-i",
        "--image-upload",
        choices=["off", "auto", "on"],
        help="Image upload mode (default: auto)",
    )
    parser.add_argument(
        "--page-size", type=int, help="Blocks per Are.na page request"
    )
    parser.add_argument(
        "--time-budget",
        type=float,
        help="Soft time budget for the whole run, in seconds",
    )
    parser.add_argument(
        "--no-drift-fix",
        action="store_true",
        help="Do not remove memberships of blocks that left a channel",
    )
    parser.add_argument(
        "-d",
        "--dry-run",
        action="store_true",
        help="Print what would happen without making changes",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Print every progress event",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the run result as JSON instead of a text report",
    )
    parser.add_argument(
        "--record-status",
        action="store_true",
        help="Write the outcome to the arenaSyncConfiguration document",
    )
    parser.add_argument("--debug", action="store_true", help="Debug logging")
    parser.add_argument("--log-file", help="Also append log records to this file")
    parser.add_argument(
        "--debug-format",
        choices=["text", "json"],
        default=None,
        help="Log record format (default: text)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"arena-sync version {__version__}",
    )
    return parser


def resolve_channels(
    args: argparse.Namespace, unified: UnifiedConfig
) -> list[str]:
    """Channel slugs from ``--channels``, then ARENA_CHANNELS, then YAML.

    Raises:
        ValueError: If no valid slug is found or one is malformed.
    """
    for raw in (args.channels, os.getenv("ARENA_CHANNELS"), unified.sync.channels):
        slugs = parse_channel_list(raw)
        if slugs:
            return slugs
    raise ValueError(
        "No channels provided. Pass --channels, set ARENA_CHANNELS "
        "or add sync.channels to config.yml."
    )


def build_options(
    args: argparse.Namespace,
    unified: UnifiedConfig,
    on_log: Any = None,
) -> SyncOptions:
    """Apply CLI overrides on top of the configured sync options."""
    overrides: dict[str, Any] = {}
    if args.image_upload:
        overrides["image_upload_mode"] = args.image_upload
    if args.page_size is not None:
        overrides["page_size"] = args.page_size
    if args.time_budget is not None:
        overrides["time_budget_ms"] = int(args.time_budget * 1000)
    if args.no_drift_fix:
        overrides["drift_fix"] = False
    if on_log is not None:
        overrides["on_log"] = on_log

    base = unified.sync.options
    return SyncOptions.model_validate(
        {**base.model_dump(), "on_log": base.on_log, **overrides}
    )


def _print_event(event: dict[str, Any], stream: Any) -> None:
    print(format_event(event), file=stream, flush=True)


async def main(args: argparse.Namespace) -> int:
    """Run one sync from parsed arguments and return the exit status."""
    load_dotenv()

    try:
        raw = load_hierarchical_config()
        unified = build_config(raw)
    except (
        ValidationError, ValueError, FileNotFoundError, yaml.YAMLError
    ) as exc:
        print(f"Error: invalid config file: {exc}", file=sys.stderr)
        return 1

    setup_logging(
        debug=args.debug,
        log_file=args.log_file or unified.logging.file,
        debug_format=args.debug_format or unified.logging.format,
        level=unified.logging.level,
    )

    # Reports go to stdout; with --json, events move to stderr
    event_stream = sys.stderr if args.json else sys.stdout
    on_log = (
        (lambda event: _print_event(event, event_stream))
        if args.verbose
        else None
    )

    try:
        channels = resolve_channels(args, unified)
        options = build_options(args, unified, on_log)
        config = load_config(debug=args.debug, yaml_fallbacks=raw)
    except (ValueError, ValidationError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if args.dry_run:
        print(format_dry_run_preview(channels, options))
        print("\nNo changes made.")
        return 0

    if not args.json:
        print("arena-sync")
        print(RULE)
        print(f"Channels:     {', '.join(channels)}")
        print(f"Image upload: {options.image_upload_mode.value}")
        print("")

    arena = ArenaClient(config.arena_token, api_url=config.arena_api_url)
    sanity = SanityClient(
        config.sanity_project_id,
        config.sanity_dataset,
        config.sanity_token,
        api_version=config.sanity_api_version,
    )

    started = time.monotonic()
    result = await SyncEngine(arena, sanity, options).run(channels)
    duration = time.monotonic() - started

    if args.record_status:
        await record_sync_status(
            sanity, result, timeout_ms=options.store_timeout_ms
        )

    if args.json:
        print(json.dumps(run_result_to_json(result), indent=2))
    else:
        print(format_run_report(result, duration_s=duration))

    return 0 if result.success else 1


def run() -> None:
    """Console script entry point."""
    args = build_parser().parse_args()
    try:
        exit_code = asyncio.run(main(args))
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)
    sys.exit(exit_code)


if __name__ == "__main__":
    run()
