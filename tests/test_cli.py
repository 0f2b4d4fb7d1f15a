"""Tests for cli.py -- argument parsing, option resolution and main()."""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest
import yaml

from arena_sync import cli
from arena_sync.config_schema import build_config
from arena_sync.sync.models import ImageUploadMode

from fakes import FakeArena, FakeStore, make_block

_CREDENTIALS = {
    "ARENA_ACCESS_TOKEN": "arena-token",
    "SANITY_PROJECT_ID": "abc123",
    "SANITY_DATASET": "production",
    "SANITY_TOKEN": "sanity-token",
}


@pytest.fixture
def env(monkeypatch):
    for key in (
        "ARENA_CHANNELS",
        "ARENA_API_URL",
        "SANITY_API_VERSION",
        "ARENA_SYNC_DEBUG",
    ):
        monkeypatch.delenv(key, raising=False)
    for key, value in _CREDENTIALS.items():
        monkeypatch.setenv(key, value)
    return monkeypatch


@pytest.fixture
def wired(env):
    """Patch out file/env loading and the HTTP clients."""
    arena = FakeArena({"a": [[make_block(1)]], "b": [[make_block(2)]]})
    store = FakeStore()
    with patch("arena_sync.cli.load_dotenv"), patch(
        "arena_sync.cli.setup_logging"
    ), patch(
        "arena_sync.cli.load_hierarchical_config", return_value={}
    ) as mock_loader, patch(
        "arena_sync.cli.ArenaClient", return_value=arena
    ) as mock_arena, patch(
        "arena_sync.cli.SanityClient", return_value=store
    ) as mock_sanity:
        yield {
            "arena": arena,
            "store": store,
            "loader": mock_loader,
            "arena_cls": mock_arena,
            "sanity_cls": mock_sanity,
        }


def _args(*argv: str):
    return cli.build_parser().parse_args(list(argv))


# ---------------------------------------------------------------------------
# Parsing and option resolution
# ---------------------------------------------------------------------------


class TestBuildOptions:
    def test_cli_overrides(self):
        args = _args(
            "-c", "a", "-i", "off", "--page-size", "20",
            "--time-budget", "1.5", "--no-drift-fix",
        )
        options = cli.build_options(args, build_config({}))

        assert options.image_upload_mode is ImageUploadMode.OFF
        assert options.page_size == 20
        assert options.time_budget_ms == 1500
        assert options.drift_fix is False

    def test_config_values_kept_without_flags(self):
        unified = build_config(
            {"sync": {"options": {"page_size": 40, "retries": 5}}}
        )
        options = cli.build_options(_args(), unified)

        assert options.page_size == 40
        assert options.retries == 5
        assert options.drift_fix is True

    def test_on_log_attached(self):
        sink = []
        options = cli.build_options(_args(), build_config({}), sink.append)
        assert options.on_log == sink.append

    def test_invalid_image_mode_rejected(self, capsys):
        with pytest.raises(SystemExit):
            _args("-i", "sometimes")


class TestResolveChannels:
    def test_cli_first(self, env):
        env.setenv("ARENA_CHANNELS", "from-env")
        unified = build_config({"sync": {"channels": ["from-yaml"]}})

        assert cli.resolve_channels(_args("-c", "x,y"), unified) == ["x", "y"]

    def test_env_then_yaml(self, env):
        unified = build_config({"sync": {"channels": ["from-yaml"]}})
        assert cli.resolve_channels(_args(), unified) == ["from-yaml"]

        env.setenv("ARENA_CHANNELS", "from-env")
        assert cli.resolve_channels(_args(), unified) == ["from-env"]

    def test_none_raises(self, env):
        with pytest.raises(ValueError, match="No channels provided"):
            cli.resolve_channels(_args(), build_config({}))

    def test_invalid_slug_raises(self, env):
        with pytest.raises(ValueError, match="may only contain"):
            cli.resolve_channels(_args("-c", "bad slug"), build_config({}))


# ---------------------------------------------------------------------------
# main()
# ---------------------------------------------------------------------------


class TestMain:
    async def test_successful_run(self, wired, capsys):
        code = await cli.main(_args("-c", "a,b"))

        out = capsys.readouterr().out
        assert code == 0
        assert "Channels:     a, b" in out
        assert "Status:   SUCCESS" in out
        assert set(wired["store"].docs) == {"arenaBlock-1", "arenaBlock-2"}
        wired["arena_cls"].assert_called_once_with(
            "arena-token", api_url="https://api.are.na/v2"
        )
        wired["sanity_cls"].assert_called_once_with(
            "abc123", "production", "sanity-token", api_version="2024-05-15"
        )

    async def test_dry_run_makes_no_calls(self, wired, capsys):
        code = await cli.main(_args("-c", "a", "--dry-run"))

        out = capsys.readouterr().out
        assert code == 0
        assert "DRY RUN" in out
        assert "No changes made." in out
        wired["arena_cls"].assert_not_called()
        assert wired["arena"].page_calls == []

    async def test_json_output(self, wired, capsys):
        code = await cli.main(_args("-c", "a", "--json"))

        data = json.loads(capsys.readouterr().out)
        assert code == 0
        assert data["success"] is True
        assert data["counts"]["created"] == 1

    async def test_verbose_events_go_to_stderr_with_json(self, wired, capsys):
        await cli.main(_args("-c", "a", "--json", "-v"))

        captured = capsys.readouterr()
        json.loads(captured.out)
        assert "run_started" in captured.err

    async def test_record_status(self, wired):
        await cli.main(_args("-c", "a", "--record-status"))

        status = wired["store"].docs["arenaSyncConfiguration"]
        assert status["lastSuccessfullySyncedSlugs"] == ["a"]

    async def test_failed_run_exit_code(self, wired, capsys):
        wired["arena"].fail_pages[("a", 1)] = 100
        wired["loader"].return_value = {
            "sync": {"options": {"retries": 1, "backoff_ms": 0}}
        }

        code = await cli.main(_args("-c", "a"))

        assert code == 1
        assert "Status:   FAILED" in capsys.readouterr().out

    async def test_missing_credentials(self, wired, env, capsys):
        env.delenv("SANITY_TOKEN")

        code = await cli.main(_args("-c", "a"))

        assert code == 1
        assert "Sanity token not found" in capsys.readouterr().err

    async def test_missing_channels(self, wired, capsys):
        code = await cli.main(_args())

        assert code == 1
        assert "No channels provided" in capsys.readouterr().err

    async def test_invalid_config_file(self, wired, capsys):
        wired["loader"].return_value = {"sync": {"options": {"page_size": -1}}}

        code = await cli.main(_args("-c", "a"))

        assert code == 1
        assert "invalid config file" in capsys.readouterr().err

    @pytest.mark.parametrize(
        "error",
        [
            FileNotFoundError("Included config file not found: missing.yaml"),
            ValueError("Circular include detected: a.yaml -> a.yaml"),
            yaml.YAMLError("mapping values are not allowed here"),
        ],
    )
    async def test_unreadable_config_file(self, wired, capsys, error):
        wired["loader"].side_effect = error

        code = await cli.main(_args("-c", "a"))

        assert code == 1
        err = capsys.readouterr().err
        assert err.startswith("Error: invalid config file")
        assert str(error) in err
        assert wired["arena_cls"].call_count == 0

    async def test_unset_log_level_reaches_setup_logging(self, wired):
        with patch("arena_sync.cli.setup_logging") as mock_setup:
            await cli.main(_args("--dry-run", "-c", "a"))

        assert mock_setup.call_args[1]["level"] is None


def test_run_handles_keyboard_interrupt(capsys):
    def _interrupt(coro):
        coro.close()
        raise KeyboardInterrupt

    with patch("sys.argv", ["arena-sync", "-c", "a"]), patch(
        "arena_sync.cli.asyncio.run", side_effect=_interrupt
    ):
        with pytest.raises(SystemExit) as exc_info:
            cli.run()

    assert exc_info.value.code == 0
    assert "Interrupted." in capsys.readouterr().err
