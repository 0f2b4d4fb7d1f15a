"""Tests for arena_sync.config -- credential loading and validation.

NOT to be confused with test_config_loader.py (hierarchical YAML config)
or test_config_schema.py (Pydantic models).
"""

import pytest

from arena_sync.config import (
    DEFAULT_ARENA_API_URL,
    DEFAULT_SANITY_API_VERSION,
    Config,
    load_config,
    validate_config,
)

_ENV_KEYS = (
    "ARENA_ACCESS_TOKEN",
    "SANITY_PROJECT_ID",
    "SANITY_DATASET",
    "SANITY_TOKEN",
    "SANITY_API_VERSION",
    "ARENA_API_URL",
    "ARENA_SYNC_DEBUG",
)


@pytest.fixture
def clean_env(monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


@pytest.fixture
def full_env(clean_env):
    clean_env.setenv("ARENA_ACCESS_TOKEN", "env-arena")
    clean_env.setenv("SANITY_PROJECT_ID", "envproj")
    clean_env.setenv("SANITY_DATASET", "production")
    clean_env.setenv("SANITY_TOKEN", "env-sanity")
    return clean_env


# -------------------------------------------------------------------------
# validate_config()
# -------------------------------------------------------------------------


class TestValidateConfig:
    """Tests for validate_config() -- credential and format checks."""

    def test_valid_config(self, mock_config):
        validate_config(mock_config)

    @pytest.mark.parametrize(
        "field,message",
        [
            ("arena_token", "Are.na token cannot be empty"),
            ("sanity_project_id", "Sanity project ID cannot be empty"),
            ("sanity_token", "Sanity token cannot be empty"),
        ],
    )
    def test_empty_credentials(self, mock_config, field, message):
        setattr(mock_config, field, "  ")
        with pytest.raises(ValueError, match=message):
            validate_config(mock_config)

    @pytest.mark.parametrize("dataset", ["Production", "-prod", "a b", ""])
    def test_invalid_dataset(self, mock_config, dataset):
        mock_config.sanity_dataset = dataset
        with pytest.raises(ValueError, match="Invalid Sanity dataset"):
            validate_config(mock_config)

    @pytest.mark.parametrize("version", ["2024-05-15", "v2021-10-21", "v1", "1"])
    def test_valid_api_versions(self, mock_config, version):
        mock_config.sanity_api_version = version
        validate_config(mock_config)

    def test_invalid_api_version(self, mock_config):
        mock_config.sanity_api_version = "latest"
        with pytest.raises(ValueError, match="Invalid Sanity API version"):
            validate_config(mock_config)

    def test_api_url_scheme_required(self, mock_config):
        mock_config.arena_api_url = "api.are.na/v2"
        with pytest.raises(ValueError, match="must start with http:// or https://"):
            validate_config(mock_config)

    def test_api_url_hostname_required(self, mock_config):
        mock_config.arena_api_url = "https://"
        with pytest.raises(ValueError, match="must include a hostname"):
            validate_config(mock_config)

    def test_trailing_slash_stripped(self, mock_config):
        mock_config.arena_api_url = "https://api.are.na/v2/"
        validate_config(mock_config)
        assert mock_config.arena_api_url == "https://api.are.na/v2"


# -------------------------------------------------------------------------
# load_config()
# -------------------------------------------------------------------------


class TestLoadConfig:
    """Tests for load_config() precedence: CLI > env > YAML > defaults."""

    def test_from_env(self, full_env):
        config = load_config()

        assert config == Config(
            arena_token="env-arena",
            sanity_project_id="envproj",
            sanity_dataset="production",
            sanity_token="env-sanity",
        )
        assert config.sanity_api_version == DEFAULT_SANITY_API_VERSION
        assert config.arena_api_url == DEFAULT_ARENA_API_URL

    def test_cli_beats_env(self, full_env):
        config = load_config(arena_token="cli-arena", sanity_dataset="staging")

        assert config.arena_token == "cli-arena"
        assert config.sanity_dataset == "staging"
        assert config.sanity_token == "env-sanity"

    def test_yaml_fallback(self, clean_env):
        config = load_config(
            yaml_fallbacks={
                "arena": {"token": "yaml-arena", "api_url": "https://arena.test/v2"},
                "sanity": {
                    "project_id": "yamlproj",
                    "dataset": "yaml-ds",
                    "token": "yaml-sanity",
                    "api_version": "2023-01-01",
                },
            }
        )

        assert config.arena_token == "yaml-arena"
        assert config.sanity_project_id == "yamlproj"
        assert config.sanity_dataset == "yaml-ds"
        assert config.sanity_api_version == "2023-01-01"
        assert config.arena_api_url == "https://arena.test/v2"

    def test_env_beats_yaml(self, full_env):
        config = load_config(
            yaml_fallbacks={"arena": {"token": "yaml-arena"}},
        )
        assert config.arena_token == "env-arena"

    def test_missing_value_names_env_and_yaml_path(self, clean_env):
        clean_env.setenv("ARENA_ACCESS_TOKEN", "a")
        clean_env.setenv("SANITY_PROJECT_ID", "p")
        clean_env.setenv("SANITY_DATASET", "d")

        with pytest.raises(ValueError) as exc_info:
            load_config()

        message = str(exc_info.value)
        assert "Sanity token not found" in message
        assert "SANITY_TOKEN" in message
        assert "sanity.token" in message

    @pytest.mark.parametrize(
        "value,expected", [("true", True), ("1", True), ("no", False)]
    )
    def test_debug_env(self, full_env, value, expected):
        full_env.setenv("ARENA_SYNC_DEBUG", value)
        assert load_config().debug is expected

    def test_debug_flag_wins(self, full_env):
        full_env.setenv("ARENA_SYNC_DEBUG", "false")
        assert load_config(debug=True).debug is True

    def test_invalid_value_rejected(self, full_env):
        full_env.setenv("SANITY_DATASET", "Not Valid")
        with pytest.raises(ValueError, match="Invalid Sanity dataset"):
            load_config()
