"""Connection configuration for the Are.na and Sanity clients.

Reads credentials from CLI args, environment variables, .env files, and
YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    ARENA_ACCESS_TOKEN: Are.na API access token (required)
    SANITY_PROJECT_ID: Sanity project ID (required)
    SANITY_DATASET: Sanity dataset name (required)
    SANITY_TOKEN: Sanity API token with write access (required)
    SANITY_API_VERSION: Sanity API version date (optional, default: 2024-05-15)
    ARENA_API_URL: Are.na API base URL (optional, default: https://api.are.na/v2)
    ARENA_SYNC_DEBUG: Enable debug logging (optional, default: false)
"""

import logging
import os
import re
from dataclasses import dataclass
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_ARENA_API_URL = "https://api.are.na/v2"
DEFAULT_SANITY_API_VERSION = "2024-05-15"

_DATASET_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_-]{0,63}$")
_API_VERSION_PATTERN = re.compile(r"^v?\d{4}-\d{2}-\d{2}$|^v?1$")


@dataclass
class Config:
    arena_token: str
    sanity_project_id: str
    sanity_dataset: str
    sanity_token: str
    sanity_api_version: str = DEFAULT_SANITY_API_VERSION
    arena_api_url: str = DEFAULT_ARENA_API_URL
    debug: bool = False


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If a credential is empty or a value is malformed.
    """
    if not config.arena_token.strip():
        raise ValueError(
            "Are.na token cannot be empty. Set ARENA_ACCESS_TOKEN environment variable."
        )

    if not config.sanity_project_id.strip():
        raise ValueError(
            "Sanity project ID cannot be empty. Set SANITY_PROJECT_ID environment variable."
        )

    if not config.sanity_token.strip():
        raise ValueError(
            "Sanity token cannot be empty. Set SANITY_TOKEN environment variable."
        )

    config.sanity_dataset = config.sanity_dataset.strip()
    if not _DATASET_PATTERN.match(config.sanity_dataset):
        raise ValueError(
            f"Invalid Sanity dataset '{config.sanity_dataset}': use lowercase "
            "letters, numbers, underscores and dashes (max 64 characters)"
        )

    if not _API_VERSION_PATTERN.match(config.sanity_api_version):
        raise ValueError(
            f"Invalid Sanity API version '{config.sanity_api_version}': "
            "expected a date such as 2024-05-15"
        )

    config.arena_api_url = config.arena_api_url.strip()
    if not config.arena_api_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid Are.na API URL '{config.arena_api_url}': must start with http:// or https://"
        )
    if not urlparse(config.arena_api_url).hostname:
        raise ValueError(
            f"Invalid Are.na API URL '{config.arena_api_url}': URL must include a hostname"
        )
    config.arena_api_url = config.arena_api_url.removesuffix("/")


def load_config(
    arena_token: str | None = None,
    sanity_project_id: str | None = None,
    sanity_dataset: str | None = None,
    sanity_token: str | None = None,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        arena_token: Override Are.na token.
        sanity_project_id: Override Sanity project ID.
        sanity_dataset: Override Sanity dataset.
        sanity_token: Override Sanity token.
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Dict with ``arena`` and ``sanity`` sections from the
            YAML config file.  Used when CLI arg and env var are both unset.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If a required value is missing after checking all
            sources, or a value is malformed.
    """
    fb = yaml_fallbacks or {}
    arena_fb = fb.get("arena") or {}
    sanity_fb = fb.get("sanity") or {}

    def resolve(cli_value, env_key, fallback, what, yaml_path):
        value = cli_value or os.getenv(env_key) or fallback
        if not value:
            raise ValueError(
                f"{what} not found. Set {env_key} environment variable "
                f"or add '{yaml_path}' to config.yml."
            )
        return str(value).strip()

    final_arena_token = resolve(
        arena_token,
        "ARENA_ACCESS_TOKEN",
        arena_fb.get("token"),
        "Are.na access token",
        "arena.token",
    )
    final_project_id = resolve(
        sanity_project_id,
        "SANITY_PROJECT_ID",
        sanity_fb.get("project_id"),
        "Sanity project ID",
        "sanity.project_id",
    )
    final_dataset = resolve(
        sanity_dataset,
        "SANITY_DATASET",
        sanity_fb.get("dataset"),
        "Sanity dataset",
        "sanity.dataset",
    )
    final_sanity_token = resolve(
        sanity_token,
        "SANITY_TOKEN",
        sanity_fb.get("token"),
        "Sanity token",
        "sanity.token",
    )

    api_version = (
        os.getenv("SANITY_API_VERSION")
        or sanity_fb.get("api_version")
        or DEFAULT_SANITY_API_VERSION
    )
    api_url = (
        os.getenv("ARENA_API_URL")
        or arena_fb.get("api_url")
        or DEFAULT_ARENA_API_URL
    )

    if debug:
        final_debug = True
    else:
        env_debug = os.getenv("ARENA_SYNC_DEBUG")
        if env_debug is not None:
            final_debug = env_debug.lower() in ("true", "1", "yes", "on")
        else:
            final_debug = bool(fb.get("debug", False))

    config = Config(
        arena_token=final_arena_token,
        sanity_project_id=final_project_id,
        sanity_dataset=final_dataset,
        sanity_token=final_sanity_token,
        sanity_api_version=str(api_version).strip(),
        arena_api_url=str(api_url),
        debug=final_debug,
    )

    validate_config(config)

    return config
