"""
Input validation for channel slugs supplied on the command line, in the
environment or in config files.
"""

import re

_SLUG_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def format_validation_error(field_name: str, reason: str) -> str:
    """Generate consistent error message for validation failures."""
    return f"{field_name} {reason}"


def validate_channel_slug(slug: str) -> tuple[bool, str]:
    """
    Validate an Are.na channel slug.

    Returns:
        Tuple of (is_valid, error_message).
        Returns (True, "") if valid, (False, reason) if invalid.
    """
    if not slug or not slug.strip():
        return (
            False,
            format_validation_error("Channel slug", "cannot be empty"),
        )

    if not _SLUG_PATTERN.match(slug):
        return (
            False,
            format_validation_error(
                "Channel slug",
                f"'{slug}' may only contain letters, numbers, '-' and '_'",
            ),
        )

    return (True, "")


def parse_channel_list(raw: str | list[str] | None) -> list[str]:
    """Split and de-duplicate a channel list, preserving order.

    Accepts a comma-separated string or a list of strings.

    Raises:
        ValueError: If any slug is invalid.
    """
    if raw is None:
        return []
    parts = raw.split(",") if isinstance(raw, str) else list(raw)

    slugs: list[str] = []
    for part in parts:
        slug = str(part).strip()
        if not slug:
            continue
        is_valid, reason = validate_channel_slug(slug)
        if not is_valid:
            raise ValueError(reason)
        if slug not in slugs:
            slugs.append(slug)
    return slugs
