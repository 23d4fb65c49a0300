"""Custom Pydantic validators for configuration."""

from pathlib import Path

REPORTER_KINDS = {"logging", "memory", "null"}
SCOPE_KINDS = {"explicit", "contextvar", "thread"}


def validate_log_level(value: str) -> str:
    """Validate log level is one of the standard levels.

    Args:
        value: Log level string.

    Returns:
        Validated log level.

    Raises:
        ValueError: If log level is not valid.
    """
    valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    if value.upper() not in valid_levels:
        raise ValueError(f"log_level must be one of {valid_levels}, got {value}")
    return value.upper()


def validate_log_format(value: str) -> str:
    """Validate log format is 'json' or 'console'.

    Raises:
        ValueError: If log format is not valid.
    """
    valid_formats = {"json", "console"}
    if value.lower() not in valid_formats:
        raise ValueError(f"log_format must be one of {valid_formats}, got {value}")
    return value.lower()


def validate_choice(value: str, choices: set[str], field_name: str) -> str:
    """Validate a lowercase string against a fixed set of choices.

    Raises:
        ValueError: If value is not one of ``choices``.
    """
    normalized = value.strip().lower()
    if normalized not in choices:
        raise ValueError(f"{field_name} must be one of {sorted(choices)}, got {value}")
    return normalized


def resolve_path(value: Path | str | None) -> Path | None:
    """Resolve a relative path against the current working directory.

    Args:
        value: Path value (string, Path or None).

    Returns:
        Absolute Path, or None when no path was configured.
    """
    if value is None or value == "":
        return None
    path = Path(value) if isinstance(value, str) else value
    return path.expanduser().resolve()
