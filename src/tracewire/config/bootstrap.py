"""Bootstrap configuration helpers (pre-settings).

Logging needs a level before the settings singleton can be imported, since
settings loading itself logs. Keep this module free of telemetry imports.
"""

from __future__ import annotations

import os

from tracewire.config.validators import validate_log_level


def get_bootstrap_log_level(default: str = "INFO") -> str:
    """Get logging level from environment without importing settings.

    Args:
        default: Default log level if not set or invalid.

    Returns:
        Uppercased, validated log level string.
    """
    value = os.getenv("TRACEWIRE_LOG_LEVEL", default)
    try:
        return validate_log_level(value)
    except ValueError:
        return validate_log_level(default)


def get_bootstrap_log_format(default: str = "console") -> str:
    """Get log format (json or console) from environment."""
    value = os.getenv("TRACEWIRE_LOG_FORMAT", default).lower()
    return value if value in {"json", "console"} else default


def get_bootstrap_log_dir() -> str | None:
    """Get optional log directory from environment (None disables file logging)."""
    return os.getenv("TRACEWIRE_LOG_DIR") or None
