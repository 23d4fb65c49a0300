"""Configuration management for tracewire.

Settings are read from environment variables (``TRACEWIRE_`` prefix) and
optional ``.env`` files, validated with Pydantic.
"""

from tracewire.config.env_loader import Environment, get_environment
from tracewire.config.settings import TracerSettings, get_settings, load_settings, reset_settings

__all__ = [
    "TracerSettings",
    "get_settings",
    "load_settings",
    "reset_settings",
    "Environment",
    "get_environment",
]
