"""Client configuration."""

from sessionlink.config.settings import ConnectionSettings, get_settings

__all__ = ["ConnectionSettings", "get_settings"]
