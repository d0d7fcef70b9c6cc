"""Configuration management for Logify.

Usage:
    >>> from logify.config import get_settings
    >>> settings = get_settings()
    >>> settings.csv_delimiter
    ','
"""

from logify.config.settings import (
    ConfigError,
    Settings,
    get_settings,
    load_settings_file,
)

__all__ = [
    "ConfigError",
    "Settings",
    "get_settings",
    "load_settings_file",
]
