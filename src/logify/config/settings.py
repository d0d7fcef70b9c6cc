"""
Configuration management for Logify.

Settings come from environment variables (``LOGIFY_`` prefix, plus the
un-prefixed ``LOG_LEVEL``), an optional ``.env`` file, or a YAML file passed to
``load_settings_file``. Values from the YAML file win over the environment.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Union

import structlog
import yaml
from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from logify.infrastructure.transforms.operations import DurationUnit
from logify.io.csv_handler import validate_delimiter

logger = structlog.get_logger(__name__)

SETTINGS_ENV_FILE = Path(os.getenv("LOGIFY_ENV_FILE", ".env")).expanduser()

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(Exception):
    """Raised when a configuration file cannot be loaded or is invalid."""

    pass


class Settings(BaseSettings):
    """
    Application settings with environment variable support.

    Environment variables are loaded with the LOGIFY_ prefix. For example,
    LOGIFY_CSV_DELIMITER=";" overrides ``csv_delimiter``. LOG_LEVEL is read
    without a prefix.
    """

    LOG_LEVEL: str = Field(
        default="INFO",
        validation_alias=AliasChoices("LOG_LEVEL", "LOGIFY_LOG_LEVEL", "log_level"),
        description="Logging level (uppercase)",
    )
    log_to_file: bool = Field(
        default=False, description="Also write logs to a daily rotating file"
    )
    log_file_dir: Path = Field(
        default=Path("logs"), description="Directory for log files"
    )

    csv_delimiter: str = Field(default=",", description="Field separator")
    csv_has_headers: bool = Field(
        default=True, description="First row of input files is a header"
    )
    duration_unit: DurationUnit = Field(
        default=DurationUnit.SECONDS, description="Unit of durations in input files"
    )

    model_config = SettingsConfigDict(
        env_prefix="LOGIFY_",
        env_file=SETTINGS_ENV_FILE,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def normalize_log_level(cls, v: Any) -> str:
        level = str(v).strip().upper()
        if level not in _LOG_LEVELS:
            raise ValueError(
                f"LOG_LEVEL must be one of {', '.join(_LOG_LEVELS)}, got {v!r}"
            )
        return level

    @field_validator("csv_delimiter")
    @classmethod
    def check_delimiter(cls, v: str) -> str:
        # "\t" in an env file arrives as two characters
        if v == "\\t":
            v = "\t"
        return validate_delimiter(v)


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings instance.

    Uses LRU cache to ensure settings are loaded only once per process.
    Tests call ``get_settings.cache_clear()`` after changing the environment.
    """
    return Settings()


def load_settings_file(path: Union[str, Path]) -> Settings:
    """
    Build Settings from a YAML file layered over the environment.

    Example file:
        csv_delimiter: ";"
        csv_has_headers: true
        duration_unit: seconds
        log_level: DEBUG

    Raises:
        ConfigError: If the file is missing, not YAML, not a mapping, or holds
            invalid values
    """
    config_path = Path(path)
    try:
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {config_path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in config file {config_path}: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"Config file {config_path} must contain a mapping, "
            f"got {type(data).__name__}"
        )

    overrides: Dict[str, Any] = {str(key): value for key, value in data.items()}
    try:
        settings = Settings(**overrides)
    except ValidationError as exc:
        raise ConfigError(f"Invalid settings in {config_path}: {exc}") from exc

    logger.debug(
        "settings.loaded_from_file",
        path=str(config_path),
        keys=sorted(overrides),
    )
    return settings
