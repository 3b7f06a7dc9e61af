#!/usr/bin/env python3
"""Configuration management for the janitor.

Handles loading the YAML configuration file that controls thresholds, retention and
which directories may be cleaned.
"""

from __future__ import annotations

import datetime
import logging
from enum import Enum
from pathlib import Path
from typing import Any

import humanfriendly
import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from janitor.errors import ConfigInvalidError

_LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("/etc/janitor.yaml")


class LogLevel(Enum):
    DEBUG = 0
    INFO = 1
    WARN = 2
    ERROR = 3

    @classmethod
    def parse(cls, value: Any) -> LogLevel:
        """Parse a level name or numeric code, falling back to INFO for anything unrecognised.

        Accepts "DEBUG"/"INFO"/"WARN"/"ERROR" (any case, "WARNING" too) and 0-3 as ints or strings.
        """
        if isinstance(value, LogLevel):
            return value
        if value is None or isinstance(value, bool):
            return cls.INFO
        text = str(value).strip().upper()
        if text == "WARNING":
            text = "WARN"
        if text.isdigit():
            try:
                return cls(int(text))
            except ValueError:
                return cls.INFO
        try:
            return cls[text]
        except KeyError:
            return cls.INFO

    @property
    def logging_level(self) -> int:
        return {
            LogLevel.DEBUG: logging.DEBUG,
            LogLevel.INFO: logging.INFO,
            LogLevel.WARN: logging.WARNING,
            LogLevel.ERROR: logging.ERROR,
        }[self]


class _ConfigLoader(yaml.SafeLoader):
    """SafeLoader that leaves date-looking scalars as strings."""


_ConfigLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != "tag:yaml.org,2002:timestamp"]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


class JanitorConfig(BaseModel):
    """Validated, immutable settings for one janitor run."""

    trigger_threshold: int = 90
    target_threshold: int = 50
    retention: datetime.timedelta = datetime.timedelta(hours=24)
    batch_size: int = 100
    directories: tuple[Path, ...] = (Path("/tmp"),)
    mount_point: Path = Path("/")
    log_level: LogLevel = LogLevel.INFO

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("trigger_threshold", "target_threshold")
    @classmethod
    def _check_percentage(cls, value: int) -> int:
        if not 0 <= value <= 100:
            raise ValueError(f"threshold must be between 0 and 100, got {value}")
        return value

    @field_validator("batch_size")
    @classmethod
    def _check_batch_size(cls, value: int) -> int:
        if value <= 0:
            raise ValueError(f"batch size must be positive, got {value}")
        return value

    @field_validator("retention", mode="before")
    @classmethod
    def _parse_retention(cls, value: Any) -> Any:
        # Strings are humanfriendly timespans ("24h", "30m", "1d"); bare numbers are hours.
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return datetime.timedelta(hours=value)
        if isinstance(value, str):
            try:
                return datetime.timedelta(seconds=humanfriendly.parse_timespan(value))
            except humanfriendly.InvalidTimespan as e:
                raise ValueError(str(e)) from e
        return value

    @field_validator("retention")
    @classmethod
    def _check_retention(cls, value: datetime.timedelta) -> datetime.timedelta:
        if value < datetime.timedelta(0):
            raise ValueError("retention must not be negative")
        return value

    @field_validator("directories", mode="before")
    @classmethod
    def _split_directories(cls, value: Any) -> Any:
        if isinstance(value, (str, Path)):
            value = str(value).split(",")
        if isinstance(value, (list, tuple)):
            value = [str(entry).strip() for entry in value]
            value = tuple(entry for entry in value if entry)
            if not value:
                raise ValueError("at least one directory must be configured")
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _parse_log_level(cls, value: Any) -> LogLevel:
        return LogLevel.parse(value)

    @model_validator(mode="after")
    def _check_threshold_order(self) -> JanitorConfig:
        if self.trigger_threshold <= self.target_threshold:
            raise ValueError(
                f"Trigger threshold ({self.trigger_threshold}) must be greater than "
                f"target threshold ({self.target_threshold})"
            )
        return self

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> JanitorConfig:
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigInvalidError(f"Invalid configuration: {e}") from e

    @classmethod
    def load(cls, config_path: Path) -> JanitorConfig:
        """Load configuration from config_path.

        Args:
            config_path: Path to the YAML configuration file (e.g. /etc/janitor.yaml)

        Returns:
            JanitorConfig with loaded values, or defaults if the file doesn't exist

        Raises:
            ConfigInvalidError: If the file can't be parsed, contains unknown keys or invalid values
        """
        if not config_path.exists():
            _LOGGER.debug("Config file %s does not exist, using defaults", config_path)
            return cls()

        _LOGGER.info("Loading configuration file: %s", config_path)
        try:
            with config_path.open(encoding="utf-8") as config_file:
                config_data = yaml.load(config_file, Loader=_ConfigLoader)
        except (OSError, yaml.YAMLError) as e:
            _LOGGER.error("Failed to load config from %s: %s", config_path, e)
            raise ConfigInvalidError(f"Failed to load config from {config_path}: {e}") from e

        if config_data is None:
            _LOGGER.warning("Config file %s is empty, using defaults", config_path)
            return cls()
        if not isinstance(config_data, dict):
            raise ConfigInvalidError(f"Config file {config_path} must contain a mapping")

        return cls.from_mapping(config_data)

    def with_overrides(self, **overrides: Any) -> JanitorConfig:
        """Create a new config with any non-None overrides applied and re-validated."""
        config_dict = self.model_dump()
        for key, value in overrides.items():
            if value is None or value == ():
                continue
            _LOGGER.debug("CLI override: %s = %s", key, value)
            config_dict[key] = value
        return self.__class__.from_mapping(config_dict)

    def summary_lines(self) -> list[str]:
        return [
            f"  Trigger threshold: {self.trigger_threshold}%",
            f"  Target threshold: {self.target_threshold}%",
            f"  Retention: {humanfriendly.format_timespan(self.retention.total_seconds())}",
            f"  Batch size: {self.batch_size} files",
            f"  Directories: {', '.join(str(d) for d in self.directories)}",
            f"  Mount point: {self.mount_point}",
            f"  Log level: {self.log_level.name}",
        ]
