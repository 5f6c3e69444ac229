"""Engine settings and loading."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from reqvars.errors import ConfigurationError

ENV_PREFIX = "REQVARS_"


class EngineConfig(BaseSettings):
    """Configuration for the send engine and script sandbox."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    script_timeout: float = Field(default=5.0, gt=0)
    max_log_lines: int = Field(default=500, ge=1)
    max_concurrent_sends: int = Field(default=4, ge=1)
    transport_timeout: float = Field(default=30.0, gt=0)
    verify_tls: bool = True
    log_level: str = "INFO"
    json_logs: bool = False

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = str(v).upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {v}")
        return level


def load_config(config_path: str | Path | None = None) -> EngineConfig:
    """Load configuration from a YAML file and the environment.

    Priority: env vars > config file > defaults

    Raises:
        ConfigurationError: If the file is unreadable or a value is invalid.
    """
    config_data: dict[str, Any] = {}

    if config_path is not None:
        config_path = Path(config_path)
        if config_path.exists():
            try:
                with open(config_path) as f:
                    config_data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Cannot parse {config_path}: {e}", cause=e) from e
            if not isinstance(config_data, dict):
                raise ConfigurationError(f"{config_path} must contain a mapping")

    # Values set in the environment are left for pydantic-settings to read,
    # since explicit init values would otherwise shadow them.
    for key in list(config_data):
        if f"{ENV_PREFIX}{key.upper()}" in os.environ:
            del config_data[key]

    try:
        return EngineConfig(**config_data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}", cause=e) from e
