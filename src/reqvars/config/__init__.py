"""Configuration management."""

from reqvars.config.settings import EngineConfig, load_config

__all__ = ["EngineConfig", "load_config"]
