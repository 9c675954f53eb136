"""Configuration management."""

from apiwave.config.loader import ConfigError, load_config, save_config
from apiwave.config.schema import ApiwaveConfig

__all__ = ["ApiwaveConfig", "ConfigError", "load_config", "save_config"]
