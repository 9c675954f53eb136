"""Configuration loader for apiwave."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from apiwave.config.schema import ApiwaveConfig
from apiwave.core.errors import ApiwaveError

logger = logging.getLogger(__name__)

CONFIG_FILENAMES = [".apiwave.yaml", ".apiwave.yml", "apiwave.yaml", "apiwave.yml"]
GLOBAL_CONFIG_DIR = Path.home() / ".config" / "apiwave"
GLOBAL_CONFIG_FILE = GLOBAL_CONFIG_DIR / "config.yaml"


class ConfigError(ApiwaveError):
    """A configuration file is unreadable or invalid."""


def find_config_file(start_dir: Optional[Path] = None) -> Optional[Path]:
    """Find configuration file in current or parent directories."""
    if start_dir is None:
        start_dir = Path.cwd()

    current = start_dir.resolve()

    while current != current.parent:
        for filename in CONFIG_FILENAMES:
            config_path = current / filename
            if config_path.exists():
                return config_path
        current = current.parent

    return None


def load_yaml_file(path: Path) -> Dict[str, Any]:
    """Load YAML configuration file."""
    if not path.exists():
        return {}

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must contain a mapping: {path}")
    return data


def get_base_url_from_env(env_file: str = ".env", env_var: str = "API_BASE_URL") -> Optional[str]:
    """Read the API base URL from a .env file."""
    env_path = Path.cwd() / env_file
    if not env_path.exists():
        return None

    with open(env_path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line.startswith(f"{env_var}="):
                return line.split("=", 1)[1].strip().strip('"').strip("'")

    return None


def load_config(
    config_file: Optional[Path] = None,
    project_dir: Optional[Path] = None,
) -> ApiwaveConfig:
    """Load and merge configuration from all sources.

    Priority (later overrides earlier):
    1. Built-in defaults
    2. Global config (~/.config/apiwave/config.yaml)
    3. Project config (.apiwave.yaml, searched upward)
    4. Explicit config file (if provided)

    Raises:
        ConfigError: A file is not valid YAML or fails schema validation
    """
    config_data: Dict[str, Any] = {}

    if GLOBAL_CONFIG_FILE.exists():
        config_data = _deep_merge(config_data, load_yaml_file(GLOBAL_CONFIG_FILE))

    project_file = find_config_file(project_dir)
    if project_file:
        logger.debug(f"Using project config {project_file}")
        config_data = _deep_merge(config_data, load_yaml_file(project_file))

    if config_file is not None:
        if not config_file.exists():
            raise ConfigError(f"Config file not found: {config_file}")
        config_data = _deep_merge(config_data, load_yaml_file(config_file))

    try:
        config = ApiwaveConfig(**config_data) if config_data else ApiwaveConfig()
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e

    # Fall back to API_BASE_URL from .env
    if config.execution.base_url is None:
        detected_url = get_base_url_from_env(config.execution.env_file, config.execution.env_var)
        if detected_url:
            config.execution.base_url = detected_url

    return config


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge two dictionaries."""
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def save_config(config: ApiwaveConfig, path: Path) -> None:
    """Save configuration to YAML file."""
    path.parent.mkdir(parents=True, exist_ok=True)

    data = config.model_dump(exclude_defaults=True)

    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(data, f, default_flow_style=False, allow_unicode=True, sort_keys=False)
