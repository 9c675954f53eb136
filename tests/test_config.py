"""Tests for configuration loading."""

import pytest
from pathlib import Path

from apiwave.config import loader
from apiwave.config.loader import (
    ConfigError,
    _deep_merge,
    get_base_url_from_env,
    load_config,
    save_config,
)
from apiwave.config.schema import ApiwaveConfig, ExecutionConfig


@pytest.fixture(autouse=True)
def no_global_config(tmp_path, monkeypatch):
    """Keep the developer's ~/.config/apiwave out of the tests."""
    monkeypatch.setattr(loader, "GLOBAL_CONFIG_FILE", tmp_path / "global" / "config.yaml")


def test_default_config():
    """Test default configuration."""
    config = ApiwaveConfig.get_default()

    assert config.version == 1
    assert config.execution.base_url is None
    assert config.execution.stop_on_first_failure is False
    assert config.execution.default_timeout_ms == 30000
    assert config.http.verify_ssl is True
    assert config.environment == {}


def test_execution_config_to_package_config():
    """Test execution settings become package execution options."""
    execution = ExecutionConfig(stop_on_first_failure=True, max_scenarios=3)
    package_config = execution.to_package_config()

    assert package_config.stop_on_first_failure is True
    assert package_config.max_scenarios == 3
    assert package_config.max_steps_per_scenario == 10


def test_get_base_url_from_env(temp_project, monkeypatch):
    """Test reading API_BASE_URL from .env file."""
    monkeypatch.chdir(temp_project)

    url = get_base_url_from_env()
    assert url == "http://example.test"


def test_get_base_url_missing_env(tmp_path, monkeypatch):
    """Test handling missing .env file."""
    monkeypatch.chdir(tmp_path)

    url = get_base_url_from_env()
    assert url is None


def test_config_merge():
    """Test configuration merging."""
    config = ApiwaveConfig(
        execution={"base_url": "http://custom.test"},
        http={"user_agent": "custom"},
    )

    assert config.execution.base_url == "http://custom.test"
    assert config.http.user_agent == "custom"
    # Other values should be defaults
    assert config.http.max_connections == 10


def test_deep_merge_nested():
    """Test nested mappings are merged, scalars replaced."""
    merged = _deep_merge(
        {"execution": {"base_url": "a", "stop_on_first_failure": False}, "version": 1},
        {"execution": {"base_url": "b"}},
    )

    assert merged == {"execution": {"base_url": "b", "stop_on_first_failure": False}, "version": 1}


def test_load_project_config(tmp_path, monkeypatch, sample_config):
    """Test project config is found and merged over defaults."""
    import yaml

    (tmp_path / ".apiwave.yaml").write_text(yaml.dump(sample_config))
    nested = tmp_path / "scenarios" / "users"
    nested.mkdir(parents=True)
    monkeypatch.chdir(nested)

    config = load_config()

    assert config.execution.base_url == "http://example.test"
    assert config.execution.stop_on_first_failure is True
    assert config.http.user_agent == "apiwave-tests"


def test_explicit_config_overrides_project(tmp_path, monkeypatch, sample_config):
    """Test an explicit config file wins over the project config."""
    import yaml

    (tmp_path / ".apiwave.yaml").write_text(yaml.dump(sample_config))
    explicit = tmp_path / "ci.yaml"
    explicit.write_text("execution:\n  base_url: http://ci.test\n")
    monkeypatch.chdir(tmp_path)

    config = load_config(explicit)

    assert config.execution.base_url == "http://ci.test"
    assert config.execution.stop_on_first_failure is True


def test_base_url_falls_back_to_env_file(temp_project, monkeypatch):
    """Test API_BASE_URL from .env is used when no config sets it."""
    monkeypatch.chdir(temp_project)

    config = load_config()
    assert config.execution.base_url == "http://example.test"


def test_invalid_config_raises(tmp_path, monkeypatch):
    """Test schema violations surface as ConfigError."""
    (tmp_path / ".apiwave.yaml").write_text("execution:\n  default_timeout_ms: -5\n")
    monkeypatch.chdir(tmp_path)

    with pytest.raises(ConfigError):
        load_config()


def test_save_config_roundtrip(tmp_path, monkeypatch):
    """Test saved config is loaded back."""
    config = ApiwaveConfig(execution={"base_url": "http://saved.test"})
    path = tmp_path / "out" / ".apiwave.yaml"
    save_config(config, path)
    monkeypatch.chdir(tmp_path)

    loaded = load_config(Path(path))
    assert loaded.execution.base_url == "http://saved.test"
