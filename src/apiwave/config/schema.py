"""Configuration schema for apiwave using Pydantic."""

from __future__ import annotations

from typing import Dict, Optional

from pydantic import BaseModel, Field

from apiwave.core.package.models import PackageConfig
from apiwave.core.scenario.models import DEFAULT_STEP_TIMEOUT_MS


class ExecutionConfig(BaseModel):
    """Target API and run behaviour."""

    base_url: Optional[str] = None
    env_file: str = ".env"
    env_var: str = "API_BASE_URL"
    stop_on_first_failure: bool = False
    default_timeout_ms: int = Field(default=DEFAULT_STEP_TIMEOUT_MS, gt=0)
    max_scenarios: int = Field(default=10, gt=0)
    max_steps_per_scenario: int = Field(default=10, gt=0)

    def to_package_config(self) -> PackageConfig:
        return PackageConfig(
            max_scenarios=self.max_scenarios,
            max_steps_per_scenario=self.max_steps_per_scenario,
            stop_on_first_failure=self.stop_on_first_failure,
        )


class HttpConfig(BaseModel):
    """HTTP client settings for the default transport."""

    user_agent: str = "apiwave/0.1"
    verify_ssl: bool = True
    max_connections: int = Field(default=10, gt=0)


class OutputConfig(BaseModel):
    """Results output configuration."""

    directory: str = "storage/apiwave"
    save_results: bool = True


class ApiwaveConfig(BaseModel):
    """Root configuration model for apiwave."""

    version: int = 1
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    # Values available to scenarios as {{env.NAME}}
    environment: Dict[str, str] = Field(default_factory=dict)

    @classmethod
    def get_default(cls) -> "ApiwaveConfig":
        """Return default configuration."""
        return cls()
