"""Package aggregate models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from apiwave.core.scenario.models import new_id, utcnow


class PackageStatus(str, Enum):
    """Lifecycle of a package from API description fetch to completion."""
    REQUESTED = "REQUESTED"
    SPEC_FETCHED = "SPEC_FETCHED"
    FAILED_SPEC_FETCH = "FAILED_SPEC_FETCH"
    AI_SUCCESS = "AI_SUCCESS"
    FAILED_GENERATION = "FAILED_GENERATION"
    EXECUTION_IN_PROGRESS = "EXECUTION_IN_PROGRESS"
    FAILED_EXECUTION = "FAILED_EXECUTION"
    EXECUTION_COMPLETE = "EXECUTION_COMPLETE"
    QA_EVAL_IN_PROGRESS = "QA_EVAL_IN_PROGRESS"
    QA_EVAL_DONE = "QA_EVAL_DONE"
    COMPLETE = "COMPLETE"
    CANCELLED = "CANCELLED"

    @property
    def is_failure(self) -> bool:
        return self.value.startswith("FAILED_")


@dataclass(frozen=True)
class PackageConfig:
    """Execution options for the runs of a package."""
    max_scenarios: int = 10
    max_steps_per_scenario: int = 10
    timeout_ms: int = 300_000
    stop_on_first_failure: bool = False

    def to_dict(self) -> dict:
        return {
            "max_scenarios": self.max_scenarios,
            "max_steps_per_scenario": self.max_steps_per_scenario,
            "timeout_ms": self.timeout_ms,
            "stop_on_first_failure": self.stop_on_first_failure,
        }


@dataclass(frozen=True)
class Package:
    """Aggregate root owning the scenarios and runs of one API under test."""
    name: str
    base_url: str
    triggered_by: str = "system"
    id: str = field(default_factory=new_id)
    description: Optional[str] = None
    spec_url: Optional[str] = None
    spec_content: Optional[str] = None
    requirements: Optional[str] = None
    status: PackageStatus = PackageStatus.REQUESTED
    config: PackageConfig = field(default_factory=PackageConfig)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("Package name cannot be blank")
        if not self.base_url or not self.base_url.strip():
            raise ValueError("Base URL cannot be blank")

    @property
    def is_complete(self) -> bool:
        return self.status == PackageStatus.COMPLETE

    @property
    def is_failed(self) -> bool:
        return self.status.is_failure or self.status == PackageStatus.CANCELLED

    @property
    def is_in_progress(self) -> bool:
        return not self.is_complete and not self.is_failed

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "base_url": self.base_url,
            "spec_url": self.spec_url,
            "status": self.status.value,
            "config": self.config.to_dict(),
            "triggered_by": self.triggered_by,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
