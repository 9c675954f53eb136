"""Data models for test run execution."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Iterable, Optional

from apiwave.core.scenario.models import new_id, utcnow


class TestRunStatus(str, Enum):
    """Test run status."""
    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    PASSED = "PASSED"
    FAILED = "FAILED"
    ERROR = "ERROR"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_RUN_STATUSES


TestRunStatus.__test__ = False  # not a pytest class


TERMINAL_RUN_STATUSES = frozenset({
    TestRunStatus.PASSED,
    TestRunStatus.FAILED,
    TestRunStatus.ERROR,
    TestRunStatus.CANCELLED,
})

RUN_TRANSITIONS: dict[TestRunStatus, frozenset[TestRunStatus]] = {
    TestRunStatus.QUEUED: frozenset({TestRunStatus.RUNNING, TestRunStatus.CANCELLED}),
    TestRunStatus.RUNNING: frozenset({
        TestRunStatus.PASSED,
        TestRunStatus.FAILED,
        TestRunStatus.ERROR,
        TestRunStatus.CANCELLED,
    }),
    TestRunStatus.PASSED: frozenset(),
    TestRunStatus.FAILED: frozenset(),
    TestRunStatus.ERROR: frozenset(),
    TestRunStatus.CANCELLED: frozenset(),
}


def can_transition_run(current: TestRunStatus, target: TestRunStatus) -> bool:
    return target in RUN_TRANSITIONS[current]


def run_sources(target: TestRunStatus) -> tuple[TestRunStatus, ...]:
    """Return the statuses a run may move to ``target`` from, in table order."""
    return tuple(status for status in RUN_TRANSITIONS if can_transition_run(status, target))


class StepOutcome(str, Enum):
    """Classification of one executed step."""
    PASSED = "passed"
    FAILED = "failed"
    ERROR = "error"


class AssertionType(str, Enum):
    STATUS_CODE = "STATUS_CODE"
    STATUS_RANGE = "STATUS_RANGE"
    BODY_CONTAINS = "BODY_CONTAINS"
    BODY_FIELD_EXACT = "BODY_FIELD_EXACT"
    BODY_FIELD_REGEX = "BODY_FIELD_REGEX"
    BODY_FIELD_EXISTS = "BODY_FIELD_EXISTS"
    BODY_FIELD_NOT_NULL = "BODY_FIELD_NOT_NULL"
    BODY_FIELD_NULL = "BODY_FIELD_NULL"
    BODY_FIELD_GREATER_THAN = "BODY_FIELD_GREATER_THAN"
    BODY_FIELD_LESS_THAN = "BODY_FIELD_LESS_THAN"
    BODY_FIELD_ONE_OF = "BODY_FIELD_ONE_OF"
    HEADER_VALUE = "HEADER_VALUE"


@dataclass(frozen=True)
class AssertionResult:
    """Result of a single assertion."""
    type: AssertionType
    expected: Optional[str]
    actual: Optional[str]
    passed: bool
    field: Optional[str] = None
    message: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "field": self.field,
            "expected": self.expected,
            "actual": self.actual,
            "passed": self.passed,
            "message": self.message,
        }


@dataclass(frozen=True)
class RequestSnapshot:
    """The resolved request a step actually sent."""
    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None

    def to_dict(self) -> dict:
        return {"method": self.method, "url": self.url, "headers": dict(self.headers), "body": self.body}


@dataclass(frozen=True)
class TestStepResult:
    """Immutable record of one executed step."""
    run_id: str
    step_index: int
    step_name: str
    passed: bool
    duration_ms: int
    executed_at: datetime
    actual_status: Optional[int] = None
    actual_headers: dict[str, str] = field(default_factory=dict)
    actual_body: Optional[str] = None
    assertions: tuple[AssertionResult, ...] = ()
    extracted_values: dict[str, str] = field(default_factory=dict)
    error_message: Optional[str] = None
    request: Optional[RequestSnapshot] = None

    __test__ = False

    @property
    def has_error(self) -> bool:
        return self.error_message is not None

    @property
    def outcome(self) -> StepOutcome:
        if self.has_error:
            return StepOutcome.ERROR
        return StepOutcome.PASSED if self.passed else StepOutcome.FAILED

    @property
    def passed_assertions(self) -> int:
        return sum(1 for a in self.assertions if a.passed)

    @property
    def failed_assertions(self) -> int:
        return sum(1 for a in self.assertions if not a.passed)

    @property
    def summary(self) -> str:
        if self.has_error:
            return f"Error: {self.error_message}"
        if self.passed:
            return f"Passed ({self.passed_assertions} assertions)"
        return f"Failed ({self.failed_assertions} of {len(self.assertions)} assertions failed)"

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "run_id": self.run_id,
            "step_index": self.step_index,
            "step_name": self.step_name,
            "outcome": self.outcome.value,
            "passed": self.passed,
            "actual_status": self.actual_status,
            "actual_headers": dict(self.actual_headers),
            "actual_body": self.actual_body,
            "assertions": [a.to_dict() for a in self.assertions],
            "extracted_values": dict(self.extracted_values),
            "error_message": self.error_message,
            "duration_ms": self.duration_ms,
            "executed_at": self.executed_at.isoformat(),
            "request": self.request.to_dict() if self.request else None,
        }


@dataclass(frozen=True)
class TestRun:
    """One execution of a scenario against a target API."""
    scenario_id: str
    base_url: str
    triggered_by: str = "system"
    id: str = field(default_factory=new_id)
    package_id: Optional[str] = None
    status: TestRunStatus = TestRunStatus.QUEUED
    environment: dict[str, str] = field(default_factory=dict)
    step_results: tuple[TestStepResult, ...] = ()
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    __test__ = False

    def __post_init__(self) -> None:
        if not self.base_url or not self.base_url.strip():
            raise ValueError("Base URL cannot be blank")
        object.__setattr__(self, "step_results", tuple(self.step_results))

    @property
    def duration_ms(self) -> Optional[int]:
        if self.started_at and self.completed_at:
            return int((self.completed_at - self.started_at).total_seconds() * 1000)
        return None

    @property
    def is_complete(self) -> bool:
        return self.status.is_terminal

    @property
    def passed_steps(self) -> int:
        return sum(1 for r in self.step_results if r.passed)

    @property
    def failed_steps(self) -> int:
        return sum(1 for r in self.step_results if not r.passed)

    @property
    def executed_steps(self) -> int:
        return len(self.step_results)

    @property
    def pass_rate(self) -> float:
        if not self.step_results:
            return 0.0
        return self.passed_steps / len(self.step_results) * 100

    def with_results(self, results: Iterable[TestStepResult]) -> "TestRun":
        return replace(self, step_results=tuple(results))

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "scenario_id": self.scenario_id,
            "package_id": self.package_id,
            "triggered_by": self.triggered_by,
            "base_url": self.base_url,
            "status": self.status.value,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "step_results": [r.to_dict() for r in self.step_results],
            "summary": {
                "executed_steps": self.executed_steps,
                "passed": self.passed_steps,
                "failed": self.failed_steps,
                "pass_rate": round(self.pass_rate, 2),
                "duration_ms": self.duration_ms,
            },
        }


def compute_verdict(results: Iterable[TestStepResult], cancelled: bool = False) -> TestRunStatus:
    """Aggregate step outcomes into a run verdict.

    ERROR outranks FAILED, which outranks PASSED. A cancelled run is
    CANCELLED regardless of its results.
    """
    if cancelled:
        return TestRunStatus.CANCELLED

    outcomes = {r.outcome for r in results}
    if StepOutcome.ERROR in outcomes:
        return TestRunStatus.ERROR
    if StepOutcome.FAILED in outcomes:
        return TestRunStatus.FAILED
    return TestRunStatus.PASSED
