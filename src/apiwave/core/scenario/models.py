"""Scenario and step definitions."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from apiwave.core.errors import ScenarioValidationError

DEFAULT_STEP_TIMEOUT_MS = 30_000


def new_id() -> str:
    """Generate a new entity identifier."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HttpMethod(str, Enum):
    """HTTP methods a step may use."""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"


class MatcherKind(str, Enum):
    """Discriminant for body field matchers."""
    EXACT = "exact"
    ANY = "any"
    REGEX = "regex"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    ONE_OF = "one_of"
    NOT_NULL = "not_null"
    IS_NULL = "is_null"


# Matchers that take no operand
_NULLARY_MATCHERS = {MatcherKind.ANY, MatcherKind.NOT_NULL, MatcherKind.IS_NULL}


@dataclass(frozen=True)
class FieldMatcher:
    """Expectation on a single field of a JSON response body."""
    kind: MatcherKind
    value: Any = None

    def __post_init__(self) -> None:
        if self.kind in _NULLARY_MATCHERS:
            return
        if self.value is None:
            raise ScenarioValidationError([f"Matcher '{self.kind.value}' requires a value"])
        if self.kind == MatcherKind.ONE_OF and not isinstance(self.value, (list, tuple)):
            raise ScenarioValidationError(["Matcher 'one_of' requires a list of values"])
        if self.kind in (MatcherKind.GREATER_THAN, MatcherKind.LESS_THAN) and (
            isinstance(self.value, bool) or not isinstance(self.value, (int, float))
        ):
            raise ScenarioValidationError([f"Matcher '{self.kind.value}' requires a number"])

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"type": self.kind.value}
        if self.kind not in _NULLARY_MATCHERS:
            data["value"] = list(self.value) if self.kind == MatcherKind.ONE_OF else self.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "FieldMatcher":
        kind = MatcherKind(data["type"])
        value = data.get("value")
        if kind == MatcherKind.ONE_OF and value is not None:
            value = tuple(value)
        return cls(kind=kind, value=value)


@dataclass(frozen=True)
class ExpectedResult:
    """What a step's response must look like to pass."""
    status: Optional[int] = None
    status_range: Optional[tuple[int, int]] = None
    body_contains: tuple[str, ...] = ()
    body_fields: dict[str, FieldMatcher] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def has_assertions(self) -> bool:
        return bool(
            self.status is not None
            or self.status_range is not None
            or self.body_contains
            or self.body_fields
            or self.headers
        )

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "status_range": list(self.status_range) if self.status_range else None,
            "body_contains": list(self.body_contains),
            "body_fields": {k: m.to_dict() for k, m in self.body_fields.items()},
            "headers": dict(self.headers),
        }


@dataclass(frozen=True)
class TestStep:
    """One HTTP exchange definition."""
    index: int
    name: str
    method: HttpMethod
    endpoint: str
    headers: dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None
    expected: ExpectedResult = field(default_factory=ExpectedResult)
    extractions: dict[str, str] = field(default_factory=dict)
    timeout_ms: int = DEFAULT_STEP_TIMEOUT_MS

    __test__ = False  # not a pytest class

    @property
    def operation(self) -> str:
        return f"{self.method.value} {self.endpoint}"

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "name": self.name,
            "method": self.method.value,
            "endpoint": self.endpoint,
            "headers": dict(self.headers),
            "body": self.body,
            "expected": self.expected.to_dict(),
            "extractions": dict(self.extractions),
            "timeout_ms": self.timeout_ms,
        }


def validate_steps(name: str, steps: list[TestStep] | tuple[TestStep, ...]) -> list[str]:
    """Return every construction error for a scenario name and step list."""
    errors = []
    if not name or not name.strip():
        errors.append("Scenario name cannot be blank")
    if not steps:
        errors.append("Scenario must have at least one step")

    seen: set[int] = set()
    for step in steps:
        if step.index in seen:
            errors.append(f"Duplicate step index: {step.index}")
        seen.add(step.index)
        if not step.endpoint:
            errors.append(f"Step {step.index} has an empty endpoint")
        if step.timeout_ms <= 0:
            errors.append(f"Step {step.index} timeout must be positive")
    return errors


@dataclass(frozen=True)
class TestScenario:
    """An ordered sequence of HTTP steps forming one test case."""
    name: str
    steps: tuple[TestStep, ...]
    id: str = field(default_factory=new_id)
    package_id: Optional[str] = None
    description: Optional[str] = None
    tags: frozenset[str] = frozenset()
    created_at: datetime = field(default_factory=utcnow)

    __test__ = False

    def __post_init__(self) -> None:
        # Accept any iterable of steps but store an immutable tuple
        object.__setattr__(self, "steps", tuple(self.steps))
        object.__setattr__(self, "tags", frozenset(self.tags))
        errors = validate_steps(self.name, self.steps)
        if errors:
            raise ScenarioValidationError(errors)

    @property
    def step_count(self) -> int:
        return len(self.steps)

    @property
    def ordered_steps(self) -> list[TestStep]:
        return sorted(self.steps, key=lambda s: s.index)

    @property
    def covered_operations(self) -> set[str]:
        return {s.operation for s in self.steps}

    def get_step(self, index: int) -> Optional[TestStep]:
        """Get step by index."""
        for step in self.steps:
            if step.index == index:
                return step
        return None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "package_id": self.package_id,
            "tags": sorted(self.tags),
            "steps": [s.to_dict() for s in self.ordered_steps],
            "summary": {
                "total_steps": self.step_count,
                "operations": sorted(self.covered_operations),
            },
        }
