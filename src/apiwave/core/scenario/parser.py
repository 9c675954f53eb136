"""YAML/JSON scenario parser."""

from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import Annotated, Any, Literal, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from apiwave.core.errors import ScenarioValidationError
from apiwave.core.execution.context import PLACEHOLDER_PATTERN, ENV_PREFIX
from apiwave.core.scenario.models import (
    DEFAULT_STEP_TIMEOUT_MS,
    ExpectedResult,
    FieldMatcher,
    HttpMethod,
    MatcherKind,
    TestScenario,
    TestStep,
)


class _Document(BaseModel):
    model_config = ConfigDict(extra="forbid")


class NullaryMatcherDoc(_Document):
    type: Literal["any", "not_null", "is_null"]


class ValueMatcherDoc(_Document):
    type: Literal["exact", "regex", "greater_than", "less_than", "one_of"]
    value: Any


MatcherDoc = Annotated[Union[NullaryMatcherDoc, ValueMatcherDoc], Field(discriminator="type")]


class ExpectDoc(_Document):
    status: Optional[int] = Field(default=None, ge=100, le=599)
    status_range: Optional[tuple[int, int]] = None
    body_contains: list[str] = Field(default_factory=list)
    body_fields: dict[str, MatcherDoc] = Field(default_factory=dict)
    headers: dict[str, str] = Field(default_factory=dict)

    @field_validator("status_range")
    @classmethod
    def _ordered_range(cls, value: Optional[tuple[int, int]]) -> Optional[tuple[int, int]]:
        if value is not None and value[0] > value[1]:
            raise ValueError("status_range lower bound exceeds upper bound")
        return value


class StepDoc(_Document):
    index: Optional[int] = None
    name: Optional[str] = None
    method: HttpMethod = HttpMethod.GET
    endpoint: str = Field(min_length=1)
    headers: dict[str, str] = Field(default_factory=dict)
    body: Optional[Union[str, dict, list]] = None
    expect: ExpectDoc = Field(default_factory=ExpectDoc)
    extract: dict[str, str] = Field(default_factory=dict)
    timeout_ms: Optional[int] = Field(default=None, gt=0)

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value


class ScenarioDoc(_Document):
    id: Optional[str] = None
    name: str
    description: Optional[str] = None
    package_id: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    steps: list[StepDoc]


def expand_env_vars(data: Any) -> Any:
    """Recursively expand ${VAR} patterns in data with environment variables.

    Args:
        data: Data structure (dict, list, or str)

    Returns:
        Data with environment variables expanded
    """
    if isinstance(data, str):
        pattern = re.compile(r'\$\{([^}]+)\}')
        return pattern.sub(lambda m: os.environ.get(m.group(1), ''), data)
    elif isinstance(data, dict):
        return {k: expand_env_vars(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [expand_env_vars(item) for item in data]
    return data


def _format_validation_error(exc: ValidationError) -> list[str]:
    messages = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err["loc"])
        messages.append(f"{location}: {err['msg']}" if location else err["msg"])
    return messages


class ScenarioParser:
    """Scenario document parser.

    Documents are validated against a strict schema before any domain
    object is built; unknown keys and wrong types are rejected.
    """

    def __init__(self, expand_env: bool = True, default_timeout_ms: int = DEFAULT_STEP_TIMEOUT_MS):
        self.expand_env = expand_env
        self.default_timeout_ms = default_timeout_ms

    def parse(self, path: Path) -> TestScenario:
        """Parse scenario from a YAML or JSON file.

        Raises:
            ScenarioValidationError: If the file is missing or malformed
        """
        if not path.exists():
            raise ScenarioValidationError([f"Scenario file not found: {path}"])

        with open(path, "r", encoding="utf-8") as f:
            return self.parse_string(f.read())

    def parse_string(self, content: str) -> TestScenario:
        """Parse scenario from YAML (or JSON) content."""
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ScenarioValidationError([f"Invalid YAML: {e}"]) from e

        if not data:
            raise ScenarioValidationError(["Empty scenario content"])
        if not isinstance(data, dict):
            raise ScenarioValidationError(["Scenario document must be a mapping"])

        return self.parse_data(data)

    def parse_data(self, data: dict) -> TestScenario:
        """Parse scenario from an already-loaded mapping."""
        if self.expand_env:
            data = expand_env_vars(data)

        try:
            doc = ScenarioDoc.model_validate(data)
        except ValidationError as e:
            raise ScenarioValidationError(_format_validation_error(e)) from e

        return self._build_scenario(doc)

    def _build_scenario(self, doc: ScenarioDoc) -> TestScenario:
        steps = [self._build_step(position, step) for position, step in enumerate(doc.steps)]
        kwargs: dict[str, Any] = {}
        if doc.id:
            kwargs["id"] = doc.id
        return TestScenario(
            name=doc.name,
            description=doc.description,
            package_id=doc.package_id,
            tags=frozenset(doc.tags),
            steps=tuple(steps),
            **kwargs,
        )

    def _build_step(self, position: int, doc: StepDoc) -> TestStep:
        index = doc.index if doc.index is not None else position
        body = doc.body
        if isinstance(body, (dict, list)):
            body = json.dumps(body)

        expect = doc.expect
        expected = ExpectedResult(
            status=expect.status,
            status_range=expect.status_range,
            body_contains=tuple(expect.body_contains),
            body_fields={
                path: FieldMatcher.from_dict(matcher.model_dump())
                for path, matcher in expect.body_fields.items()
            },
            headers=dict(expect.headers),
        )

        return TestStep(
            index=index,
            name=doc.name or f"{doc.method.value} {doc.endpoint}",
            method=doc.method,
            endpoint=doc.endpoint,
            headers=dict(doc.headers),
            body=body,
            expected=expected,
            extractions=dict(doc.extract),
            timeout_ms=doc.timeout_ms or self.default_timeout_ms,
        )

    def validate(self, scenario: TestScenario) -> tuple[bool, list[str], list[str]]:
        """Check a parsed scenario for data-flow problems.

        Structural errors are already rejected at construction time; this
        reports placeholders that no earlier step extracts.

        Returns:
            Tuple of (is_valid, errors, warnings)
        """
        errors: list[str] = []
        warnings: list[str] = []
        available: set[str] = set()

        for step in scenario.ordered_steps:
            templates = [step.endpoint, step.body or ""] + list(step.headers.values())
            for template in templates:
                for match in PLACEHOLDER_PATTERN.finditer(template):
                    name = match.group(1)
                    if name.startswith(ENV_PREFIX):
                        continue
                    if name not in available:
                        warnings.append(
                            f"Step {step.index} references '{name}' which no earlier step extracts"
                        )
            available.update(step.extractions)

            for path, matcher in step.expected.body_fields.items():
                if matcher.kind == MatcherKind.REGEX:
                    try:
                        re.compile(str(matcher.value))
                    except re.error as e:
                        errors.append(f"Step {step.index} field '{path}' has invalid regex: {e}")

        return len(errors) == 0, errors, warnings


def parse_scenario(path: Path) -> TestScenario:
    """Convenience function to parse a scenario file."""
    return ScenarioParser().parse(path)
