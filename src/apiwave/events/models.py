"""Domain events published by the engine.

Each event carries an explicit ``type`` tag. Serialized events are parsed
back by dispatching on that tag and validated against the schema of that
variant; unknown tags, unknown fields and wrong types are rejected.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Annotated, ClassVar, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from apiwave.core.scenario.models import new_id, utcnow


@dataclass(frozen=True)
class TestRunStartedEvent:
    TYPE: ClassVar[str] = "TEST_RUN_STARTED"
    __test__: ClassVar[bool] = False

    aggregate_id: str
    scenario_id: str
    package_id: Optional[str] = None
    step_count: int = 0
    event_id: str = field(default_factory=new_id)
    timestamp: datetime = field(default_factory=utcnow)
    aggregate_type: str = "TestRun"


@dataclass(frozen=True)
class TestRunCompletedEvent:
    TYPE: ClassVar[str] = "TEST_RUN_COMPLETED"
    __test__: ClassVar[bool] = False

    aggregate_id: str
    scenario_id: str
    verdict: str
    duration_ms: int
    steps_executed: int
    steps_passed: int
    package_id: Optional[str] = None
    error_message: Optional[str] = None
    event_id: str = field(default_factory=new_id)
    timestamp: datetime = field(default_factory=utcnow)
    aggregate_type: str = "TestRun"

    @property
    def success(self) -> bool:
        return self.verdict == "PASSED"


@dataclass(frozen=True)
class PackageStatusChangedEvent:
    TYPE: ClassVar[str] = "PACKAGE_STATUS_CHANGED"

    aggregate_id: str
    previous_status: str
    new_status: str
    reason: Optional[str] = None
    event_id: str = field(default_factory=new_id)
    timestamp: datetime = field(default_factory=utcnow)
    aggregate_type: str = "Package"


DomainEvent = Union[TestRunStartedEvent, TestRunCompletedEvent, PackageStatusChangedEvent]

EVENT_TYPES: dict[str, type] = {
    cls.TYPE: cls
    for cls in (TestRunStartedEvent, TestRunCompletedEvent, PackageStatusChangedEvent)
}


class _EventDoc(BaseModel):
    model_config = ConfigDict(extra="forbid")

    aggregate_id: str
    event_id: str = Field(default_factory=new_id)
    timestamp: datetime = Field(default_factory=utcnow)


class RunStartedDoc(_EventDoc):
    type: Literal["TEST_RUN_STARTED"]
    scenario_id: str
    package_id: Optional[str] = None
    step_count: int = Field(default=0, ge=0)
    aggregate_type: Literal["TestRun"] = "TestRun"


class RunCompletedDoc(_EventDoc):
    type: Literal["TEST_RUN_COMPLETED"]
    scenario_id: str
    verdict: Literal["PASSED", "FAILED", "ERROR", "CANCELLED"]
    duration_ms: int = Field(ge=0)
    steps_executed: int = Field(ge=0)
    steps_passed: int = Field(ge=0)
    package_id: Optional[str] = None
    error_message: Optional[str] = None
    aggregate_type: Literal["TestRun"] = "TestRun"


class PackageStatusChangedDoc(_EventDoc):
    type: Literal["PACKAGE_STATUS_CHANGED"]
    previous_status: str
    new_status: str
    reason: Optional[str] = None
    aggregate_type: Literal["Package"] = "Package"


EventDoc = Annotated[
    Union[RunStartedDoc, RunCompletedDoc, PackageStatusChangedDoc],
    Field(discriminator="type"),
]

_event_adapter = TypeAdapter(EventDoc)


def event_to_dict(event: DomainEvent) -> dict:
    """Serialize an event with its type tag."""
    data = asdict(event)
    data["timestamp"] = event.timestamp.isoformat()
    data["type"] = event.TYPE
    return data


def event_from_dict(data: dict) -> DomainEvent:
    """Rebuild an event from its serialized form.

    The payload is validated against the schema of the variant its ``type``
    tag names; unknown fields and wrong types are rejected.

    Raises:
        ValueError: If the type tag is missing or unknown, or the payload is malformed
    """
    tag = data.get("type")
    if not isinstance(tag, str) or tag not in EVENT_TYPES:
        raise ValueError(f"Unknown event type: {tag!r}")

    try:
        doc = _event_adapter.validate_python(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'][1:])}: {err['msg']}" for err in e.errors()
        )
        raise ValueError(f"Malformed {tag} event: {problems}") from e

    return EVENT_TYPES[tag](**doc.model_dump(exclude={"type"}))
