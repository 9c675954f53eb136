"""Exception types raised by the execution engine."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class ApiwaveError(Exception):
    """Base class for all apiwave errors."""


class NotFoundError(ApiwaveError):
    """An identifier does not refer to a stored entity."""

    kind = "Entity"

    def __init__(self, entity_id: Any):
        self.entity_id = entity_id
        super().__init__(f"{self.kind} not found: {entity_id}")


class RunNotFoundError(NotFoundError):
    kind = "Test run"


class PackageNotFoundError(NotFoundError):
    kind = "Package"


class ScenarioNotFoundError(NotFoundError):
    kind = "Scenario"


class InvalidStatusTransitionError(ApiwaveError):
    """A status change is not permitted by the transition table."""

    def __init__(self, current: Enum, target: Enum, entity_id: Optional[Any] = None):
        self.current = current
        self.target = target
        self.entity_id = entity_id
        message = f"Invalid status transition: {current.value} -> {target.value}"
        if entity_id is not None:
            message = f"{message} ({entity_id})"
        super().__init__(message)


class ScenarioValidationError(ApiwaveError, ValueError):
    """A scenario (or scenario document) is malformed."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("Invalid scenario: " + "; ".join(self.errors))


class PersistenceError(ApiwaveError):
    """A repository write or read failed."""
