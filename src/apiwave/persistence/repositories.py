"""Repository contracts used by the execution engine.

Every method is a coroutine; implementations may suspend on I/O. Status
fields are only changed through the compare-and-set methods so concurrent
writers cannot both succeed against the same observed state.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional, Protocol

from apiwave.core.execution.models import TestRun, TestRunStatus, TestStepResult
from apiwave.core.package.models import Package, PackageStatus
from apiwave.core.scenario.models import TestScenario


class TestRunRepository(Protocol):

    async def create(self, run: TestRun) -> TestRun: ...

    async def find_by_id(self, run_id: str) -> Optional[TestRun]: ...

    async def compare_and_set_status(
        self,
        run_id: str,
        expected: Iterable[TestRunStatus],
        target: TestRunStatus,
        started_at: Optional[datetime] = None,
        completed_at: Optional[datetime] = None,
    ) -> Optional[TestRun]:
        """Set status to target only if the stored status is in expected.

        Returns the updated run, or None when the stored status did not
        match. Raises RunNotFoundError for an unknown id.
        """
        ...

    async def find_by_status(self, status: TestRunStatus) -> list[TestRun]: ...

    async def find_by_scenario_id(self, scenario_id: str) -> list[TestRun]: ...

    async def find_by_package_id(self, package_id: str) -> list[TestRun]: ...

    async def delete(self, run_id: str) -> bool: ...


class StepResultRepository(Protocol):

    async def save(self, result: TestStepResult) -> TestStepResult:
        """Insert a step result. Results are never updated in place."""
        ...

    async def find_by_run_id(self, run_id: str) -> list[TestStepResult]:
        """All results of a run ordered by step index."""
        ...

    async def delete_by_run_id(self, run_id: str) -> int: ...


class PackageRepository(Protocol):

    async def create(self, package: Package) -> Package: ...

    async def find_by_id(self, package_id: str) -> Optional[Package]: ...

    async def compare_and_set_status(
        self,
        package_id: str,
        expected: PackageStatus,
        target: PackageStatus,
        updated_at: datetime,
    ) -> Optional[Package]:
        """Set status only if the stored status equals expected."""
        ...

    async def find_by_status(self, status: PackageStatus) -> list[Package]: ...

    async def delete(self, package_id: str) -> bool: ...


class ScenarioRepository(Protocol):

    async def save(self, scenario: TestScenario) -> TestScenario: ...

    async def find_by_id(self, scenario_id: str) -> Optional[TestScenario]: ...

    async def find_by_package_id(self, package_id: str) -> list[TestScenario]: ...

    async def delete(self, scenario_id: str) -> bool: ...
