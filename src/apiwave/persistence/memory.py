"""In-memory repository implementations."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import datetime
from typing import Dict, Iterable, Optional

from apiwave.core.errors import PackageNotFoundError, PersistenceError, RunNotFoundError
from apiwave.core.execution.models import TestRun, TestRunStatus, TestStepResult
from apiwave.core.package.models import Package, PackageStatus
from apiwave.core.scenario.models import TestScenario, utcnow

logger = logging.getLogger(__name__)


class InMemoryTestRunRepository:
    """Test runs kept in a dict; status changes are serialized by a lock."""

    __test__ = False

    def __init__(self) -> None:
        self._runs: Dict[str, TestRun] = {}
        self._lock = asyncio.Lock()

    async def create(self, run: TestRun) -> TestRun:
        async with self._lock:
            if run.id in self._runs:
                raise PersistenceError(f"Test run already exists: {run.id}")
            # Step results live in their own repository
            stored = run.with_results(())
            self._runs[run.id] = stored
            return stored

    async def find_by_id(self, run_id: str) -> Optional[TestRun]:
        return self._runs.get(run_id)

    async def compare_and_set_status(
        self,
        run_id: str,
        expected: Iterable[TestRunStatus],
        target: TestRunStatus,
        started_at: Optional[datetime] = None,
        completed_at: Optional[datetime] = None,
    ) -> Optional[TestRun]:
        expected = set(expected)
        async with self._lock:
            current = self._runs.get(run_id)
            if current is None:
                raise RunNotFoundError(run_id)
            if current.status not in expected:
                return None

            updated = replace(
                current,
                status=target,
                started_at=started_at or current.started_at,
                completed_at=completed_at or current.completed_at,
                updated_at=utcnow(),
            )
            self._runs[run_id] = updated
            return updated

    async def find_by_status(self, status: TestRunStatus) -> list[TestRun]:
        return [r for r in self._runs.values() if r.status == status]

    async def find_by_scenario_id(self, scenario_id: str) -> list[TestRun]:
        runs = [r for r in self._runs.values() if r.scenario_id == scenario_id]
        return sorted(runs, key=lambda r: r.created_at)

    async def find_by_package_id(self, package_id: str) -> list[TestRun]:
        runs = [r for r in self._runs.values() if r.package_id == package_id]
        return sorted(runs, key=lambda r: r.created_at)

    async def delete(self, run_id: str) -> bool:
        async with self._lock:
            return self._runs.pop(run_id, None) is not None


class InMemoryStepResultRepository:
    """Append-only store of step results keyed by (run id, step index)."""

    def __init__(self) -> None:
        self._results: Dict[tuple[str, int], TestStepResult] = {}
        self._lock = asyncio.Lock()

    async def save(self, result: TestStepResult) -> TestStepResult:
        key = (result.run_id, result.step_index)
        async with self._lock:
            if key in self._results:
                raise PersistenceError(
                    f"Result for step {result.step_index} of run {result.run_id} already recorded"
                )
            self._results[key] = result
            return result

    async def find_by_run_id(self, run_id: str) -> list[TestStepResult]:
        results = [r for (rid, _), r in self._results.items() if rid == run_id]
        return sorted(results, key=lambda r: r.step_index)

    async def delete_by_run_id(self, run_id: str) -> int:
        async with self._lock:
            keys = [key for key in self._results if key[0] == run_id]
            for key in keys:
                del self._results[key]
            return len(keys)


class InMemoryPackageRepository:
    """Packages kept in a dict with compare-and-set status updates."""

    def __init__(self) -> None:
        self._packages: Dict[str, Package] = {}
        self._lock = asyncio.Lock()

    async def create(self, package: Package) -> Package:
        async with self._lock:
            if package.id in self._packages:
                raise PersistenceError(f"Package already exists: {package.id}")
            self._packages[package.id] = package
            return package

    async def find_by_id(self, package_id: str) -> Optional[Package]:
        return self._packages.get(package_id)

    async def compare_and_set_status(
        self,
        package_id: str,
        expected: PackageStatus,
        target: PackageStatus,
        updated_at: datetime,
    ) -> Optional[Package]:
        async with self._lock:
            current = self._packages.get(package_id)
            if current is None:
                raise PackageNotFoundError(package_id)
            if current.status != expected:
                return None
            updated = replace(current, status=target, updated_at=updated_at)
            self._packages[package_id] = updated
            return updated

    async def find_by_status(self, status: PackageStatus) -> list[Package]:
        return [p for p in self._packages.values() if p.status == status]

    async def delete(self, package_id: str) -> bool:
        async with self._lock:
            return self._packages.pop(package_id, None) is not None


class InMemoryScenarioRepository:

    def __init__(self) -> None:
        self._scenarios: Dict[str, TestScenario] = {}

    async def save(self, scenario: TestScenario) -> TestScenario:
        self._scenarios[scenario.id] = scenario
        return scenario

    async def find_by_id(self, scenario_id: str) -> Optional[TestScenario]:
        return self._scenarios.get(scenario_id)

    async def find_by_package_id(self, package_id: str) -> list[TestScenario]:
        return [s for s in self._scenarios.values() if s.package_id == package_id]

    async def delete(self, scenario_id: str) -> bool:
        return self._scenarios.pop(scenario_id, None) is not None
