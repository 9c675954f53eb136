"""Run orchestrator - drives a scenario's steps to a terminal verdict."""

from __future__ import annotations

import logging
from typing import Mapping, Optional

from apiwave.core.errors import (
    InvalidStatusTransitionError,
    PackageNotFoundError,
    RunNotFoundError,
    ScenarioValidationError,
)
from apiwave.core.execution.context import ExecutionContext
from apiwave.core.execution.executor import StepExecutor
from apiwave.core.execution.models import (
    StepOutcome,
    TestRun,
    TestRunStatus,
    TestStepResult,
    compute_verdict,
    run_sources,
)
from apiwave.core.package.models import PackageConfig, PackageStatus
from apiwave.core.scenario.models import TestScenario, utcnow, validate_steps
from apiwave.events.models import TestRunCompletedEvent, TestRunStartedEvent
from apiwave.events.publisher import EventPublisher
from apiwave.persistence.memory import InMemoryStepResultRepository, InMemoryTestRunRepository
from apiwave.persistence.repositories import (
    PackageRepository,
    StepResultRepository,
    TestRunRepository,
)
from apiwave.transport.http import AiohttpTransport, HttpTransport

logger = logging.getLogger(__name__)

# A RUNNING run may be picked up again by the executor
_STARTABLE = (*run_sources(TestRunStatus.RUNNING), TestRunStatus.RUNNING)
_CANCELLABLE = run_sources(TestRunStatus.CANCELLED)


class RunOrchestrator:
    """Executes every step of a scenario for one test run.

    Steps run strictly one after another in index order, sharing one
    ExecutionContext so later steps see values extracted by earlier ones.
    Cancellation is cooperative: the run and its package are checked
    before each step, and a step already in flight completes normally.
    """

    def __init__(
        self,
        runs: TestRunRepository,
        step_executor: StepExecutor,
        packages: Optional[PackageRepository] = None,
        publisher: Optional[EventPublisher] = None,
        default_config: Optional[PackageConfig] = None,
    ):
        self.runs = runs
        self.step_executor = step_executor
        self.packages = packages
        self.publisher = publisher or EventPublisher()
        self.default_config = default_config or PackageConfig()

    async def execute_run(
        self,
        run_id: str,
        scenario: TestScenario,
        config: Optional[PackageConfig] = None,
    ) -> tuple[TestRun, list[TestStepResult]]:
        """Run all steps of scenario for run_id.

        Args:
            run_id: A QUEUED run (or RUNNING, when retrying an interrupted call)
            scenario: Scenario the run belongs to
            config: Execution options; defaults to the owning package's config

        Returns:
            The terminal run (with results attached) and the step results

        Raises:
            RunNotFoundError: Unknown run id
            InvalidStatusTransitionError: The run is already terminal
            ScenarioValidationError: The scenario is malformed
        """
        errors = validate_steps(scenario.name, scenario.steps)
        if errors:
            raise ScenarioValidationError(errors)

        run = await self.runs.find_by_id(run_id)
        if run is None:
            raise RunNotFoundError(run_id)
        if run.scenario_id != scenario.id:
            raise ScenarioValidationError(
                [f"Run {run_id} belongs to scenario {run.scenario_id}, not {scenario.id}"]
            )

        config = config or await self._config_for(run)

        # Durable RUNNING marker before any step; failures here propagate
        running = await self.runs.compare_and_set_status(
            run_id, _STARTABLE, TestRunStatus.RUNNING, started_at=run.started_at or utcnow()
        )
        if running is None:
            current = await self.runs.find_by_id(run_id)
            status = current.status if current else run.status
            raise InvalidStatusTransitionError(status, TestRunStatus.RUNNING, run_id)

        logger.info(f"Executing test run {run_id} with {scenario.step_count} steps")
        self.publisher.publish(TestRunStartedEvent(
            aggregate_id=run_id,
            scenario_id=scenario.id,
            package_id=run.package_id,
            step_count=scenario.step_count,
        ))

        context = ExecutionContext(environment=run.environment)
        results: list[TestStepResult] = []
        cancelled = False

        for step in scenario.ordered_steps:
            if await self._cancellation_requested(running):
                logger.info(f"Run {run_id} cancelled before step {step.index}")
                cancelled = True
                break

            result = await self.step_executor.execute(run_id, step, running.base_url, context)
            results.append(result)
            logger.debug(f"Step {step.index} completed: {result.outcome.value}")

            if result.outcome != StepOutcome.PASSED and config.stop_on_first_failure:
                logger.info(f"Step {step.index} {result.outcome.value}, stopping run {run_id}")
                break

        verdict = compute_verdict(results, cancelled=cancelled)
        final = await self.runs.compare_and_set_status(
            run_id, (TestRunStatus.RUNNING,), verdict, completed_at=utcnow()
        )
        if final is None:
            # Cancelled (or otherwise finished) concurrently; terminal states never change
            final = await self.runs.find_by_id(run_id)
            if final is None:
                raise RunNotFoundError(run_id)
            logger.info(f"Run {run_id} already {final.status.value}; verdict {verdict.value} not applied")

        passed = sum(1 for r in results if r.passed)
        logger.info(
            f"Test run {run_id} completed with status {final.status.value} "
            f"({passed} passed, {len(results) - passed} not passed, "
            f"{scenario.step_count - len(results)} not attempted)"
        )
        self.publisher.publish(TestRunCompletedEvent(
            aggregate_id=run_id,
            scenario_id=scenario.id,
            package_id=run.package_id,
            verdict=final.status.value,
            duration_ms=final.duration_ms or sum(r.duration_ms for r in results),
            steps_executed=len(results),
            steps_passed=passed,
            error_message=next((r.error_message for r in results if r.has_error), None),
        ))

        return final.with_results(results), results

    async def _config_for(self, run: TestRun) -> PackageConfig:
        if run.package_id is None or self.packages is None:
            return self.default_config
        package = await self.packages.find_by_id(run.package_id)
        if package is None:
            raise PackageNotFoundError(run.package_id)
        return package.config

    async def _cancellation_requested(self, run: TestRun) -> bool:
        try:
            current = await self.runs.find_by_id(run.id)
            if current is not None and current.status == TestRunStatus.CANCELLED:
                return True
            if run.package_id and self.packages is not None:
                package = await self.packages.find_by_id(run.package_id)
                if package is not None and package.status == PackageStatus.CANCELLED:
                    return True
        except Exception as e:
            logger.warning(f"Cancellation check failed for run {run.id}: {e}")
        return False


class RunService:
    """Creates, cancels and queries test runs."""

    def __init__(self, runs: TestRunRepository, results: StepResultRepository):
        self.runs = runs
        self.results = results

    async def start_run(
        self,
        scenario: TestScenario,
        base_url: str,
        triggered_by: str = "system",
        package_id: Optional[str] = None,
        environment: Optional[Mapping[str, str]] = None,
    ) -> TestRun:
        """Create a QUEUED run for scenario."""
        run = TestRun(
            scenario_id=scenario.id,
            package_id=package_id or scenario.package_id,
            base_url=base_url,
            triggered_by=triggered_by,
            environment=dict(environment or {}),
        )
        created = await self.runs.create(run)
        logger.info(f"Created test run {created.id} for scenario {scenario.id}")
        return created

    async def cancel_run(self, run_id: str) -> TestRun:
        """Request cancellation; an executing run stops before its next step."""
        cancelled = await self.runs.compare_and_set_status(
            run_id, _CANCELLABLE, TestRunStatus.CANCELLED, completed_at=utcnow()
        )
        if cancelled is None:
            current = await self.get_run(run_id)
            raise InvalidStatusTransitionError(current.status, TestRunStatus.CANCELLED, run_id)
        logger.info(f"Test run {run_id} cancelled")
        return cancelled

    async def get_run(self, run_id: str) -> TestRun:
        run = await self.runs.find_by_id(run_id)
        if run is None:
            raise RunNotFoundError(run_id)
        return run

    async def get_step_results(self, run_id: str) -> list[TestStepResult]:
        return await self.results.find_by_run_id(run_id)

    async def get_run_with_results(self, run_id: str) -> TestRun:
        run = await self.get_run(run_id)
        return run.with_results(await self.results.find_by_run_id(run_id))

    async def find_by_status(self, status: TestRunStatus) -> list[TestRun]:
        return await self.runs.find_by_status(status)

    async def delete_run(self, run_id: str) -> bool:
        if await self.runs.find_by_id(run_id) is None:
            return False
        removed = await self.results.delete_by_run_id(run_id)
        await self.runs.delete(run_id)
        logger.info(f"Deleted test run {run_id} ({removed} step results)")
        return True


async def run_scenario(
    scenario: TestScenario,
    base_url: str,
    stop_on_first_failure: bool = False,
    environment: Optional[Mapping[str, str]] = None,
    transport: Optional[HttpTransport] = None,
    publisher: Optional[EventPublisher] = None,
) -> tuple[TestRun, list[TestStepResult]]:
    """Run a scenario against base_url with in-memory storage.

    Args:
        scenario: Parsed scenario
        base_url: Target API base URL
        stop_on_first_failure: Stop at the first failed or errored step
        environment: Values available as {{env.NAME}}
        transport: HTTP transport (an AiohttpTransport is created and closed if omitted)
        publisher: Event publisher (defaults to logging)

    Returns:
        The finished run and its step results
    """
    runs = InMemoryTestRunRepository()
    results = InMemoryStepResultRepository()
    publisher = publisher or EventPublisher()
    owned = transport is None
    transport = transport or AiohttpTransport()

    try:
        orchestrator = RunOrchestrator(
            runs=runs,
            step_executor=StepExecutor(transport, results),
            publisher=publisher,
            default_config=PackageConfig(stop_on_first_failure=stop_on_first_failure),
        )
        run = await RunService(runs, results).start_run(scenario, base_url, environment=environment)
        outcome = await orchestrator.execute_run(run.id, scenario)
    finally:
        if owned:
            await transport.close()

    await publisher.drain()
    return outcome
