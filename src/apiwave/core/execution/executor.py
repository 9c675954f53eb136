"""Step executor - runs one step end to end."""

from __future__ import annotations

import logging
import time
from typing import Optional

from apiwave.core.execution.assertions import AssertionExecutor
from apiwave.core.execution.context import ExecutionContext
from apiwave.core.execution.extraction import extract_values
from apiwave.core.execution.models import RequestSnapshot, TestStepResult
from apiwave.core.scenario.models import TestStep, utcnow
from apiwave.persistence.repositories import StepResultRepository
from apiwave.transport.http import HttpResponse, HttpTransport, TransportError

logger = logging.getLogger(__name__)


def join_url(base_url: str, endpoint: str) -> str:
    """Join a base URL and a step endpoint with exactly one slash."""
    if endpoint.startswith(("http://", "https://")):
        return endpoint
    if not endpoint.startswith("/"):
        endpoint = f"/{endpoint}"
    return f"{base_url.rstrip('/')}{endpoint}"


class StepExecutor:
    """Executes a single step and records its result.

    Handles:
    - Template resolution of endpoint, headers and body
    - One HTTP exchange through the transport
    - Assertion evaluation and value extraction
    - Persisting exactly one TestStepResult

    ``execute`` never raises; every failure becomes an error result.
    """

    def __init__(
        self,
        transport: HttpTransport,
        results: StepResultRepository,
        assertion_executor: Optional[AssertionExecutor] = None,
    ):
        self.transport = transport
        self.results = results
        self.assertion_executor = assertion_executor or AssertionExecutor()

    async def execute(
        self,
        run_id: str,
        step: TestStep,
        base_url: str,
        context: ExecutionContext,
    ) -> TestStepResult:
        """Execute a step against base_url using and updating context.

        Args:
            run_id: Owning test run
            step: Step definition
            base_url: Target API base URL
            context: Run context; receives this step's extracted values

        Returns:
            The recorded TestStepResult
        """
        executed_at = utcnow()
        timer = time.perf_counter()
        request: Optional[RequestSnapshot] = None

        def elapsed_ms() -> int:
            return int((time.perf_counter() - timer) * 1000)

        try:
            request = RequestSnapshot(
                method=step.method.value,
                url=context.resolve(join_url(base_url, step.endpoint)),
                headers=context.resolve_headers(step.headers),
                body=context.resolve(step.body),
            )
            logger.debug(f"Executing step {step.index}: {request.method} {request.url}")

            try:
                response = await self.transport.exchange(
                    request.method,
                    request.url,
                    dict(request.headers),
                    request.body,
                    step.timeout_ms / 1000,
                )
            except TransportError as e:
                logger.warning(f"Step {step.index} transport error: {e}")
                result = self._error_result(run_id, step, str(e), elapsed_ms(), executed_at, request)
            else:
                result = self._evaluate(run_id, step, response, context, elapsed_ms, executed_at, request)

        except Exception as e:
            logger.exception(f"Step {step.index} failed with exception")
            message = str(e) or f"Unknown error: {type(e).__name__}"
            result = self._error_result(run_id, step, message, elapsed_ms(), executed_at, request)

        await self._record(result)
        return result

    def _evaluate(
        self,
        run_id: str,
        step: TestStep,
        response: HttpResponse,
        context: ExecutionContext,
        elapsed_ms,
        executed_at,
        request: RequestSnapshot,
    ) -> TestStepResult:
        assertions = self.assertion_executor.verify(step.expected, response)
        passed = all(a.passed for a in assertions)

        extracted = extract_values(step.extractions, response.body)

        if not passed:
            failed = [a.message for a in assertions if not a.passed]
            logger.info(f"Step {step.index} assertions failed: {failed}")

        result = TestStepResult(
            run_id=run_id,
            step_index=step.index,
            step_name=step.name,
            passed=passed,
            duration_ms=elapsed_ms(),
            executed_at=executed_at,
            actual_status=response.status,
            actual_headers=dict(response.headers),
            actual_body=response.body,
            assertions=tuple(assertions),
            extracted_values=extracted,
            request=request,
        )
        # Only a fully built result publishes its values to later steps
        context.add_extracted(extracted)
        return result

    @staticmethod
    def _error_result(
        run_id: str,
        step: TestStep,
        message: str,
        duration_ms: int,
        executed_at,
        request: Optional[RequestSnapshot],
    ) -> TestStepResult:
        return TestStepResult(
            run_id=run_id,
            step_index=step.index,
            step_name=step.name,
            passed=False,
            duration_ms=duration_ms,
            executed_at=executed_at,
            error_message=message,
            request=request,
        )

    async def _record(self, result: TestStepResult) -> None:
        try:
            await self.results.save(result)
        except Exception as e:
            # The in-memory result still drives the run verdict
            logger.error(
                f"Failed to persist result of step {result.step_index} "
                f"for run {result.run_id}: {e}"
            )
