"""Scenario generator contract.

Scenario generation itself (an LLM, a rules engine, a fixture loader) lives
outside this package. Whatever it returns is treated as untrusted input:
the gateway re-validates every scenario and the package limits before the
scenarios reach execution.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional, Protocol

from apiwave.core.errors import ScenarioValidationError
from apiwave.core.package.models import PackageConfig
from apiwave.core.scenario.models import TestScenario, validate_steps
from apiwave.persistence.repositories import ScenarioRepository

logger = logging.getLogger(__name__)


class ScenarioGenerator(Protocol):
    async def generate(
        self,
        package_id: str,
        api_spec: str,
        requirements: Optional[str],
        config: PackageConfig,
    ) -> list[TestScenario]: ...


class GeneratorGateway:
    """Validates generated scenarios and optionally stores them."""

    def __init__(
        self,
        generator: ScenarioGenerator,
        scenarios: Optional[ScenarioRepository] = None,
    ):
        self.generator = generator
        self.scenarios = scenarios

    async def generate(
        self,
        package_id: str,
        api_spec: str,
        requirements: Optional[str] = None,
        config: Optional[PackageConfig] = None,
    ) -> list[TestScenario]:
        """Generate scenarios for a package.

        Raises:
            ScenarioValidationError: Any scenario is malformed or a limit is exceeded
        """
        config = config or PackageConfig()
        generated = await self.generator.generate(package_id, api_spec, requirements, config)

        errors = check_limits(generated, config)
        for scenario in generated:
            if not isinstance(scenario, TestScenario):
                errors.append(f"Generator returned {type(scenario).__name__}, not a scenario")
                continue
            errors.extend(f"{scenario.name or scenario.id}: {e}" for e in validate_steps(scenario.name, scenario.steps))
            if scenario.package_id not in (None, package_id):
                errors.append(f"{scenario.name}: belongs to package {scenario.package_id}")
        if errors:
            logger.warning(f"Rejected generated scenarios for package {package_id}: {errors}")
            raise ScenarioValidationError(errors)

        accepted = [replace(scenario, package_id=package_id) for scenario in generated]
        if self.scenarios is not None:
            for scenario in accepted:
                await self.scenarios.save(scenario)

        logger.info(f"Generated {len(accepted)} scenarios for package {package_id}")
        return accepted


def check_limits(scenarios: list[TestScenario], config: PackageConfig) -> list[str]:
    """Return the package limit violations of a generated batch."""
    errors = []
    if len(scenarios) > config.max_scenarios:
        errors.append(
            f"Generated {len(scenarios)} scenarios, limit is {config.max_scenarios}"
        )
    for scenario in scenarios:
        if isinstance(scenario, TestScenario) and scenario.step_count > config.max_steps_per_scenario:
            errors.append(
                f"{scenario.name}: {scenario.step_count} steps, "
                f"limit is {config.max_steps_per_scenario}"
            )
    return errors
