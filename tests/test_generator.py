"""Tests for the scenario generator gateway."""

import pytest

from apiwave.core.errors import ScenarioValidationError
from apiwave.core.generator import GeneratorGateway, check_limits
from apiwave.core.package.models import PackageConfig
from apiwave.core.scenario.models import TestScenario
from apiwave.persistence.memory import InMemoryScenarioRepository

from conftest import make_step


class StaticGenerator:
    def __init__(self, scenarios):
        self.scenarios = scenarios
        self.calls = []

    async def generate(self, package_id, api_spec, requirements, config):
        self.calls.append((package_id, api_spec, requirements, config))
        return self.scenarios


def scenario(name, steps=1, package_id=None):
    return TestScenario(name=name, package_id=package_id, steps=[make_step(i, f"/s{i}") for i in range(steps)])


@pytest.mark.asyncio
async def test_valid_scenarios_saved():
    """Test accepted scenarios are returned and stored."""
    repository = InMemoryScenarioRepository()
    generated = [scenario("A", package_id="pkg-1"), scenario("B", package_id="pkg-1")]
    gateway = GeneratorGateway(StaticGenerator(generated), repository)

    accepted = await gateway.generate("pkg-1", "openapi: 3.0.0", "cover users")

    assert accepted == generated
    assert await repository.find_by_package_id("pkg-1") == generated


@pytest.mark.asyncio
async def test_unowned_scenarios_assigned_to_package():
    """Test scenarios without a package id are stamped with the requesting package."""
    repository = InMemoryScenarioRepository()
    unowned = scenario("B")
    gateway = GeneratorGateway(StaticGenerator([unowned]), repository)

    accepted, = await gateway.generate("pkg-1", "openapi: 3.0.0")

    assert accepted.package_id == "pkg-1"
    assert accepted.id == unowned.id
    assert await repository.find_by_package_id("pkg-1") == [accepted]


@pytest.mark.asyncio
async def test_too_many_scenarios_rejected():
    """Test the package scenario limit is enforced."""
    gateway = GeneratorGateway(StaticGenerator([scenario("A"), scenario("B"), scenario("C")]))

    with pytest.raises(ScenarioValidationError) as exc_info:
        await gateway.generate("pkg-1", "openapi: 3.0.0", config=PackageConfig(max_scenarios=2))

    assert "Generated 3 scenarios, limit is 2" in exc_info.value.errors


@pytest.mark.asyncio
async def test_too_many_steps_rejected():
    """Test the per-scenario step limit is enforced."""
    gateway = GeneratorGateway(StaticGenerator([scenario("Long", steps=4)]))

    with pytest.raises(ScenarioValidationError):
        await gateway.generate("pkg-1", "openapi: 3.0.0", config=PackageConfig(max_steps_per_scenario=3))


@pytest.mark.asyncio
async def test_foreign_package_rejected():
    """Test scenarios for another package are refused."""
    repository = InMemoryScenarioRepository()
    gateway = GeneratorGateway(StaticGenerator([scenario("A", package_id="pkg-2")]), repository)

    with pytest.raises(ScenarioValidationError):
        await gateway.generate("pkg-1", "openapi: 3.0.0")

    assert await repository.find_by_package_id("pkg-2") == []


@pytest.mark.asyncio
async def test_non_scenario_output_rejected():
    """Test raw generator output that is not a scenario is refused."""
    gateway = GeneratorGateway(StaticGenerator([{"name": "raw dict"}]))

    with pytest.raises(ScenarioValidationError):
        await gateway.generate("pkg-1", "openapi: 3.0.0")


def test_check_limits_within_bounds():
    """Test a batch inside every limit reports nothing."""
    assert check_limits([scenario("A", steps=2)], PackageConfig()) == []
