"""Scenario definitions and parsing."""

from apiwave.core.scenario.models import (
    ExpectedResult,
    FieldMatcher,
    HttpMethod,
    MatcherKind,
    TestScenario,
    TestStep,
)
from apiwave.core.scenario.parser import ScenarioParser, parse_scenario

__all__ = [
    # Models
    "ExpectedResult",
    "FieldMatcher",
    "HttpMethod",
    "MatcherKind",
    "TestScenario",
    "TestStep",
    # Parser
    "ScenarioParser",
    "parse_scenario",
]
