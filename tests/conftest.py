"""Pytest configuration and fixtures."""

import pytest
from pathlib import Path

from apiwave.core.execution.executor import StepExecutor
from apiwave.core.scenario.models import ExpectedResult, HttpMethod, TestScenario, TestStep
from apiwave.events.publisher import EventPublisher, InMemoryEventSink
from apiwave.persistence.memory import (
    InMemoryPackageRepository,
    InMemoryStepResultRepository,
    InMemoryTestRunRepository,
)
from apiwave.transport.http import HttpResponse, TransportError

BASE_URL = "http://api.test"


class FakeTransport:
    """Transport returning canned responses keyed by (method, url).

    A value may be an HttpResponse, an exception to raise, or a callable
    taking the request and returning either.
    """

    def __init__(self, routes=None, default=None):
        self.routes = dict(routes or {})
        self.default = default
        self.calls = []

    async def exchange(self, method, url, headers, body, timeout):
        self.calls.append({"method": method, "url": url, "headers": headers, "body": body, "timeout": timeout})
        outcome = self.routes.get((method, url), self.default)
        if callable(outcome) and not isinstance(outcome, type):
            outcome = outcome(method, url, headers, body)
        if outcome is None:
            raise TransportError(f"Connection refused: {method} {url}", method=method, url=url)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    @property
    def urls(self):
        return [c["url"] for c in self.calls]


def json_response(status=200, body="{}", headers=None):
    return HttpResponse(status=status, headers=headers or {"Content-Type": "application/json"}, body=body)


def make_step(index, endpoint="/health", method=HttpMethod.GET, **kwargs):
    kwargs.setdefault("name", f"step {index}")
    return TestStep(index=index, method=method, endpoint=endpoint, **kwargs)


@pytest.fixture
def temp_project(tmp_path):
    """Create a temporary project directory with .env file."""
    env_file = tmp_path / ".env"
    env_file.write_text("API_BASE_URL=http://example.test\n")
    return tmp_path


@pytest.fixture
def sample_config():
    """Return sample configuration dict."""
    return {
        "version": 1,
        "execution": {
            "base_url": "http://example.test",
            "stop_on_first_failure": True,
        },
        "http": {
            "user_agent": "apiwave-tests",
        },
    }


@pytest.fixture
def runs():
    return InMemoryTestRunRepository()


@pytest.fixture
def results():
    return InMemoryStepResultRepository()


@pytest.fixture
def packages():
    return InMemoryPackageRepository()


@pytest.fixture
def sink():
    return InMemoryEventSink()


@pytest.fixture
def publisher(sink):
    return EventPublisher(sink)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def step_executor(transport, results):
    return StepExecutor(transport, results)


@pytest.fixture
def login_scenario():
    """Two steps: log in, then use the extracted token."""
    return TestScenario(
        name="Login flow",
        steps=(
            make_step(
                0,
                "/login",
                HttpMethod.POST,
                body='{"user": "a"}',
                expected=ExpectedResult(status=200),
                extractions={"token": "$.token"},
            ),
            make_step(
                1,
                "/me",
                headers={"Authorization": "Bearer {{token}}"},
                expected=ExpectedResult(status=200),
            ),
        ),
    )


SAMPLE_SCENARIO_YAML = """\
name: Create and fetch user
description: Creates a user and reads it back
tags: [users, smoke]
steps:
  - name: Create user
    method: post
    endpoint: /users
    headers:
      Content-Type: application/json
    body:
      name: Alice
    expect:
      status: 201
      body_fields:
        $.id:
          type: not_null
    extract:
      userId: $.id
  - name: Fetch user
    endpoint: /users/{{userId}}
    expect:
      status: 200
      body_contains: [Alice]
"""


@pytest.fixture
def scenario_file(tmp_path) -> Path:
    path = tmp_path / "users.yaml"
    path.write_text(SAMPLE_SCENARIO_YAML, encoding="utf-8")
    return path
