"""Tests for the command line interface."""

import json
import logging
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer

import pytest
from typer.testing import CliRunner

from apiwave import __version__
from apiwave.cli.main import app
from apiwave.config import loader

runner = CliRunner()


def _start_users_server():
    """Serve POST /users and GET /users/u-1 on a random local port."""

    class Handler(BaseHTTPRequestHandler):
        def _send(self, status, payload):
            body = json.dumps(payload).encode("utf-8")
            self.send_response(status)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def do_POST(self):  # noqa: N802
            length = int(self.headers.get("Content-Length", 0))
            self.rfile.read(length)
            if self.path == "/users":
                self._send(201, {"id": "u-1", "name": "Alice"})
            else:
                self._send(404, {"error": "not found"})

        def do_GET(self):  # noqa: N802
            if self.path == "/users/u-1":
                self._send(200, {"id": "u-1", "name": "Alice"})
            else:
                self._send(404, {"error": "not found"})

        def log_message(self, format, *args):
            return

    server = HTTPServer(("127.0.0.1", 0), Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return server, thread


@pytest.fixture
def users_server():
    server, thread = _start_users_server()
    yield f"http://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    thread.join(timeout=5)


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Run every command in an empty project with no global config."""
    monkeypatch.setattr(loader, "GLOBAL_CONFIG_FILE", tmp_path / "global" / "config.yaml")
    monkeypatch.chdir(tmp_path)


def test_version():
    """Test --version prints the package version."""
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.stdout
    assert "aiohttp" in result.stdout


def test_verbose_and_quiet_conflict(scenario_file):
    """Test --verbose and --quiet are rejected together."""
    result = runner.invoke(app, ["-v", "-q", "scenario", "parse", str(scenario_file)])

    assert result.exit_code == 2


def test_quiet_raises_log_level(scenario_file):
    """Test --quiet limits logging to warnings."""
    root = logging.getLogger()
    previous = root.level
    try:
        result = runner.invoke(app, ["--quiet", "scenario", "parse", str(scenario_file)])

        assert result.exit_code == 0
        assert root.level == logging.WARNING
        assert logging.getLogger("aiohttp").level == logging.WARNING
    finally:
        root.setLevel(previous)


def test_scenario_parse(scenario_file):
    """Test parse prints a summary of the scenario."""
    result = runner.invoke(app, ["scenario", "parse", str(scenario_file)])

    assert result.exit_code == 0
    assert "Create and fetch user" in result.stdout
    assert "POST /users" in result.stdout


def test_scenario_parse_json(scenario_file):
    """Test parse --json emits the scenario document."""
    result = runner.invoke(app, ["scenario", "parse", str(scenario_file), "--json"])

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["summary"]["total_steps"] == 2


def test_scenario_parse_validate_warns(tmp_path):
    """Test --validate reports placeholders nothing extracts."""
    path = tmp_path / "orphan.yaml"
    path.write_text("name: Orphan\nsteps:\n  - endpoint: /orders/{{orderId}}\n")

    result = runner.invoke(app, ["scenario", "parse", str(path), "--validate"])

    assert result.exit_code == 0
    assert "orderId" in result.stdout
    assert "Scenario is valid" in result.stdout


def test_scenario_parse_invalid(tmp_path):
    """Test malformed documents exit with an error."""
    path = tmp_path / "broken.yaml"
    path.write_text("name: Broken\nsteps: []\n")

    result = runner.invoke(app, ["scenario", "parse", str(path)])

    assert result.exit_code == 1
    assert "Error parsing scenario" in result.stdout


def test_scenario_list(scenario_file):
    """Test list shows steps in order with their extractions."""
    result = runner.invoke(app, ["scenario", "list", str(scenario_file)])

    assert result.exit_code == 0
    assert result.stdout.index("Create user") < result.stdout.index("Fetch user")
    assert "userId" in result.stdout


def test_scenario_run_passes(scenario_file, users_server, tmp_path):
    """Test run executes against a live server and writes results.json."""
    output_dir = tmp_path / "out"

    result = runner.invoke(app, [
        "scenario", "run", str(scenario_file),
        "--base-url", users_server,
        "--output", str(output_dir),
    ])

    assert result.exit_code == 0, result.stdout
    assert "PASSED" in result.stdout

    results_file, = output_dir.glob("*/results.json")
    data = json.loads(results_file.read_text(encoding="utf-8"))
    assert data["status"] == "PASSED"
    assert data["scenario"]["name"] == "Create and fetch user"
    assert [r["step_index"] for r in data["step_results"]] == [0, 1]
    assert data["step_results"][0]["extracted_values"] == {"userId": "u-1"}
    assert data["step_results"][1]["request"]["url"] == f"{users_server}/users/u-1"


def test_scenario_run_failure_exits_nonzero(tmp_path, users_server):
    """Test a failed run exits 1 and stops when asked to."""
    path = tmp_path / "missing.yaml"
    path.write_text(
        "name: Missing\n"
        "steps:\n"
        "  - endpoint: /nope\n"
        "    expect: {status: 200}\n"
        "  - endpoint: /users/u-1\n"
    )

    result = runner.invoke(app, [
        "scenario", "run", str(path),
        "--base-url", users_server,
        "--stop-on-failure",
        "--no-save",
    ])

    assert result.exit_code == 1
    assert "FAILED" in result.stdout
    assert "Executed: 1" in result.stdout


def test_scenario_run_env_values(tmp_path, users_server):
    """Test --env values resolve {{env.NAME}} placeholders."""
    path = tmp_path / "env.yaml"
    path.write_text(
        "name: Env\n"
        "steps:\n"
        "  - endpoint: /users/{{env.USER_ID}}\n"
        "    expect: {status: 200}\n"
    )

    result = runner.invoke(app, [
        "scenario", "run", str(path),
        "--base-url", users_server,
        "--env", "USER_ID=u-1",
        "--no-save",
    ])

    assert result.exit_code == 0, result.stdout


def test_scenario_run_base_url_from_env_file(tmp_path, scenario_file, users_server):
    """Test the base URL falls back to API_BASE_URL in .env."""
    (tmp_path / ".env").write_text(f"API_BASE_URL={users_server}\n")

    result = runner.invoke(app, ["scenario", "run", str(scenario_file), "--no-save"])

    assert result.exit_code == 0, result.stdout


def test_scenario_run_without_base_url(scenario_file):
    """Test run refuses to start without a base URL."""
    result = runner.invoke(app, ["scenario", "run", str(scenario_file)])

    assert result.exit_code == 1
    assert "No base URL" in result.stdout


def test_scenario_run_bad_env_pair(scenario_file):
    """Test malformed --env values are usage errors."""
    result = runner.invoke(app, [
        "scenario", "run", str(scenario_file),
        "--base-url", "http://127.0.0.1:1",
        "--env", "NOEQUALS",
    ])

    assert result.exit_code == 2


def test_package_transitions():
    """Test the transition table is printed."""
    result = runner.invoke(app, ["package", "transitions", "qa_eval_done"])

    assert result.exit_code == 0
    assert "QA_EVAL_DONE" in result.stdout
    assert "CANCELLED, COMPLETE" in result.stdout


def test_package_transitions_unknown_status():
    """Test an unknown status exits with an error."""
    result = runner.invoke(app, ["package", "transitions", "DONE"])

    assert result.exit_code == 1
    assert "Unknown status" in result.stdout


def test_config_init_and_show(tmp_path):
    """Test init writes a project config that show picks up."""
    result = runner.invoke(app, ["config", "init", "--base-url", "http://configured.test"])
    assert result.exit_code == 0
    assert (tmp_path / ".apiwave.yaml").exists()

    again = runner.invoke(app, ["config", "init"])
    assert again.exit_code == 1

    shown = runner.invoke(app, ["config", "show"])
    assert shown.exit_code == 0
    assert "http://configured.test" in shown.stdout
