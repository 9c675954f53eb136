"""Scenario CLI commands."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from apiwave.cli.config import load_cli_config
from apiwave.core.errors import ApiwaveError
from apiwave.core.execution.models import StepOutcome, TestRunStatus
from apiwave.core.scenario.models import TestScenario
from apiwave.core.scenario.parser import ScenarioParser

console = Console()
app = typer.Typer(no_args_is_help=True)

_OUTCOME_STYLES = {
    StepOutcome.PASSED: ("✓", "green"),
    StepOutcome.FAILED: ("✗", "red"),
    StepOutcome.ERROR: ("!", "red"),
}


def _parse_or_exit(parser: ScenarioParser, file: Path) -> TestScenario:
    try:
        return parser.parse(file)
    except ApiwaveError as e:
        console.print(f"[red]Error parsing scenario:[/red] {e}")
        raise typer.Exit(1)


@app.command("parse")
def parse_scenario(
    file: Path = typer.Argument(..., help="Path to scenario YAML file", exists=True),
    validate: bool = typer.Option(
        False, "--validate", help="Validate scenario data flow"
    ),
    output_json: bool = typer.Option(
        False, "--json", "-j", help="Output as JSON"
    ),
):
    """Parse and display scenario structure."""
    parser = ScenarioParser()
    scenario = _parse_or_exit(parser, file)

    if validate:
        is_valid, errors, warnings = parser.validate(scenario)

        if errors:
            console.print("[red]Validation Errors:[/red]")
            for error in errors:
                console.print(f"  [red]✗[/red] {error}")

        if warnings:
            console.print("[yellow]Warnings:[/yellow]")
            for warning in warnings:
                console.print(f"  [yellow]![/yellow] {warning}")

        if is_valid:
            console.print("[green]✓ Scenario is valid[/green]")
        else:
            raise typer.Exit(1)

    if output_json:
        console.print_json(json.dumps(scenario.to_dict(), ensure_ascii=False))
    else:
        _print_scenario_summary(scenario)


@app.command("list")
def list_steps(
    file: Path = typer.Argument(..., help="Path to scenario YAML file", exists=True),
):
    """List all steps in scenario."""
    scenario = _parse_or_exit(ScenarioParser(), file)
    _print_step_list(scenario)


def _print_scenario_summary(scenario: TestScenario) -> None:
    console.print()
    console.print(Panel(
        f"[bold]{scenario.name}[/bold]\n"
        f"ID: {scenario.id}"
        + (f"\n{scenario.description}" if scenario.description else ""),
        title="Scenario",
        border_style="blue",
    ))

    if scenario.tags:
        console.print(f"\n[bold]Tags:[/bold] {', '.join(sorted(scenario.tags))}")

    console.print("\n[bold]Operations:[/bold]")
    for operation in sorted(scenario.covered_operations):
        console.print(f"  • {operation}")

    console.print()
    table = Table(show_header=False, box=None)
    table.add_column("Label", style="dim")
    table.add_column("Value")
    table.add_row("Steps", str(scenario.step_count))
    table.add_row("Extractions", str(sum(len(s.extractions) for s in scenario.steps)))
    console.print(table)


def _print_step_list(scenario: TestScenario) -> None:
    console.print()
    console.print(f"[bold]{scenario.name}[/bold]")
    console.print("━" * 50)

    for step in scenario.ordered_steps:
        console.print(f"  [{step.index}] {step.name} [dim]({step.operation})[/dim]")
        for name, path in step.extractions.items():
            console.print(f"      [dim]→ {name} = {path}[/dim]")

    console.print()
    console.print(f"[dim]Total: {scenario.step_count} steps[/dim]")


def _parse_env_pairs(pairs: Optional[List[str]]) -> dict[str, str]:
    environment = {}
    for pair in pairs or []:
        name, sep, value = pair.partition("=")
        if not sep or not name:
            raise typer.BadParameter(f"Expected NAME=VALUE, got '{pair}'", param_hint="--env")
        environment[name] = value
    return environment


@app.command("run")
def run_scenario_cmd(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="Path to scenario YAML file", exists=True),
    base_url: Optional[str] = typer.Option(
        None, "--base-url", "-b", help="Target API base URL"
    ),
    stop_on_failure: Optional[bool] = typer.Option(
        None, "--stop-on-failure/--continue-on-failure", "-e",
        help="Stop at the first failed or errored step",
    ),
    env: Optional[List[str]] = typer.Option(
        None, "--env", "-E", help="Environment value NAME=VALUE (repeatable)"
    ),
    output_dir: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Output directory for results.json"
    ),
    no_save: bool = typer.Option(
        False, "--no-save", help="Do not write results.json"
    ),
):
    """Run all steps in scenario."""
    from apiwave.core.execution.runner import run_scenario
    from apiwave.persistence.results import create_output_dir, save_run_results
    from apiwave.transport.http import AiohttpTransport

    config = load_cli_config(ctx)
    environment = {**config.environment, **_parse_env_pairs(env)}

    base_url = base_url or config.execution.base_url
    if not base_url:
        console.print(
            "[red]No base URL.[/red] Pass --base-url, set execution.base_url "
            f"or {config.execution.env_var} in {config.execution.env_file}"
        )
        raise typer.Exit(1)

    if stop_on_failure is None:
        stop_on_failure = config.execution.stop_on_first_failure

    parser = ScenarioParser(default_timeout_ms=config.execution.default_timeout_ms)
    scenario = _parse_or_exit(parser, file)

    console.print(f"\n[bold blue]Running scenario:[/bold blue] {scenario.name} → {base_url}")

    async def execute():
        async with AiohttpTransport(
            user_agent=config.http.user_agent,
            verify_ssl=config.http.verify_ssl,
            max_connections=config.http.max_connections,
        ) as transport:
            return await run_scenario(
                scenario,
                base_url,
                stop_on_first_failure=stop_on_failure,
                environment=environment,
                transport=transport,
            )

    try:
        run, results = asyncio.run(execute())
    except ApiwaveError as e:
        console.print(f"[red]Error running scenario:[/red] {e}")
        raise typer.Exit(1)

    for result in results:
        icon, color = _OUTCOME_STYLES[result.outcome]
        status = result.actual_status if result.actual_status is not None else "-"
        console.print(f"  [{color}]{icon}[/{color}] [{result.step_index}] {escape(result.step_name)} [dim]({status}, {result.duration_ms}ms)[/dim]")
        if result.error_message:
            console.print(f"      [red]{escape(result.error_message)}[/red]")
        for assertion in result.assertions:
            if not assertion.passed:
                console.print(f"      [red]{escape(assertion.message or '')}[/red]")

    console.print()
    console.print("━" * 50)

    passed = run.status == TestRunStatus.PASSED
    status_color = "green" if passed else "red"
    status_icon = "✓" if passed else "✗"
    console.print(f"[{status_color}]{status_icon} {run.status.value}[/{status_color}]")
    console.print(f"  Total: {scenario.step_count} steps")
    console.print(f"  Executed: {run.executed_steps}")
    console.print(f"  Passed: [green]{run.passed_steps}[/green]")
    if run.failed_steps > 0:
        console.print(f"  Failed: [red]{run.failed_steps}[/red]")
    if run.duration_ms is not None:
        console.print(f"  Duration: {run.duration_ms / 1000:.1f}s")

    if not no_save and config.output.save_results:
        base_dir = output_dir or Path(config.output.directory)
        results_path = save_run_results(run, create_output_dir(base_dir, run.id, scenario.name), scenario)
        console.print(f"  Output: {results_path}")

    if not passed:
        raise typer.Exit(1)
