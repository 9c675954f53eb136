"""apiwave command line: parse, run and inspect API test scenarios."""

from __future__ import annotations

import logging
import platform
from pathlib import Path
from typing import Optional

import aiohttp
import typer
from rich.console import Console
from rich.logging import RichHandler

from apiwave import __version__
from apiwave.cli import config, package, scenario

logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
    handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
)

console = Console()

app = typer.Typer(
    name="apiwave",
    help="Run HTTP test scenarios against a live API and report a verdict per run.",
    add_completion=True,
    no_args_is_help=True,
)

app.add_typer(
    scenario.app,
    name="scenario",
    help="Parse, validate and execute scenario files",
)
app.add_typer(
    package.app,
    name="package",
    help="Inspect the package status lifecycle",
)
app.add_typer(
    config.app,
    name="config",
    help="Show or initialize .apiwave.yaml",
)


def version_callback(value: bool):
    if value:
        console.print(
            f"apiwave {__version__} "
            f"(aiohttp {aiohttp.__version__}, Python {platform.python_version()})"
        )
        raise typer.Exit()


def set_log_level(verbose: bool, quiet: bool) -> int:
    """Apply the requested verbosity and return the root log level."""
    if verbose and quiet:
        raise typer.BadParameter("--verbose and --quiet cannot be combined")

    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO
    logging.getLogger().setLevel(level)
    # aiohttp internals stay at WARNING unless --verbose
    logging.getLogger("aiohttp").setLevel(logging.DEBUG if verbose else logging.WARNING)
    return level


@app.callback()
def main(
    ctx: typer.Context,
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Config file to use instead of .apiwave.yaml discovery",
        exists=True,
        dir_okay=False,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging, including each step request",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Only log warnings and errors",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
):
    """apiwave - run API test scenarios against a live service."""
    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config_file
    ctx.obj["verbose"] = verbose
    ctx.obj["log_level"] = set_log_level(verbose, quiet)


if __name__ == "__main__":
    app()
