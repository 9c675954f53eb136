"""Configuration CLI commands."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.syntax import Syntax

from apiwave.config.loader import CONFIG_FILENAMES, ConfigError, load_config, save_config
from apiwave.config.schema import ApiwaveConfig

console = Console()
app = typer.Typer(no_args_is_help=True)


def load_cli_config(ctx: typer.Context) -> ApiwaveConfig:
    """Load configuration honouring the global --config option."""
    config_file: Optional[Path] = None
    if ctx.obj:
        config_file = ctx.obj.get("config_file")

    try:
        return load_config(config_file)
    except ConfigError as e:
        console.print(f"[red]Error loading config:[/red] {e}")
        raise typer.Exit(1)


@app.command("show")
def show_config(ctx: typer.Context):
    """Show the effective configuration."""
    config = load_cli_config(ctx)
    text = yaml.dump(config.model_dump(), default_flow_style=False, allow_unicode=True, sort_keys=False)
    console.print(Syntax(text, "yaml"))


@app.command("init")
def init_config(
    base_url: Optional[str] = typer.Option(
        None, "--base-url", "-b", help="Target API base URL"
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing config file"
    ),
):
    """Create a project config file in the current directory."""
    path = Path.cwd() / CONFIG_FILENAMES[0]
    if path.exists() and not force:
        console.print(f"[yellow]Config already exists:[/yellow] {path}")
        raise typer.Exit(1)

    config = ApiwaveConfig.get_default()
    if base_url:
        config.execution.base_url = base_url

    save_config(config, path)
    console.print(f"[green]✓ Created[/green] {path}")
