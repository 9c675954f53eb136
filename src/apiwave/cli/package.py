"""Package CLI commands."""

from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from apiwave.core.package.models import PackageStatus
from apiwave.core.package.transitions import allowed_targets, is_terminal

console = Console()
app = typer.Typer(no_args_is_help=True)


@app.command("transitions")
def show_transitions(
    status: Optional[str] = typer.Argument(
        None, help="Show only transitions out of this status"
    ),
):
    """Show the package status transition table."""
    if status is None:
        statuses = list(PackageStatus)
    else:
        try:
            statuses = [PackageStatus(status.upper())]
        except ValueError:
            valid = ", ".join(s.value for s in PackageStatus)
            console.print(f"[red]Unknown status:[/red] {status} (expected one of {valid})")
            raise typer.Exit(1)

    table = Table(title="Package status transitions")
    table.add_column("From", style="bold")
    table.add_column("Allowed targets")

    for current in statuses:
        if is_terminal(current):
            targets = "[dim](terminal)[/dim]"
        else:
            targets = ", ".join(sorted(t.value for t in allowed_targets(current)))
        table.add_row(current.value, targets)

    console.print(table)
