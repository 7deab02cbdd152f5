"""``modvault updates`` / ``modvault update ID``.

Update detection compares the version suffix of installed ids with the
newest cached version of the same package. It is best effort for ids
whose version cannot be recovered from the name.
"""

from __future__ import annotations

import typer
from rich.table import Table

from modvault.cli import runtime
from modvault.cli.commands.install import render_batch


def updates_cmd() -> None:
    """List installed packages that have a newer cached version."""
    candidates = runtime.run_with_manager(lambda manager: manager.list_available_updates())
    if not candidates:
        runtime.console.print("[green]Everything is up to date.[/green]")
        return

    table = Table(title="Available updates")
    table.add_column("Package", style="cyan")
    table.add_column("Installed")
    table.add_column("Latest", style="green")
    for candidate in candidates:
        table.add_row(candidate.id, candidate.current_version, candidate.latest_version)
    runtime.console.print(table)


def update_cmd(
    full_id: str = typer.Argument(..., help="Installed package id to update."),
) -> None:
    """Install the newest version and retire the installed one."""
    result = runtime.run_with_manager(lambda manager: manager.update_package(full_id))
    render_batch(result)
    runtime.console.print(f"[bold green]Updated[/bold green] {full_id} -> {result.root_id}")
