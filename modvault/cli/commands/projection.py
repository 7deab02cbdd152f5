"""``modvault activate ID`` / ``modvault deactivate ID``."""

from __future__ import annotations

import typer

from modvault.cli import runtime


def activate_cmd(
    full_id: str = typer.Argument(..., help="Installed package id."),
) -> None:
    """Project a package into the plugin directory and enable it."""
    created = runtime.run_with_manager(lambda manager: manager.activate_profile_entry(full_id))
    if created:
        runtime.console.print(f"[bold green]Activated[/bold green] {full_id}")
    else:
        runtime.console.print(f"[yellow]{full_id} was already active.[/yellow]")


def deactivate_cmd(
    full_id: str = typer.Argument(..., help="Package id to remove from the plugin directory."),
) -> None:
    """Remove a package's projection and disable it in the active profile."""
    removed = runtime.run_with_manager(lambda manager: manager.deactivate_profile_entry(full_id))
    if removed:
        runtime.console.print(f"[bold green]Deactivated[/bold green] {full_id}")
    else:
        runtime.console.print(f"[yellow]{full_id} was not active.[/yellow]")
