"""``modvault install ID`` / ``modvault uninstall ID``.

Install resolves the dependency closure from the metadata cache, installs
the root first, then its dependencies (in parallel unless
``--sequential``). The command succeeds when the root is installed; failed
or unresolved dependencies are listed and reflected in the exit code only
with ``--strict``.
"""

from __future__ import annotations

import typer
from rich.table import Table

from modvault.cli import runtime
from modvault.core.errors import NotFoundError
from modvault.core.manager import ModManager
from modvault.models.install import BatchInstallResult


def render_batch(result: BatchInstallResult) -> None:
    """Print a per-id outcome table for an install batch."""
    console = runtime.console
    table = Table(title=f"Install: {result.root_id}")
    table.add_column("Package", style="cyan")
    table.add_column("Outcome")
    table.add_column("Detail", style="dim")

    for full_id in result.installed:
        table.add_row(full_id, "[green]installed[/green]", "")
    for full_id in result.skipped:
        table.add_row(full_id, "[blue]already installed[/blue]", "")
    for full_id, message in sorted(result.failed.items()):
        table.add_row(full_id, "[red]failed[/red]", message)
    for full_id in result.unresolved:
        table.add_row(full_id, "[yellow]unresolved[/yellow]", "no download locator cached")

    console.print(table)
    if not result.complete:
        console.print(
            "[bold yellow]Some dependencies are missing; the root package may not load.[/bold yellow]"
        )


def install_cmd(
    full_id: str = typer.Argument(..., help="Package id, e.g. Owner-Name-1.0.0."),
    locator: str = typer.Option(
        None,
        "--url",
        "-u",
        help="Download URL of the root package (defaults to the cached one).",
    ),
    sequential: bool = typer.Option(
        False,
        "--sequential",
        help="Install dependencies one at a time instead of in parallel.",
    ),
    strict: bool = typer.Option(
        False,
        "--strict",
        help="Exit with code 2 if any dependency failed or was unresolved.",
    ),
) -> None:
    """Install a package and its dependency closure."""

    async def _install(manager: ModManager) -> BatchInstallResult:
        if sequential or locator:
            root_locator = locator or manager.metadata.locator_of(full_id)
            if root_locator is None:
                raise NotFoundError(
                    f"No download locator cached for {full_id}; sync the registry first"
                )
            return await manager.resolve_and_install(full_id, root_locator)
        return await manager.install_with_parallel_dependencies(full_id)

    result = runtime.run_with_manager(_install)
    render_batch(result)
    if strict and not result.complete:
        raise typer.Exit(code=2)


def uninstall_cmd(
    full_id: str = typer.Argument(..., help="Installed package id."),
) -> None:
    """Remove an installed package, its projection and its profile entries."""
    runtime.run_with_manager(lambda manager: manager.uninstall(full_id))
    runtime.console.print(f"[bold green]Uninstalled[/bold green] {full_id}")
