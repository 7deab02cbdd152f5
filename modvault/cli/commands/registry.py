"""``modvault sync`` and ``modvault scan`` — populate the metadata cache."""

from __future__ import annotations

import typer
from rich.table import Table

from modvault.cli import runtime


def sync_cmd(
    show: int = typer.Option(
        0,
        "--show",
        "-n",
        help="Print the first N ingested packages.",
    ),
) -> None:
    """Fetch the registry listing and ingest it in one transaction."""
    summaries = runtime.run_with_manager(lambda manager: manager.sync_registry())
    runtime.console.print(
        f"[bold green]Synced[/bold green] {len(summaries)} package(s) from the registry."
    )
    if show > 0 and summaries:
        table = Table(title="Registry packages")
        table.add_column("Package", style="cyan")
        table.add_column("Latest", style="green")
        table.add_column("Author")
        table.add_column("Downloads", justify="right")
        table.add_column("Installed", justify="center")
        for summary in summaries[:show]:
            installed = "[green]Yes[/green]" if summary.installed else "[dim]No[/dim]"
            table.add_row(
                summary.id, summary.version, summary.author, str(summary.downloads), installed
            )
        runtime.console.print(table)


def scan_cmd() -> None:
    """Walk the repository and record manifests of installed packages."""
    packages = runtime.run_with_manager(lambda manager: manager.scan_repository())
    if not packages:
        runtime.console.print("[dim]No packages installed.[/dim]")
        return

    table = Table(title="Installed packages")
    table.add_column("Package", style="cyan")
    table.add_column("Version", style="green")
    table.add_column("Dependencies", justify="right")
    for package in packages:
        deps = len(package.manifest.dependencies) if package.manifest else 0
        table.add_row(package.full_id, package.version or "?", str(deps))
    runtime.console.print(table)
