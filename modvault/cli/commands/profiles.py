"""``modvault profiles ...`` — create, switch and edit profiles."""

from __future__ import annotations

import typer
from rich.table import Table

from modvault.cli import runtime

profiles_app = typer.Typer(no_args_is_help=True, add_completion=False)


@profiles_app.command(name="list", help="List profiles.")
def list_cmd() -> None:
    profiles = runtime.run_with_manager(lambda manager: manager.profiles.list_profiles())
    if not profiles:
        runtime.console.print("[dim]No profiles yet. Create one with: modvault profiles create NAME[/dim]")
        return

    table = Table(title="Profiles")
    table.add_column("Id", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Active", justify="center")
    table.add_column("Enabled", justify="right")
    table.add_column("Packages", justify="right")
    for profile in profiles:
        active = "[green]*[/green]" if profile.active else ""
        table.add_row(
            profile.id,
            profile.name,
            active,
            str(len(profile.enabled_ids)),
            str(len(profile.entries)),
        )
    runtime.console.print(table)


@profiles_app.command(name="create", help="Create an empty profile.")
def create_cmd(
    name: str = typer.Argument(..., help="Profile name."),
    description: str = typer.Option("", "--description", "-d", help="Free-form description."),
) -> None:
    profile = runtime.run_with_manager(
        lambda manager: manager.profiles.create_profile(name, description=description)
    )
    runtime.console.print(f"[bold green]Created profile[/bold green] {profile.name} ({profile.id})")


@profiles_app.command(name="switch", help="Activate a profile and re-project its packages.")
def switch_cmd(
    profile_id: str = typer.Argument(..., help="Profile id."),
) -> None:
    profile = runtime.run_with_manager(lambda manager: manager.switch_profile(profile_id))
    runtime.console.print(
        f"[bold green]Switched to[/bold green] {profile.name} "
        f"({len(profile.enabled_ids)} enabled package(s))"
    )


@profiles_app.command(name="enable", help="Enable a package in a profile.")
def enable_cmd(
    profile_id: str = typer.Argument(..., help="Profile id."),
    full_id: str = typer.Argument(..., help="Installed package id."),
) -> None:
    runtime.run_with_manager(lambda manager: manager.set_profile_entry(profile_id, full_id, True))
    runtime.console.print(f"[green]Enabled[/green] {full_id} in {profile_id}")


@profiles_app.command(name="disable", help="Disable a package in a profile.")
def disable_cmd(
    profile_id: str = typer.Argument(..., help="Profile id."),
    full_id: str = typer.Argument(..., help="Package id."),
) -> None:
    runtime.run_with_manager(lambda manager: manager.set_profile_entry(profile_id, full_id, False))
    runtime.console.print(f"[yellow]Disabled[/yellow] {full_id} in {profile_id}")


@profiles_app.command(name="delete", help="Delete a profile (installed packages are kept).")
def delete_cmd(
    profile_id: str = typer.Argument(..., help="Profile id."),
) -> None:
    runtime.run_with_manager(lambda manager: manager.delete_profile(profile_id))
    runtime.console.print(f"[bold green]Deleted profile[/bold green] {profile_id}")
