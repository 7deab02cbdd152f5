"""Main Typer application — imports and registers all CLI commands.

Entry point: ``modvault`` (configured via pyproject.toml scripts).

v0.3.0 commands: sync, scan, install, uninstall, updates, update,
activate, deactivate, profiles.
"""

from __future__ import annotations

import typer

from modvault.cli.commands.install import install_cmd, uninstall_cmd
from modvault.cli.commands.profiles import profiles_app
from modvault.cli.commands.projection import activate_cmd, deactivate_cmd
from modvault.cli.commands.registry import scan_cmd, sync_cmd
from modvault.cli.commands.updates import update_cmd, updates_cmd
from modvault.cli.runtime import configure_logging
from modvault.config import config

app = typer.Typer(
    name="modvault",
    help="modvault: dependency-resolving mod installer with profile projection.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        config.log_level,
        "--log-level",
        help="Logging level (DEBUG, INFO, WARNING, ERROR).",
    ),
) -> None:
    """Configure logging before any subcommand runs."""
    configure_logging(log_level)


# Register subcommands
app.command(name="sync", help="Fetch the registry listing into the local cache.")(sync_cmd)
app.command(name="scan", help="Record manifests of packages already on disk.")(scan_cmd)
app.command(name="install", help="Install a package and its dependencies.")(install_cmd)
app.command(name="uninstall", help="Remove an installed package.")(uninstall_cmd)
app.command(name="updates", help="List installed packages with newer versions.")(updates_cmd)
app.command(name="update", help="Update an installed package to its newest version.")(update_cmd)
app.command(name="activate", help="Project a package into the plugin directory.")(activate_cmd)
app.command(name="deactivate", help="Remove a package from the plugin directory.")(deactivate_cmd)
app.add_typer(profiles_app, name="profiles", help="Manage profiles.")


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
