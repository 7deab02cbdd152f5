"""modvault CLI — Typer-based command-line interface.

Provides the ``modvault`` command with subcommands for syncing the
registry, installing and uninstalling packages, checking for updates,
and managing profiles and their projection into the plugin directory.

All output uses Rich for formatted terminal display.
"""
