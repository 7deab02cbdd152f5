"""Shared plumbing for CLI commands: settings, manager lifecycle, errors."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from typing import Any

import typer
from rich.console import Console
from rich.logging import RichHandler

from modvault.config import ModvaultConfig
from modvault.core.errors import ModvaultError
from modvault.core.manager import ModManager

console = Console()


def configure_logging(level: str) -> None:
    """Route library logging through rich at *level*."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def build_manager() -> ModManager:
    """Build a manager from a fresh settings object (env read at call time)."""
    return ModManager.from_config(ModvaultConfig())


def run_with_manager(operation: Callable[[ModManager], Any]) -> Any:
    """Run *operation* against a managed ``ModManager``.

    *operation* may be sync or async. ``ModvaultError`` is printed and
    turned into exit code 1.
    """

    async def _main() -> Any:
        async with build_manager() as manager:
            result = operation(manager)
            if inspect.isawaitable(result):
                result = await result
            return result

    try:
        return asyncio.run(_main())
    except ModvaultError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(code=1) from exc
