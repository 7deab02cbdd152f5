"""Runtime configuration — env-driven via pydantic-settings.

Reads from a .env file and MODVAULT_* environment variables. Components
never read this module implicitly: the CLI (or any embedding front end)
builds one ``ModvaultConfig`` and hands it to ``ModManager``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ModvaultConfig(BaseSettings):
    """Settings for the resolver, installer, and profile projector.

    Examples
    --------
    Override via environment::

        export MODVAULT_REPOSITORY_PATH=/games/valheim/mods
        export MODVAULT_PLUGINS_PATH=/games/valheim/BepInEx/plugins
        export MODVAULT_MAX_CONCURRENT_INSTALLS=8
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="MODVAULT_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "INFO"

    # Storage paths
    db_path: Path = Path(".modvault/modvault.db")
    repository_path: Path = Path(".modvault/repository")
    plugins_path: Path = Path(".modvault/BepInEx/plugins")

    # Registry
    registry_url: str = "https://thunderstore.io/c/valheim/api/v1"
    registry_timeout_seconds: float = 30.0

    # Installer
    max_concurrent_installs: int = Field(default=5, ge=1)
    trusted_hosts: list[str] = Field(default_factory=lambda: ["thunderstore.io"])

    # Projection: "auto" probes symlink support once at startup
    link_strategy: Literal["auto", "symlink", "hardlink"] = "auto"

    db_lock_timeout_seconds: float = 10.0


# Import as `from modvault.config import config` in entry points only.
config = ModvaultConfig()
