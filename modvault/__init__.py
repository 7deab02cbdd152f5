"""modvault: dependency-resolving mod installer with profile projection.

v0.3.0:
  - Cycle-safe dependency resolution over a local SQLite metadata cache
  - Trusted-host, checksum-verified, path-safe package installs
  - Bounded-concurrency dependency installs with per-id batch results
  - Profiles projected into the plugin directory via symlinks or
    hard-link mirrors
  - Registry sync, repository scans and update detection
"""

__version__ = "0.3.0"
__description__ = "Dependency-resolving mod installer with profile projection"

from modvault.core.manager import ModManager
from modvault.cli.app import app as cli

__all__ = ["ModManager", "cli", "__version__"]
