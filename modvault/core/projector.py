"""Profile projection — exposing installed packages in the plugin directory.

Two strategies implement the same ``Projector`` protocol:

  SYMLINK   — one directory link per package. Works across filesystems
              but needs symlink privileges on Windows.
  HARDLINK  — a mirrored directory tree whose files are hard links to the
              installed files; same filesystem required, no privileges.

The strategy is chosen once at startup by :func:`select_projector`.
Activation never overwrites an existing target. Deactivation removes
exactly what activation created.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Protocol, runtime_checkable

from modvault.core.errors import NotInstalledError, StorageError

logger = logging.getLogger(__name__)


@runtime_checkable
class Projector(Protocol):
    """Capability interface shared by every projection strategy."""

    @property
    def strategy(self) -> str:
        """Short name of the strategy (``"symlink"`` or ``"hardlink"``)."""
        ...

    def activate(self, installed_dir: Path, target_dir: Path) -> bool:
        """Expose *installed_dir* at *target_dir*.

        Returns ``False`` if *target_dir* already existed (no-op).

        Raises
        ------
        NotInstalledError
            If *installed_dir* is not a directory.
        StorageError
            If the projection cannot be created.
        """
        ...

    def deactivate(self, target_dir: Path) -> bool:
        """Remove the projection at *target_dir*.

        Returns ``False`` if nothing was there.
        """
        ...


def _check_source(installed_dir: Path) -> None:
    if not installed_dir.is_dir():
        raise NotInstalledError(f"Package directory does not exist: {installed_dir}")


def _remove_projection(target_dir: Path) -> bool:
    # is_symlink first: exists() follows the link and is False when dangling.
    if target_dir.is_symlink():
        try:
            target_dir.unlink()
        except OSError as exc:
            raise StorageError(f"Failed to remove link {target_dir}: {exc}") from exc
        return True
    if not target_dir.exists():
        return False
    try:
        if target_dir.is_dir():
            shutil.rmtree(target_dir)
        else:
            target_dir.unlink()
    except OSError as exc:
        raise StorageError(f"Failed to remove projection {target_dir}: {exc}") from exc
    return True


class SymlinkProjector:
    """Projects a package as a single directory symlink."""

    @property
    def strategy(self) -> str:
        return "symlink"

    def activate(self, installed_dir: Path, target_dir: Path) -> bool:
        _check_source(installed_dir)
        if target_dir.exists() or target_dir.is_symlink():
            logger.debug("%s already projected; leaving it untouched.", target_dir)
            return False
        try:
            target_dir.parent.mkdir(parents=True, exist_ok=True)
            os.symlink(installed_dir.resolve(), target_dir, target_is_directory=True)
        except OSError as exc:
            raise StorageError(f"Failed to link {target_dir} -> {installed_dir}: {exc}") from exc
        logger.info("Linked %s -> %s", target_dir, installed_dir)
        return True

    def deactivate(self, target_dir: Path) -> bool:
        removed = _remove_projection(target_dir)
        if removed:
            logger.info("Removed projection %s", target_dir)
        return removed


class HardlinkMirrorProjector:
    """Projects a package as a tree of hard-linked files.

    Directories are recreated, files are linked. A failure part-way
    through removes the partial mirror before raising.
    """

    @property
    def strategy(self) -> str:
        return "hardlink"

    def activate(self, installed_dir: Path, target_dir: Path) -> bool:
        _check_source(installed_dir)
        if target_dir.exists() or target_dir.is_symlink():
            logger.debug("%s already projected; leaving it untouched.", target_dir)
            return False

        linked = 0
        try:
            target_dir.mkdir(parents=True)
            for dirpath, dirnames, filenames in os.walk(installed_dir, followlinks=True):
                rel = Path(dirpath).relative_to(installed_dir)
                for name in dirnames:
                    (target_dir / rel / name).mkdir(exist_ok=True)
                for name in filenames:
                    os.link(Path(dirpath) / name, target_dir / rel / name)
                    linked += 1
        except OSError as exc:
            shutil.rmtree(target_dir, ignore_errors=True)
            raise StorageError(f"Failed to mirror {installed_dir} into {target_dir}: {exc}") from exc

        logger.info("Mirrored %s into %s (%d file(s) hard-linked).", installed_dir, target_dir, linked)
        return True

    def deactivate(self, target_dir: Path) -> bool:
        removed = _remove_projection(target_dir)
        if removed:
            logger.info("Removed mirrored projection %s", target_dir)
        return removed


def symlinks_supported() -> bool:
    """Probe whether this process can create directory symlinks."""
    with tempfile.TemporaryDirectory(prefix="modvault-probe-") as tmp:
        src = Path(tmp) / "src"
        src.mkdir()
        try:
            os.symlink(src, Path(tmp) / "link", target_is_directory=True)
        except (OSError, NotImplementedError):
            return False
    return True


def select_projector(strategy: str = "auto") -> Projector:
    """Return the projector for *strategy*.

    ``"auto"`` probes symlink support once and falls back to the
    hard-link mirror.
    """
    if strategy == "symlink":
        return SymlinkProjector()
    if strategy == "hardlink":
        return HardlinkMirrorProjector()
    if strategy != "auto":
        raise ValueError(f"Unknown link strategy: {strategy!r}")
    if symlinks_supported():
        return SymlinkProjector()
    logger.info("Symbolic links unavailable; using hard-link mirror projection.")
    return HardlinkMirrorProjector()
