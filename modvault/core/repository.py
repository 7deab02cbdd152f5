"""On-disk repository of installed packages, one directory per full_id.

Storage layout: {root}/{full_id}/... (extracted archive + manifest.json)

Existence of the directory *is* the installed state; no database row is
consulted. A pre-existing directory short-circuits installation and is
not re-verified.

Archives are validated entry by entry before any byte is written, then
extracted into a sibling staging directory and moved into place with a
single rename. A failed extraction therefore never leaves a half-written
install directory behind.
"""

from __future__ import annotations

import io
import json
import logging
import os
import shutil
import uuid
import zipfile
from pathlib import Path, PurePosixPath

from pydantic import ValidationError as PydanticValidationError

from modvault.core.errors import (
    ExtractionError,
    NotFoundError,
    PathTraversalError,
    StorageError,
    ValidationError,
)
from modvault.core.identifiers import split_full_id, validate_full_id
from modvault.models.packages import InstalledPackage, PackageManifest

logger = logging.getLogger(__name__)

MANIFEST_NAME = "manifest.json"
_STAGING_PREFIX = ".staging-"


class RepositoryStore:
    """Directory-per-package store with path-safety guarantees.

    Parameters
    ----------
    root:
        Repository root directory. Created if missing.
    """

    def __init__(self, root: Path) -> None:
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        return self._root

    # ------------------------------------------------------------------
    # Paths and existence
    # ------------------------------------------------------------------

    def install_dir_for(self, full_id: str) -> Path:
        """Return the install directory of *full_id* after validating it."""
        validate_full_id(full_id)
        path = self._root / full_id
        # The validated id must still land directly under root.
        if path.resolve().parent != self._root.resolve():
            raise PathTraversalError(f"Package id escapes the repository: {full_id!r}")
        return path

    def exists(self, full_id: str) -> bool:
        """Return ``True`` if *full_id* is installed."""
        return self.install_dir_for(full_id).is_dir()

    # ------------------------------------------------------------------
    # Materialize
    # ------------------------------------------------------------------

    def materialize(self, full_id: str, archive_bytes: bytes) -> bool:
        """Extract a zip payload into the install directory of *full_id*.

        Returns ``True`` if the package was extracted, ``False`` if the
        directory already existed (before or, in a concurrent race, during
        extraction) and the payload was discarded.

        Raises
        ------
        PathTraversalError
            If any archive entry would resolve outside the install
            directory. Nothing is written in that case.
        ExtractionError
            If the payload is not a readable zip archive or writing fails.
        """
        target = self.install_dir_for(full_id)
        if target.is_dir():
            logger.debug("%s already installed; skipping extraction.", full_id)
            return False

        try:
            archive = zipfile.ZipFile(io.BytesIO(archive_bytes))
        except (zipfile.BadZipFile, zipfile.LargeZipFile) as exc:
            raise ExtractionError(f"Payload for {full_id} is not a zip archive: {exc}") from exc

        staging = self._root / f"{_STAGING_PREFIX}{uuid.uuid4().hex[:12]}"
        with archive:
            members = self._validated_members(full_id, archive, staging)
            try:
                staging.mkdir(parents=True)
                for info, dest in members:
                    if info.is_dir():
                        dest.mkdir(parents=True, exist_ok=True)
                        continue
                    dest.parent.mkdir(parents=True, exist_ok=True)
                    with archive.open(info) as src, dest.open("wb") as out:
                        shutil.copyfileobj(src, out)
            except (OSError, zipfile.BadZipFile, RuntimeError) as exc:
                shutil.rmtree(staging, ignore_errors=True)
                raise ExtractionError(f"Failed to extract {full_id}: {exc}") from exc

        try:
            os.replace(staging, target)
        except OSError as exc:
            shutil.rmtree(staging, ignore_errors=True)
            if target.is_dir():
                logger.debug("%s appeared during extraction; discarding staged copy.", full_id)
                return False
            raise ExtractionError(f"Failed to move {full_id} into place: {exc}") from exc

        logger.info("Extracted %s (%d entries) into %s", full_id, len(members), target)
        return True

    @staticmethod
    def _validated_members(
        full_id: str, archive: zipfile.ZipFile, base: Path
    ) -> list[tuple[zipfile.ZipInfo, Path]]:
        """Map every archive entry to its destination under *base*.

        Any entry that is absolute, carries a drive, or resolves outside
        *base* aborts the whole extraction before a file is written.
        """
        resolved_base = base.resolve()
        members: list[tuple[zipfile.ZipInfo, Path]] = []
        for info in archive.infolist():
            name = info.filename.replace("\\", "/")
            pure = PurePosixPath(name)
            if pure.is_absolute() or ".." in pure.parts or (pure.parts and ":" in pure.parts[0]):
                raise PathTraversalError(
                    f"Archive for {full_id} contains unsafe entry {info.filename!r}"
                )
            parts = [p for p in pure.parts if p not in ("", ".")]
            if not parts:
                continue
            dest = base.joinpath(*parts)
            resolved = dest.resolve()
            if resolved == resolved_base or not resolved.is_relative_to(resolved_base):
                raise PathTraversalError(
                    f"Archive entry {info.filename!r} escapes the install directory of {full_id}"
                )
            members.append((info, dest))
        return members

    # ------------------------------------------------------------------
    # Remove
    # ------------------------------------------------------------------

    def remove(self, full_id: str) -> None:
        """Delete the install directory of *full_id*.

        Raises
        ------
        NotFoundError
            If the package is not installed.
        StorageError
            If the directory cannot be removed.
        """
        target = self.install_dir_for(full_id)
        if not target.is_dir():
            raise NotFoundError(f"Package not installed: {full_id}")
        try:
            shutil.rmtree(target)
        except OSError as exc:
            raise StorageError(f"Failed to remove {full_id}: {exc}") from exc
        logger.info("Removed %s from repository.", full_id)

    # ------------------------------------------------------------------
    # Manifests and scanning
    # ------------------------------------------------------------------

    def read_manifest(self, full_id: str) -> PackageManifest | None:
        """Parse ``manifest.json`` of an installed package.

        Returns ``None`` if the package has no manifest or it is malformed
        (a malformed manifest is logged, not fatal: the payload is still
        installed).
        """
        path = self.install_dir_for(full_id) / MANIFEST_NAME
        if not path.is_file():
            return None
        try:
            # utf-8-sig: manifests authored on Windows often carry a BOM
            raw = json.loads(path.read_text(encoding="utf-8-sig"))
            return PackageManifest.model_validate(raw)
        except (OSError, ValueError, PydanticValidationError) as exc:
            logger.warning("Ignoring malformed manifest of %s: %s", full_id, exc)
            return None

    def list_installed(self) -> list[str]:
        """Return sorted full_ids of every installed package; symlinked entries are ignored."""
        if not self._root.is_dir():
            return []
        return sorted(
            p.name
            for p in self._root.iterdir()
            if p.is_dir() and not p.is_symlink() and not p.name.startswith(_STAGING_PREFIX)
        )

    def scan(self) -> list[InstalledPackage]:
        """Walk the repository and describe every installed package.

        Blocking; async callers should offload with ``asyncio.to_thread``.
        """
        result: list[InstalledPackage] = []
        for full_id in self.list_installed():
            try:
                manifest = self.read_manifest(full_id)
            except ValidationError:
                logger.warning("Skipping repository entry with unsafe name %r", full_id)
                continue
            package_name, version = split_full_id(full_id)
            result.append(
                InstalledPackage(
                    full_id=full_id,
                    package_name=package_name,
                    version=manifest.version_number if manifest else version,
                    manifest=manifest,
                )
            )
        return result
