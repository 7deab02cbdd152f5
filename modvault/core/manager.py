"""ModManager — the facade front ends talk to.

Wires the metadata cache, resolver, repository, installer, profile store
and projector around one shared ``Database`` handle, and exposes the
operations a front end needs: install (sequential or with parallel
dependencies), uninstall, projection of profile entries, update
detection, registry sync and repository scans.

Install operations return a ``BatchInstallResult``. The root package must
install or the call raises; dependency failures and unresolved
dependencies are reported in the result instead.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from pathlib import Path

import httpx
from packaging.version import Version

from modvault.config import ModvaultConfig
from modvault.core.database import Database
from modvault.core.errors import (
    NotFoundError,
    NotInstalledError,
    ValidationError,
)
from modvault.core.identifiers import parse_version, split_full_id, validate_full_id
from modvault.core.installer import InstallerPipeline
from modvault.core.metadata_store import MetadataStore
from modvault.core.profile_store import ProfileStore
from modvault.core.projector import Projector, select_projector
from modvault.core.repository import RepositoryStore
from modvault.core.resolver import DependencyResolver
from modvault.models.install import BatchInstallResult, InstallOutcome, InstallPlan
from modvault.models.packages import (
    InstalledPackage,
    PackageListing,
    PackageSummary,
    UpdateCandidate,
)
from modvault.models.profiles import Profile, ProfileEntry
from modvault.registry.client import RegistryClient

logger = logging.getLogger(__name__)


class ModManager:
    """Coordinates every modvault component.

    Parameters
    ----------
    db:
        Shared database handle for metadata and profiles.
    repository:
        Installed-package store.
    plugins_path:
        Directory the active profile is projected into.
    projector:
        Projection strategy, chosen once (see ``select_projector``).
    trusted_hosts:
        Download host allow-list.
    max_concurrent_installs:
        Ceiling for parallel dependency installs.
    client:
        Optional ``httpx.AsyncClient`` for downloads.
    registry:
        Optional registry client; required only for :meth:`sync_registry`.
    """

    def __init__(
        self,
        *,
        db: Database,
        repository: RepositoryStore,
        plugins_path: Path,
        projector: Projector,
        trusted_hosts: Iterable[str],
        max_concurrent_installs: int = 5,
        client: httpx.AsyncClient | None = None,
        registry: RegistryClient | None = None,
    ) -> None:
        if max_concurrent_installs < 1:
            raise ValueError("max_concurrent_installs must be >= 1")
        self._db = db
        self._metadata = MetadataStore(db)
        self._profiles = ProfileStore(db)
        self._repository = repository
        self._resolver = DependencyResolver(self._metadata)
        self._installer = InstallerPipeline(
            repository, self._metadata, trusted_hosts=tuple(trusted_hosts), client=client
        )
        self._projector = projector
        self._plugins_path = Path(plugins_path)
        self._max_concurrent = max_concurrent_installs
        self._registry = registry

    @classmethod
    def from_config(cls, cfg: ModvaultConfig) -> ModManager:
        """Build a manager from settings, creating directories as needed."""
        return cls(
            db=Database(cfg.db_path, lock_timeout=cfg.db_lock_timeout_seconds),
            repository=RepositoryStore(cfg.repository_path),
            plugins_path=cfg.plugins_path,
            projector=select_projector(cfg.link_strategy),
            trusted_hosts=cfg.trusted_hosts,
            max_concurrent_installs=cfg.max_concurrent_installs,
            registry=RegistryClient(cfg.registry_url, timeout=cfg.registry_timeout_seconds),
        )

    # ------------------------------------------------------------------
    # Accessors and lifecycle
    # ------------------------------------------------------------------

    @property
    def metadata(self) -> MetadataStore:
        return self._metadata

    @property
    def profiles(self) -> ProfileStore:
        return self._profiles

    @property
    def repository(self) -> RepositoryStore:
        return self._repository

    @property
    def installer(self) -> InstallerPipeline:
        return self._installer

    @property
    def projector(self) -> Projector:
        return self._projector

    @property
    def plugins_path(self) -> Path:
        return self._plugins_path

    def target_dir_for(self, full_id: str) -> Path:
        """Projection path of *full_id* inside the plugin directory."""
        return self._plugins_path / validate_full_id(full_id)

    async def aclose(self) -> None:
        await self._installer.aclose()
        if self._registry is not None:
            await self._registry.aclose()
        self._db.close()

    async def __aenter__(self) -> ModManager:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Install
    # ------------------------------------------------------------------

    async def resolve_and_install(self, root_id: str, root_locator: str) -> BatchInstallResult:
        """Resolve *root_id* and install its closure one package at a time."""
        return await self._install_closure(root_id, root_locator, concurrency=1)

    async def install_with_parallel_dependencies(self, root_id: str) -> BatchInstallResult:
        """Install *root_id* from its cached locator, dependencies in parallel.

        Raises
        ------
        NotFoundError
            If the metadata cache has no locator for *root_id*.
        """
        locator = self._metadata.locator_of(root_id)
        if locator is None:
            raise NotFoundError(f"No download locator cached for {root_id}; sync the registry first")
        return await self._install_closure(root_id, locator, concurrency=self._max_concurrent)

    async def _install_closure(
        self, root_id: str, root_locator: str, *, concurrency: int
    ) -> BatchInstallResult:
        plan = self._resolver.resolve(root_id, root_locator)
        root_known = self._metadata.version_of(root_id) is not None
        root = plan.entries[0]

        root_outcome = await self._installer.install(root.full_id, root.locator, root.expected_hash)

        if not root_known:
            # The root's manifest was just recorded; its edges are new.
            plan = self._resolver.resolve(root_id, root_locator)

        batch = await self._installer.install_many(
            plan.dependencies,
            root_id=root_id,
            concurrency=concurrency,
            unresolved=plan.unresolved,
        )
        result = self._merge_root(batch, root_id, root_outcome)
        logger.info(
            "Install of %s finished: %d installed, %d already present, %d failed, %d unresolved.",
            root_id,
            len(result.installed),
            len(result.skipped),
            len(result.failed),
            len(result.unresolved),
        )
        return result

    @staticmethod
    def _merge_root(
        batch: BatchInstallResult, root_id: str, root_outcome: InstallOutcome
    ) -> BatchInstallResult:
        if root_outcome is InstallOutcome.INSTALLED:
            return batch.model_copy(update={"installed": [root_id, *batch.installed]})
        return batch.model_copy(update={"skipped": [root_id, *batch.skipped]})

    def plan(self, root_id: str, root_locator: str | None = None) -> InstallPlan:
        """Resolve without installing; the locator defaults to the cached one."""
        locator = root_locator or self._metadata.locator_of(root_id)
        if locator is None:
            raise NotFoundError(f"No download locator cached for {root_id}")
        return self._resolver.resolve(root_id, locator)

    # ------------------------------------------------------------------
    # Uninstall
    # ------------------------------------------------------------------

    def uninstall(self, full_id: str) -> None:
        """Remove a package's projection, directory and profile entries.

        Raises
        ------
        NotInstalledError
            If *full_id* is not in the repository.
        """
        if not self._repository.exists(full_id):
            raise NotInstalledError(f"Package not installed: {full_id}")
        self._projector.deactivate(self.target_dir_for(full_id))
        self._repository.remove(full_id)
        self._profiles.remove_package_everywhere(full_id)
        logger.info("Uninstalled %s.", full_id)

    # ------------------------------------------------------------------
    # Projection
    # ------------------------------------------------------------------

    def activate_profile_entry(self, full_id: str) -> bool:
        """Project *full_id* and mark it enabled in the active profile.

        Returns ``False`` if it was already projected.
        """
        if not self._repository.exists(full_id):
            raise NotInstalledError(f"Package not installed: {full_id}")
        created = self._projector.activate(
            self._repository.install_dir_for(full_id), self.target_dir_for(full_id)
        )
        active = self._profiles.get_active_profile()
        if active is not None:
            _, version = split_full_id(full_id)
            self._profiles.set_entry(active.id, full_id, enabled=True, version=version)
        return created

    def deactivate_profile_entry(self, full_id: str) -> bool:
        """Remove the projection of *full_id*; disable it in the active profile.

        Returns ``False`` if nothing was projected.
        """
        removed = self._projector.deactivate(self.target_dir_for(full_id))
        active = self._profiles.get_active_profile()
        if active is not None and active.entry(full_id) is not None:
            self._profiles.set_entry(active.id, full_id, enabled=False)
        return removed

    def is_projected(self, full_id: str) -> bool:
        target = self.target_dir_for(full_id)
        return target.is_symlink() or target.exists()

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    def switch_profile(self, profile_id: str) -> Profile:
        """Make *profile_id* the active profile and re-project the plugin dir.

        Enabled entries that are no longer installed are skipped with a
        warning.
        """
        target = self._profiles.get_profile(profile_id)
        current = self._profiles.get_active_profile()
        if current is not None:
            for full_id in current.enabled_ids:
                self._projector.deactivate(self.target_dir_for(full_id))
        for full_id in target.enabled_ids:
            if not self._repository.exists(full_id):
                logger.warning(
                    "Profile %s lists %s, which is not installed; skipping.", target.name, full_id
                )
                continue
            self._projector.activate(
                self._repository.install_dir_for(full_id), self.target_dir_for(full_id)
            )
        activated = self._profiles.set_active(profile_id)
        logger.info("Switched to profile %s (%s).", activated.id, activated.name)
        return activated

    def delete_profile(self, profile_id: str) -> None:
        """Delete a profile; if it is active, its projections go with it."""
        profile = self._profiles.get_profile(profile_id)
        if profile.active:
            for full_id in profile.enabled_ids:
                self._projector.deactivate(self.target_dir_for(full_id))
        self._profiles.delete_profile(profile_id)

    def set_profile_entry(self, profile_id: str, full_id: str, enabled: bool) -> ProfileEntry:
        """Record intent; the projection follows only for the active profile."""
        if enabled and not self._repository.exists(full_id):
            raise NotInstalledError(f"Package not installed: {full_id}")
        _, version = split_full_id(full_id)
        entry = self._profiles.set_entry(profile_id, full_id, enabled=enabled, version=version)
        active = self._profiles.get_active_profile()
        if active is not None and active.id == profile_id:
            target = self.target_dir_for(full_id)
            if enabled:
                self._projector.activate(self._repository.install_dir_for(full_id), target)
            else:
                self._projector.deactivate(target)
        return entry

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def list_available_updates(self) -> list[UpdateCandidate]:
        """Compare installed versions with the newest cached ones.

        Relies on splitting ``full_id`` at its last separator, so results
        are best effort for ids whose version cannot be recovered.
        """
        candidates: list[UpdateCandidate] = []
        for full_id in self._repository.list_installed():
            package_id, current = split_full_id(full_id)
            if not current:
                continue
            latest = self._metadata.latest_version_for(package_id)
            if latest is None or latest.full_id == full_id:
                continue
            current_parsed = parse_version(current)
            if current_parsed is None:
                logger.warning("Skipping %s: unparseable installed version %r", full_id, current)
                continue
            if Version(latest.version) > current_parsed:
                candidates.append(
                    UpdateCandidate(
                        id=full_id,
                        current_version=current,
                        latest_version=latest.version,
                        download_url=latest.download_locator,
                    )
                )
        return candidates

    async def update_package(self, full_id: str) -> BatchInstallResult:
        """Replace *full_id* with the newest cached version of its package.

        Profile entries move to the new id and an active projection is
        switched over. The old copy is removed only after the new root
        installed.

        Raises
        ------
        NotInstalledError
            If *full_id* is not installed.
        NotFoundError
            If no newer version is cached.
        """
        if not self._repository.exists(full_id):
            raise NotInstalledError(f"Package not installed: {full_id}")
        package_id, current = split_full_id(full_id)
        latest = self._metadata.latest_version_for(package_id)
        current_parsed = parse_version(current)
        if (
            latest is None
            or current_parsed is None
            or Version(latest.version) <= current_parsed
        ):
            raise NotFoundError(f"No update available for {full_id}")

        result = await self.resolve_and_install(latest.full_id, latest.download_locator)

        was_projected = self.is_projected(full_id)
        self._profiles.replace_package_everywhere(full_id, latest.full_id, latest.version)
        if was_projected:
            self._projector.deactivate(self.target_dir_for(full_id))
            self._projector.activate(
                self._repository.install_dir_for(latest.full_id),
                self.target_dir_for(latest.full_id),
            )
        self._repository.remove(full_id)
        logger.info("Updated %s to %s.", full_id, latest.full_id)
        return result

    # ------------------------------------------------------------------
    # Registry and scans
    # ------------------------------------------------------------------

    def _is_installed(self, full_id: str) -> bool:
        try:
            return self._repository.exists(full_id)
        except ValidationError:
            return False

    async def ingest_listing(self, listings: Iterable[PackageListing]) -> list[PackageSummary]:
        """Ingest a registry snapshot atomically and summarize it."""
        return await asyncio.to_thread(
            self._metadata.ingest_listing, list(listings), is_installed=self._is_installed
        )

    async def sync_registry(self) -> list[PackageSummary]:
        """Fetch the registry listing and ingest it."""
        if self._registry is None:
            raise NotFoundError("No registry client configured")
        listings = await self._registry.fetch_listings()
        return await self.ingest_listing(listings)

    async def scan_repository(self) -> list[InstalledPackage]:
        """Walk the repository off the event loop and record found manifests.

        Manifests are recorded insert-if-absent, so registry metadata is
        never overwritten by local copies.
        """
        packages = await asyncio.to_thread(self._repository.scan)
        for package in packages:
            if package.manifest is not None:
                await asyncio.to_thread(
                    self._metadata.record_manifest, package.full_id, package.manifest
                )
        logger.info("Scanned repository: %d installed package(s).", len(packages))
        return packages
