"""Shared test fixtures for modvault."""

from __future__ import annotations

import asyncio
import io
import json
import zipfile
from collections.abc import Callable, Iterable, Iterator
from pathlib import Path
from typing import Any

import httpx
import pytest

from modvault.core.database import Database
from modvault.core.identifiers import split_full_id
from modvault.core.installer import InstallerPipeline
from modvault.core.manager import ModManager
from modvault.core.metadata_store import MetadataStore
from modvault.core.profile_store import ProfileStore
from modvault.core.projector import SymlinkProjector
from modvault.core.repository import RepositoryStore
from modvault.models.packages import PackageListing, PackageVersion, RegistryVersion
from modvault.registry.client import RegistryClient

CDN_BASE = "https://gcdn.thunderstore.io/live/repository/packages/"
REGISTRY_BASE = "https://thunderstore.io/c/valheim/api/v1"
TRUSTED_HOSTS = ("thunderstore.io",)


def locator_for(full_id: str) -> str:
    return f"{CDN_BASE}{full_id}.zip"


# ---------------------------------------------------------------------------
# Fake CDN: an httpx.MockTransport handler with call accounting
# ---------------------------------------------------------------------------


class FakeCdn:
    """Serves published payloads and records every request it sees."""

    def __init__(self) -> None:
        self.payloads: dict[str, bytes] = {}
        self.statuses: dict[str, int] = {}
        self.redirects: dict[str, str] = {}
        self.calls: list[str] = []
        self.delay = 0.0
        self.in_flight = 0
        self.max_in_flight = 0

    def publish(self, full_id: str, payload: bytes) -> str:
        url = locator_for(full_id)
        self.payloads[url] = payload
        return url

    def publish_json(self, url: str, body: Any) -> None:
        self.payloads[url] = json.dumps(body).encode("utf-8")

    async def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.calls.append(url)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if url in self.redirects:
                return httpx.Response(302, headers={"Location": self.redirects[url]})
            if url in self.statuses:
                return httpx.Response(self.statuses[url])
            if url not in self.payloads:
                return httpx.Response(404)
            return httpx.Response(200, content=self.payloads[url])
        finally:
            self.in_flight -= 1

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=httpx.MockTransport(self.handler), follow_redirects=True
        )


@pytest.fixture
def cdn() -> FakeCdn:
    return FakeCdn()


@pytest.fixture
def locator() -> Callable[[str], str]:
    """The CDN URL a full_id is published under."""
    return locator_for


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


@pytest.fixture
def db(tmp_path: Path) -> Iterator[Database]:
    """Provide a fresh metadata database in a temp directory."""
    database = Database(tmp_path / "modvault.db", lock_timeout=2.0)
    yield database
    database.close()


@pytest.fixture
def metadata(db: Database) -> MetadataStore:
    return MetadataStore(db)


@pytest.fixture
def profile_store(db: Database) -> ProfileStore:
    return ProfileStore(db)


@pytest.fixture
def repository(tmp_path: Path) -> RepositoryStore:
    return RepositoryStore(tmp_path / "repository")


@pytest.fixture
def plugins_dir(tmp_path: Path) -> Path:
    path = tmp_path / "BepInEx" / "plugins"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def installer(
    repository: RepositoryStore, metadata: MetadataStore, cdn: FakeCdn
) -> InstallerPipeline:
    return InstallerPipeline(
        repository, metadata, trusted_hosts=TRUSTED_HOSTS, client=cdn.client()
    )


@pytest.fixture
def manager(
    db: Database, repository: RepositoryStore, plugins_dir: Path, cdn: FakeCdn
) -> ModManager:
    """A manager wired to the fake CDN with symlink projection."""
    return ModManager(
        db=db,
        repository=repository,
        plugins_path=plugins_dir,
        projector=SymlinkProjector(),
        trusted_hosts=TRUSTED_HOSTS,
        max_concurrent_installs=5,
        client=cdn.client(),
        registry=RegistryClient(REGISTRY_BASE, client=cdn.client()),
    )


# ---------------------------------------------------------------------------
# Archive and metadata factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_archive() -> Callable[..., bytes]:
    """Factory fixture: build a package zip with a manifest and one plugin."""

    def _factory(
        full_id: str = "Owner-Mod-1.0.0",
        *,
        dependencies: Iterable[str] = (),
        files: dict[str, bytes] | None = None,
        with_manifest: bool = True,
    ) -> bytes:
        package_id, version = split_full_id(full_id)
        name = package_id.split("-", 1)[-1]
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w") as zf:
            if with_manifest:
                zf.writestr(
                    "manifest.json",
                    json.dumps(
                        {
                            "name": name,
                            "version_number": version,
                            "website_url": "",
                            "description": f"{name} test package",
                            "dependencies": list(dependencies),
                        }
                    ),
                )
            for path, content in (files or {f"plugins/{name}.dll": b"MZ" + name.encode()}).items():
                zf.writestr(path, content)
        return buf.getvalue()

    return _factory


@pytest.fixture
def seed_version(metadata: MetadataStore) -> Callable[..., PackageVersion]:
    """Factory fixture: cache one version with its dependency edges."""

    def _factory(
        full_id: str,
        dependencies: Iterable[str] = (),
        *,
        locator: str | None = None,
        content_hash: str | None = None,
    ) -> PackageVersion:
        package_id, version = split_full_id(full_id)
        record = PackageVersion(
            full_id=full_id,
            package_name=package_id,
            version=version,
            download_locator=locator_for(full_id) if locator is None else locator,
            content_hash=content_hash,
            dependency_ids=frozenset(dependencies),
        )
        metadata.upsert_version(record)
        return record

    return _factory


@pytest.fixture
def make_listing() -> Callable[..., PackageListing]:
    """Factory fixture: a registry listing with versions newest first."""

    def _factory(
        package_id: str = "Owner-Mod",
        versions: Iterable[str] = ("1.0.0",),
        *,
        dependencies: Iterable[str] = (),
        sha256: str | None = None,
        **overrides: Any,
    ) -> PackageListing:
        owner, _, name = package_id.partition("-")
        deps = list(dependencies)
        defaults: dict[str, Any] = {
            "name": name,
            "full_name": package_id,
            "owner": owner,
            "package_url": f"https://thunderstore.io/c/valheim/p/{owner}/{name}/",
            "rating_score": 3,
            "categories": ["Mods"],
            "versions": [
                RegistryVersion(
                    name=name,
                    full_name=f"{package_id}-{version}",
                    version_number=version,
                    dependencies=deps,
                    download_url=locator_for(f"{package_id}-{version}"),
                    downloads=100,
                    file_size=1024,
                    sha256=sha256,
                )
                for version in versions
            ],
        }
        defaults.update(overrides)
        return PackageListing(**defaults)

    return _factory
