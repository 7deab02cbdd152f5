"""Package, version and registry listing models.

Registry models mirror the Thunderstore v1 ``/package/`` payload; the
cache-side ``PackageVersion`` is what the resolver and installer consume.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Registry payload
# ---------------------------------------------------------------------------


class RegistryVersion(BaseModel):
    """One version entry inside a registry listing."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str
    full_name: str  # "Owner-Name-1.2.3", the package's full_id
    description: str = ""
    icon: str = ""
    version_number: str
    dependencies: list[str] = Field(default_factory=list)
    download_url: str
    downloads: int = 0
    date_created: str = ""
    website_url: str = ""
    is_active: bool = True
    uuid4: str = ""
    file_size: int = 0
    sha256: str | None = None


class PackageListing(BaseModel):
    """A package as published by the registry, newest version first."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str
    full_name: str  # "Owner-Name", the package id
    owner: str
    package_url: str = ""
    donation_link: str | None = None
    date_created: str = ""
    date_updated: str = ""
    uuid4: str = ""
    rating_score: int = 0
    is_pinned: bool = False
    is_deprecated: bool = False
    has_nsfw_content: bool = False
    categories: list[str] = Field(default_factory=list)
    versions: list[RegistryVersion] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Cache-side records
# ---------------------------------------------------------------------------


class PackageVersion(BaseModel):
    """Immutable record of one installable artifact.

    ``full_id`` is the unique key. It is created or replaced only by
    metadata ingestion, never by the resolver or installer.
    """

    model_config = ConfigDict(frozen=True)

    full_id: str
    package_name: str  # "Owner-Name"
    version: str
    download_locator: str = ""
    content_hash: str | None = None
    dependency_ids: frozenset[str] = frozenset()
    size: int = 0
    description: str = ""
    icon: str = ""
    website_url: str = ""
    downloads: int = 0
    created_at: str = ""
    is_active: bool = True


class DependencyEdge(BaseModel):
    """Directed edge ``from_full_id -> to_full_id``."""

    model_config = ConfigDict(frozen=True)

    from_full_id: str
    to_full_id: str


class PackageManifest(BaseModel):
    """The ``manifest.json`` shipped inside every package archive."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str
    version_number: str
    website_url: str = ""
    description: str = ""
    dependencies: list[str] = Field(default_factory=list)


class PackageSummary(BaseModel):
    """Flattened view of a listing's newest version for front ends."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    version: str
    author: str
    description: str = ""
    icon: str | None = None
    size: int = 0
    installed: bool = False
    dependencies: list[str] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=list)
    download_url: str | None = None
    website_url: str | None = None
    rating: float | None = None
    downloads: int | None = None
    last_updated: str = ""


class InstalledPackage(BaseModel):
    """A directory in the repository, optionally described by its manifest."""

    model_config = ConfigDict(frozen=True)

    full_id: str
    package_name: str
    version: str
    manifest: PackageManifest | None = None


class UpdateCandidate(BaseModel):
    """An installed package for which the cache knows a newer version."""

    model_config = ConfigDict(frozen=True)

    id: str
    current_version: str
    latest_version: str
    download_url: str
