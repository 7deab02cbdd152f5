"""Local relational cache of packages, versions, and dependency edges.

Two write policies coexist:

- ``UpsertPolicy.REPLACE`` — registry data; the last write wins and a
  version's dependency set is replaced wholesale.
- ``UpsertPolicy.KEEP_EXISTING`` — data discovered on disk (repository
  scans, manifests of freshly installed archives); rows are inserted only
  if absent, so local copies never overwrite registry metadata.

Bulk registry ingestion runs in a single transaction: a listing snapshot
lands completely or not at all.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Callable, Iterable
from enum import Enum
from typing import Any

from packaging.version import Version

from modvault.core.database import Database
from modvault.core.identifiers import parse_version, split_full_id
from modvault.models.packages import (
    DependencyEdge,
    PackageListing,
    PackageManifest,
    PackageSummary,
    PackageVersion,
)

logger = logging.getLogger(__name__)


class UpsertPolicy(str, Enum):
    REPLACE = "replace"
    KEEP_EXISTING = "keep_existing"


_PACKAGE_COLUMNS = (
    "id, name, owner, source_url, created_at, updated_at, "
    "rating, pinned, deprecated, nsfw, categories_json"
)

_VERSION_COLUMNS = (
    "full_id, package_id, name, description, icon, version_number, download_url, "
    "downloads, created_at, website_url, is_active, file_size, content_hash"
)


def _split_package_id(package_id: str) -> tuple[str, str]:
    """``"Owner-Name"`` -> ``("Owner", "Name")``; best effort."""
    owner, sep, name = package_id.partition("-")
    if not sep:
        return "", package_id
    return owner, name


class MetadataStore:
    """Package/version/edge cache over the shared ``Database`` handle.

    Parameters
    ----------
    db:
        The shared database handle. Every method acquires its guard.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    # ------------------------------------------------------------------
    # Single-record upserts
    # ------------------------------------------------------------------

    def upsert_package(
        self, listing: PackageListing, policy: UpsertPolicy = UpsertPolicy.REPLACE
    ) -> None:
        """Insert or update the package row of *listing* (not its versions)."""
        with self._db.transaction() as conn:
            self._write_package(conn, listing, policy)

    def upsert_version(
        self, version: PackageVersion, policy: UpsertPolicy = UpsertPolicy.REPLACE
    ) -> None:
        """Insert or update a version row and its dependency edges.

        A placeholder package row is created if the owning package is not
        yet known, so versions can be recorded before their listing.
        """
        with self._db.transaction() as conn:
            self._ensure_package(conn, version.package_name)
            self._write_version(conn, version, policy)

    def upsert_dependency_edge(self, edge: DependencyEdge) -> None:
        """Record one edge. The source version row must already exist; the
        target need not.
        """
        with self._db.transaction() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO dependency_edges (from_full_id, to_full_id) VALUES (?, ?)",
                (edge.from_full_id, edge.to_full_id),
            )

    # ------------------------------------------------------------------
    # Bulk ingestion
    # ------------------------------------------------------------------

    def ingest_listing(
        self,
        listings: Iterable[PackageListing],
        *,
        is_installed: Callable[[str], bool] | None = None,
    ) -> list[PackageSummary]:
        """Ingest a registry snapshot atomically and summarize it.

        Parameters
        ----------
        listings:
            Registry listings, each with its versions newest first.
        is_installed:
            Optional predicate used to fill ``PackageSummary.installed``
            for the newest version of each package.
        """
        listings = list(listings)
        version_count = 0
        with self._db.transaction() as conn:
            for listing in listings:
                self._write_package(conn, listing, UpsertPolicy.REPLACE)
                for rv in listing.versions:
                    self._write_version(
                        conn,
                        PackageVersion(
                            full_id=rv.full_name,
                            package_name=listing.full_name,
                            version=rv.version_number,
                            download_locator=rv.download_url,
                            content_hash=rv.sha256,
                            dependency_ids=frozenset(rv.dependencies),
                            size=rv.file_size,
                            description=rv.description,
                            icon=rv.icon,
                            website_url=rv.website_url,
                            downloads=rv.downloads,
                            created_at=rv.date_created,
                            is_active=rv.is_active,
                        ),
                        UpsertPolicy.REPLACE,
                    )
                    version_count += 1
        logger.info(
            "Ingested %d package(s) with %d version(s) from registry listing.",
            len(listings),
            version_count,
        )
        return [self._summarize(listing, is_installed) for listing in listings]

    def record_manifest(
        self, full_id: str, manifest: PackageManifest, locator: str = ""
    ) -> PackageVersion:
        """Record a manifest observed on disk, insert-if-absent.

        Package, version and edges are written in one transaction so an
        edge never lands without its owning version row.
        """
        package_id, version = split_full_id(full_id)
        record = PackageVersion(
            full_id=full_id,
            package_name=package_id,
            version=manifest.version_number or version,
            download_locator=locator,
            dependency_ids=frozenset(manifest.dependencies),
            description=manifest.description,
            website_url=manifest.website_url,
        )
        with self._db.transaction() as conn:
            self._ensure_package(conn, package_id, display_name=manifest.name)
            self._write_version(conn, record, UpsertPolicy.KEEP_EXISTING)
        logger.debug("Recorded manifest for %s (%d dependencies).", full_id, len(manifest.dependencies))
        return record

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def dependencies_of(self, full_id: str) -> set[str]:
        """Return direct dependency ids of a version (empty if unknown)."""
        with self._db.locked() as conn:
            rows = conn.execute(
                "SELECT to_full_id FROM dependency_edges WHERE from_full_id = ?",
                (full_id,),
            ).fetchall()
        return {row[0] for row in rows}

    def locator_of(self, full_id: str) -> str | None:
        """Return the download URL of a version, or ``None`` if unknown or blank."""
        with self._db.locked() as conn:
            row = conn.execute(
                "SELECT download_url FROM versions WHERE full_id = ?", (full_id,)
            ).fetchone()
        return row[0] if row and row[0] else None

    def version_of(self, full_id: str) -> PackageVersion | None:
        with self._db.locked() as conn:
            row = conn.execute(
                f"SELECT {_VERSION_COLUMNS} FROM versions WHERE full_id = ?", (full_id,)
            ).fetchone()
            if row is None:
                return None
            return self._row_to_version(conn, row)

    def versions_for(self, package_id: str) -> list[PackageVersion]:
        """Return every cached version of a package, newest first.

        Versions that do not parse are logged and left out, so update
        detection stays best effort.
        """
        with self._db.locked() as conn:
            rows = conn.execute(
                f"SELECT {_VERSION_COLUMNS} FROM versions WHERE package_id = ?",
                (package_id,),
            ).fetchall()
            versions = [self._row_to_version(conn, row) for row in rows]
        ordered: list[tuple[Version, PackageVersion]] = []
        for entry in versions:
            parsed = parse_version(entry.version)
            if parsed is None:
                logger.warning("Skipping %s: unparseable version %r", entry.full_id, entry.version)
                continue
            ordered.append((parsed, entry))
        ordered.sort(key=lambda pair: pair[0], reverse=True)
        return [entry for _, entry in ordered]

    def latest_version_for(self, package_id: str) -> PackageVersion | None:
        """Return the highest cached version of a package, or ``None``."""
        versions = self.versions_for(package_id)
        return versions[0] if versions else None

    def get_stats(self) -> dict[str, Any]:
        with self._db.locked() as conn:
            packages = conn.execute("SELECT COUNT(*) FROM packages").fetchone()[0]
            versions = conn.execute("SELECT COUNT(*) FROM versions").fetchone()[0]
            edges = conn.execute("SELECT COUNT(*) FROM dependency_edges").fetchone()[0]
        return {"packages": packages, "versions": versions, "dependency_edges": edges}

    # ------------------------------------------------------------------
    # Internal writers (caller holds the guard)
    # ------------------------------------------------------------------

    @staticmethod
    def _write_package(
        conn: sqlite3.Connection, listing: PackageListing, policy: UpsertPolicy
    ) -> None:
        values = (
            listing.full_name,
            listing.name,
            listing.owner,
            listing.package_url,
            listing.date_created,
            listing.date_updated,
            listing.rating_score,
            int(listing.is_pinned),
            int(listing.is_deprecated),
            int(listing.has_nsfw_content),
            json.dumps(listing.categories),
        )
        if policy is UpsertPolicy.REPLACE:
            conn.execute(
                f"""
                INSERT INTO packages ({_PACKAGE_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    owner = excluded.owner,
                    source_url = excluded.source_url,
                    created_at = excluded.created_at,
                    updated_at = excluded.updated_at,
                    rating = excluded.rating,
                    pinned = excluded.pinned,
                    deprecated = excluded.deprecated,
                    nsfw = excluded.nsfw,
                    categories_json = excluded.categories_json
                """,
                values,
            )
        else:
            conn.execute(
                f"INSERT OR IGNORE INTO packages ({_PACKAGE_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                values,
            )

    @staticmethod
    def _ensure_package(
        conn: sqlite3.Connection, package_id: str, display_name: str = ""
    ) -> None:
        owner, name = _split_package_id(package_id)
        conn.execute(
            "INSERT OR IGNORE INTO packages (id, name, owner) VALUES (?, ?, ?)",
            (package_id, display_name or name, owner),
        )

    @staticmethod
    def _write_version(
        conn: sqlite3.Connection, version: PackageVersion, policy: UpsertPolicy
    ) -> None:
        _, short_name = _split_package_id(version.package_name)
        values = (
            version.full_id,
            version.package_name,
            short_name,
            version.description,
            version.icon,
            version.version,
            version.download_locator,
            version.downloads,
            version.created_at,
            version.website_url,
            int(version.is_active),
            version.size,
            version.content_hash,
        )
        edges = [(version.full_id, dep) for dep in sorted(version.dependency_ids)]

        if policy is UpsertPolicy.REPLACE:
            conn.execute(
                f"""
                INSERT INTO versions ({_VERSION_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(full_id) DO UPDATE SET
                    package_id = excluded.package_id,
                    name = excluded.name,
                    description = excluded.description,
                    icon = excluded.icon,
                    version_number = excluded.version_number,
                    download_url = excluded.download_url,
                    downloads = excluded.downloads,
                    created_at = excluded.created_at,
                    website_url = excluded.website_url,
                    is_active = excluded.is_active,
                    file_size = excluded.file_size,
                    content_hash = excluded.content_hash
                """,
                values,
            )
            conn.execute(
                "DELETE FROM dependency_edges WHERE from_full_id = ?", (version.full_id,)
            )
        else:
            cur = conn.execute(
                f"INSERT OR IGNORE INTO versions ({_VERSION_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                values,
            )
            # An existing row keeps its own edge set too.
            if cur.rowcount == 0:
                return
        conn.executemany(
            "INSERT OR IGNORE INTO dependency_edges (from_full_id, to_full_id) VALUES (?, ?)",
            edges,
        )

    @staticmethod
    def _row_to_version(conn: sqlite3.Connection, row: tuple) -> PackageVersion:
        (
            full_id,
            package_id,
            _name,
            description,
            icon,
            version_number,
            download_url,
            downloads,
            created_at,
            website_url,
            is_active,
            file_size,
            content_hash,
        ) = row
        deps = conn.execute(
            "SELECT to_full_id FROM dependency_edges WHERE from_full_id = ?", (full_id,)
        ).fetchall()
        return PackageVersion(
            full_id=full_id,
            package_name=package_id,
            version=version_number,
            download_locator=download_url,
            content_hash=content_hash,
            dependency_ids=frozenset(d[0] for d in deps),
            size=file_size,
            description=description,
            icon=icon,
            website_url=website_url,
            downloads=downloads,
            created_at=created_at,
            is_active=bool(is_active),
        )

    @staticmethod
    def _summarize(
        listing: PackageListing, is_installed: Callable[[str], bool] | None
    ) -> PackageSummary:
        latest = listing.versions[0] if listing.versions else None
        if latest is None:
            return PackageSummary(
                id=listing.full_name,
                name=listing.name,
                version="0.0.0",
                author=listing.owner,
                categories=listing.categories,
                rating=float(listing.rating_score),
                last_updated=listing.date_updated,
            )
        installed = bool(is_installed and is_installed(latest.full_name))
        return PackageSummary(
            id=listing.full_name,
            name=listing.name,
            version=latest.version_number,
            author=listing.owner,
            description=latest.description,
            icon=latest.icon or None,
            size=latest.file_size,
            installed=installed,
            dependencies=latest.dependencies,
            categories=listing.categories,
            download_url=latest.download_url or None,
            website_url=latest.website_url or None,
            rating=float(listing.rating_score),
            downloads=latest.downloads,
            last_updated=listing.date_updated,
        )


