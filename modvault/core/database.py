"""Shared SQLite handle for the metadata cache and profile tables.

One connection, one mutual-exclusion guard. Every component that reads or
writes the cache receives this handle in its constructor and holds the
guard for the duration of its statement(s). Failing to acquire the guard
within the configured timeout raises ``DatabaseLockError`` instead of
blocking forever.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from modvault.core.errors import DatabaseError, DatabaseLockError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# DDL
# ---------------------------------------------------------------------------

_CREATE_PACKAGES = """
CREATE TABLE IF NOT EXISTS packages (
    id              TEXT PRIMARY KEY,
    name            TEXT NOT NULL,
    owner           TEXT NOT NULL,
    source_url      TEXT NOT NULL DEFAULT '',
    created_at      TEXT NOT NULL DEFAULT '',
    updated_at      TEXT NOT NULL DEFAULT '',
    rating          INTEGER NOT NULL DEFAULT 0,
    pinned          INTEGER NOT NULL DEFAULT 0,
    deprecated      INTEGER NOT NULL DEFAULT 0,
    nsfw            INTEGER NOT NULL DEFAULT 0,
    categories_json TEXT NOT NULL DEFAULT '[]'
);
"""

_CREATE_VERSIONS = """
CREATE TABLE IF NOT EXISTS versions (
    full_id         TEXT PRIMARY KEY,
    package_id      TEXT NOT NULL REFERENCES packages(id),
    name            TEXT NOT NULL,
    description     TEXT NOT NULL DEFAULT '',
    icon            TEXT NOT NULL DEFAULT '',
    version_number  TEXT NOT NULL,
    download_url    TEXT NOT NULL DEFAULT '',
    downloads       INTEGER NOT NULL DEFAULT 0,
    created_at      TEXT NOT NULL DEFAULT '',
    website_url     TEXT NOT NULL DEFAULT '',
    is_active       INTEGER NOT NULL DEFAULT 1,
    file_size       INTEGER NOT NULL DEFAULT 0,
    content_hash    TEXT
);
"""

_CREATE_EDGES = """
CREATE TABLE IF NOT EXISTS dependency_edges (
    from_full_id    TEXT NOT NULL REFERENCES versions(full_id),
    to_full_id      TEXT NOT NULL,
    PRIMARY KEY (from_full_id, to_full_id)
);
"""

_CREATE_PROFILES = """
CREATE TABLE IF NOT EXISTS profiles (
    id              TEXT PRIMARY KEY,
    name            TEXT NOT NULL,
    description     TEXT NOT NULL DEFAULT '',
    icon            TEXT NOT NULL DEFAULT '',
    color           TEXT NOT NULL DEFAULT '',
    active          INTEGER NOT NULL DEFAULT 0,
    created_at      TEXT NOT NULL,
    last_used       TEXT NOT NULL,
    play_time       INTEGER NOT NULL DEFAULT 0
);
"""

# package_id holds the installed full_id; installed state lives on disk,
# so it has no foreign key into versions or packages.
_CREATE_PROFILE_PACKAGES = """
CREATE TABLE IF NOT EXISTS profile_packages (
    profile_id      TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
    package_id      TEXT NOT NULL,
    enabled         INTEGER NOT NULL DEFAULT 1,
    version         TEXT NOT NULL DEFAULT '',
    PRIMARY KEY (profile_id, package_id)
);
"""

_CREATE_INDEXES = (
    "CREATE INDEX IF NOT EXISTS idx_edges_from ON dependency_edges(from_full_id);",
    "CREATE INDEX IF NOT EXISTS idx_edges_to ON dependency_edges(to_full_id);",
    "CREATE INDEX IF NOT EXISTS idx_versions_package ON versions(package_id);",
)


class Database:
    """Single shared SQLite connection guarded by a lock.

    Parameters
    ----------
    db_path:
        Path to the SQLite file, or ``":memory:"``. Parent directories are
        created on demand.
    lock_timeout:
        Seconds to wait for the guard before raising ``DatabaseLockError``.
    """

    def __init__(self, db_path: Path | str, *, lock_timeout: float = 10.0) -> None:
        self._db_path = str(db_path)
        self._lock_timeout = lock_timeout
        self._lock = threading.Lock()
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            # Autocommit mode; multi-statement units go through transaction().
            self._conn = sqlite3.connect(
                self._db_path, check_same_thread=False, isolation_level=None
            )
            if self._db_path != ":memory:":
                self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA foreign_keys=ON")
        except sqlite3.Error as exc:
            raise DatabaseError(f"Cannot open metadata cache {self._db_path}: {exc}") from exc
        self._init_schema()

    @property
    def path(self) -> str:
        return self._db_path

    def _init_schema(self) -> None:
        with self.transaction() as conn:
            for ddl in (
                _CREATE_PACKAGES,
                _CREATE_VERSIONS,
                _CREATE_EDGES,
                _CREATE_PROFILES,
                _CREATE_PROFILE_PACKAGES,
                *_CREATE_INDEXES,
            ):
                conn.execute(ddl)
        logger.debug("Metadata schema ready at %s", self._db_path)

    # ------------------------------------------------------------------
    # Guarded access
    # ------------------------------------------------------------------

    @contextmanager
    def locked(self) -> Iterator[sqlite3.Connection]:
        """Hold the guard and yield the connection.

        ``sqlite3.Error`` raised inside the block surfaces as
        ``DatabaseError``.
        """
        if not self._lock.acquire(timeout=self._lock_timeout):
            raise DatabaseLockError(
                f"Timed out after {self._lock_timeout}s waiting for the metadata cache lock"
            )
        try:
            yield self._conn
        except sqlite3.Error as exc:
            raise DatabaseError(str(exc)) from exc
        finally:
            self._lock.release()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Hold the guard for one atomic unit: all statements land or none."""
        with self.locked() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    def close(self) -> None:
        with self.locked() as conn:
            conn.close()
