"""Profile persistence over the shared ``Database`` handle.

A profile records intent only: which installed packages the user wants
and whether each is enabled. At most one profile is active at a time.
Projection into the plugin directory is the manager's job.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from typing import Any

from modvault.core.database import Database
from modvault.core.errors import ProfileNotFoundError, ValidationError
from modvault.core.identifiers import validate_full_id
from modvault.models.profiles import Profile, ProfileEntry

logger = logging.getLogger(__name__)

_PROFILE_COLUMNS = (
    "id, name, description, icon, color, active, created_at, last_used, play_time"
)

_UPDATABLE_FIELDS = frozenset({"name", "description", "icon", "color", "play_time"})


class ProfileStore:
    """CRUD for profiles and their package entries.

    Parameters
    ----------
    db:
        The shared database handle (same one the ``MetadataStore`` uses).
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    def create_profile(
        self, name: str, *, description: str = "", icon: str = "", color: str = ""
    ) -> Profile:
        """Create an inactive, empty profile."""
        if not name.strip():
            raise ValidationError("Profile name must not be empty")
        profile = Profile(name=name, description=description, icon=icon, color=color)
        with self._db.transaction() as conn:
            conn.execute(
                f"INSERT INTO profiles ({_PROFILE_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    profile.id,
                    profile.name,
                    profile.description,
                    profile.icon,
                    profile.color,
                    0,
                    profile.created_at.isoformat(),
                    profile.last_used.isoformat(),
                    profile.play_time,
                ),
            )
        logger.info("Created profile %s (%s).", profile.id, profile.name)
        return profile

    def get_profile(self, profile_id: str) -> Profile:
        """Return a profile with its entries.

        Raises
        ------
        ProfileNotFoundError
            If no profile has this id.
        """
        with self._db.locked() as conn:
            profile = self._load(conn, profile_id)
        if profile is None:
            raise ProfileNotFoundError(f"Profile not found: {profile_id}")
        return profile

    def list_profiles(self) -> list[Profile]:
        """Return every profile, oldest first."""
        with self._db.locked() as conn:
            ids = [
                row[0]
                for row in conn.execute(
                    "SELECT id FROM profiles ORDER BY created_at ASC, id ASC"
                ).fetchall()
            ]
            profiles = [self._load(conn, profile_id) for profile_id in ids]
        return [p for p in profiles if p is not None]

    def update_profile(self, profile_id: str, **changes: Any) -> Profile:
        """Update descriptive fields of a profile.

        Only ``name``, ``description``, ``icon``, ``color`` and
        ``play_time`` may change; activation goes through
        :meth:`set_active`.
        """
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update profile field(s): {sorted(unknown)}")
        if "name" in changes and not str(changes["name"]).strip():
            raise ValidationError("Profile name must not be empty")
        if changes:
            assignments = ", ".join(f"{field} = ?" for field in sorted(changes))
            values = [changes[field] for field in sorted(changes)]
            with self._db.transaction() as conn:
                cur = conn.execute(
                    f"UPDATE profiles SET {assignments} WHERE id = ?",
                    (*values, profile_id),
                )
                if cur.rowcount == 0:
                    raise ProfileNotFoundError(f"Profile not found: {profile_id}")
        return self.get_profile(profile_id)

    def delete_profile(self, profile_id: str) -> None:
        """Delete a profile and (by cascade) its entries."""
        with self._db.transaction() as conn:
            cur = conn.execute("DELETE FROM profiles WHERE id = ?", (profile_id,))
            if cur.rowcount == 0:
                raise ProfileNotFoundError(f"Profile not found: {profile_id}")
        logger.info("Deleted profile %s.", profile_id)

    # ------------------------------------------------------------------
    # Activation
    # ------------------------------------------------------------------

    def get_active_profile(self) -> Profile | None:
        with self._db.locked() as conn:
            row = conn.execute("SELECT id FROM profiles WHERE active = 1 LIMIT 1").fetchone()
            return self._load(conn, row[0]) if row else None

    def set_active(self, profile_id: str) -> Profile:
        """Mark *profile_id* as the only active profile and stamp ``last_used``."""
        now = datetime.now(timezone.utc).isoformat()
        with self._db.transaction() as conn:
            exists = conn.execute(
                "SELECT 1 FROM profiles WHERE id = ?", (profile_id,)
            ).fetchone()
            if exists is None:
                raise ProfileNotFoundError(f"Profile not found: {profile_id}")
            conn.execute("UPDATE profiles SET active = 0 WHERE active = 1")
            conn.execute(
                "UPDATE profiles SET active = 1, last_used = ? WHERE id = ?",
                (now, profile_id),
            )
        return self.get_profile(profile_id)

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def set_entry(
        self, profile_id: str, full_id: str, *, enabled: bool = True, version: str = ""
    ) -> ProfileEntry:
        """Add or update one package entry of a profile."""
        validate_full_id(full_id)
        with self._db.transaction() as conn:
            exists = conn.execute(
                "SELECT 1 FROM profiles WHERE id = ?", (profile_id,)
            ).fetchone()
            if exists is None:
                raise ProfileNotFoundError(f"Profile not found: {profile_id}")
            conn.execute(
                """
                INSERT INTO profile_packages (profile_id, package_id, enabled, version)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(profile_id, package_id) DO UPDATE SET
                    enabled = excluded.enabled,
                    version = CASE WHEN excluded.version = '' THEN version ELSE excluded.version END
                """,
                (profile_id, full_id, int(enabled), version),
            )
        return ProfileEntry(full_id=full_id, enabled=enabled, version=version)

    def remove_entry(self, profile_id: str, full_id: str) -> bool:
        """Drop one entry; returns ``False`` if it was not there."""
        with self._db.transaction() as conn:
            cur = conn.execute(
                "DELETE FROM profile_packages WHERE profile_id = ? AND package_id = ?",
                (profile_id, full_id),
            )
        return cur.rowcount > 0

    def remove_package_everywhere(self, full_id: str) -> int:
        """Drop *full_id* from every profile; returns the number of entries removed."""
        with self._db.transaction() as conn:
            cur = conn.execute(
                "DELETE FROM profile_packages WHERE package_id = ?", (full_id,)
            )
        if cur.rowcount:
            logger.info("Removed %s from %d profile(s).", full_id, cur.rowcount)
        return cur.rowcount

    def replace_package_everywhere(self, old_id: str, new_id: str, version: str = "") -> int:
        """Point every entry for *old_id* at *new_id*, keeping its enabled flag.

        Profiles that already list *new_id* keep their own entry and just
        lose the old one.
        """
        validate_full_id(new_id)
        with self._db.transaction() as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO profile_packages (profile_id, package_id, enabled, version)
                SELECT profile_id, ?, enabled, ? FROM profile_packages WHERE package_id = ?
                """,
                (new_id, version, old_id),
            )
            cur = conn.execute(
                "DELETE FROM profile_packages WHERE package_id = ?", (old_id,)
            )
        return cur.rowcount

    def profiles_with(self, full_id: str) -> list[str]:
        """Return ids of profiles that list *full_id*."""
        with self._db.locked() as conn:
            rows = conn.execute(
                "SELECT profile_id FROM profile_packages WHERE package_id = ? ORDER BY profile_id",
                (full_id,),
            ).fetchall()
        return [row[0] for row in rows]

    # ------------------------------------------------------------------
    # Internal (caller holds the guard)
    # ------------------------------------------------------------------

    @staticmethod
    def _load(conn: sqlite3.Connection, profile_id: str) -> Profile | None:
        row = conn.execute(
            f"SELECT {_PROFILE_COLUMNS} FROM profiles WHERE id = ?", (profile_id,)
        ).fetchone()
        if row is None:
            return None
        entries = conn.execute(
            "SELECT package_id, enabled, version FROM profile_packages "
            "WHERE profile_id = ? ORDER BY package_id",
            (profile_id,),
        ).fetchall()
        return Profile(
            id=row[0],
            name=row[1],
            description=row[2],
            icon=row[3],
            color=row[4],
            active=bool(row[5]),
            created_at=datetime.fromisoformat(row[6]),
            last_used=datetime.fromisoformat(row[7]),
            play_time=row[8],
            entries=tuple(
                ProfileEntry(full_id=e[0], enabled=bool(e[1]), version=e[2]) for e in entries
            ),
        )
