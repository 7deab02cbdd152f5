"""Profile models — named, user-selected subsets of installed packages."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProfileEntry(BaseModel):
    """One installed package recorded in a profile."""

    model_config = ConfigDict(frozen=True)

    full_id: str
    enabled: bool = True
    version: str = ""


class Profile(BaseModel):
    """A profile records intent only; it owns no files.

    The active profile's enabled entries are the ones projected into the
    game's plugin directory.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: f"prf-{uuid.uuid4().hex[:12]}")
    name: str
    description: str = ""
    icon: str = ""
    color: str = ""
    active: bool = False
    created_at: datetime = Field(default_factory=_utcnow)
    last_used: datetime = Field(default_factory=_utcnow)
    play_time: int = 0
    entries: tuple[ProfileEntry, ...] = ()

    @property
    def enabled_ids(self) -> list[str]:
        return [e.full_id for e in self.entries if e.enabled]

    def entry(self, full_id: str) -> ProfileEntry | None:
        for e in self.entries:
            if e.full_id == full_id:
                return e
        return None
