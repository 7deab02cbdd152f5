"""Install plan and install result models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class PlanEntry(BaseModel):
    """One package to install: its id, where to fetch it, and its digest."""

    model_config = ConfigDict(frozen=True)

    full_id: str
    locator: str
    expected_hash: str | None = None


class InstallPlan(BaseModel):
    """Deduplicated, cycle-safe closure of a root package.

    ``entries[0]`` is always the root. ``unresolved`` lists dependency ids
    that were skipped because no locator was known for them.
    """

    model_config = ConfigDict(frozen=True)

    root_id: str
    entries: tuple[PlanEntry, ...] = ()
    unresolved: tuple[str, ...] = ()

    @property
    def ids(self) -> list[str]:
        return [entry.full_id for entry in self.entries]

    @property
    def dependencies(self) -> tuple[PlanEntry, ...]:
        """Every entry except the root."""
        return self.entries[1:]

    def __len__(self) -> int:
        return len(self.entries)


class InstallOutcome(str, Enum):
    INSTALLED = "installed"
    ALREADY_INSTALLED = "already_installed"


class BatchInstallResult(BaseModel):
    """Per-id outcome of executing an install plan.

    ``failed`` maps a full_id to the error message that stopped it. The
    batch itself succeeds as long as the root is not in ``failed``.
    """

    model_config = ConfigDict(frozen=True)

    root_id: str
    installed: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    failed: dict[str, str] = Field(default_factory=dict)
    unresolved: list[str] = Field(default_factory=list)

    @property
    def succeeded(self) -> list[str]:
        """Ids that are present in the repository after the batch."""
        return [*self.installed, *self.skipped]

    @property
    def complete(self) -> bool:
        """``True`` when no dependency failed or was left unresolved."""
        return not self.failed and not self.unresolved
