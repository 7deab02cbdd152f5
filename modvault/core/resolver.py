"""Dependency resolver — cycle-safe closure of a root package.

The walk is depth-first over an explicit stack with a visited set, so the
depth of an attacker-influenced dependency graph never translates into
Python call-stack depth. Revisiting an id (a cycle or a diamond) is a
silent short-circuit, not an error.

A dependency whose locator is unknown to the metadata cache is skipped
with a warning and reported in ``InstallPlan.unresolved``; it never aborts
the rest of the resolution.
"""

from __future__ import annotations

import logging

from modvault.core.errors import ResolutionError, ValidationError
from modvault.core.identifiers import validate_full_id
from modvault.core.metadata_store import MetadataStore
from modvault.models.install import InstallPlan, PlanEntry

logger = logging.getLogger(__name__)


class DependencyResolver:
    """Builds ``InstallPlan``s from the dependency edges in the cache.

    Parameters
    ----------
    metadata:
        Source of dependency edges, locators and digests.
    """

    def __init__(self, metadata: MetadataStore) -> None:
        self._metadata = metadata

    def resolve(self, root_id: str, root_locator: str) -> InstallPlan:
        """Return the deduplicated closure of *root_id*.

        The root is always ``entries[0]``; every other node is appended the
        first time it is reached, before its own children are explored.

        Raises
        ------
        ResolutionError
            If the root id is malformed or no root locator was given.
        """
        try:
            validate_full_id(root_id)
        except ValidationError as exc:
            raise ResolutionError(f"Cannot resolve {root_id!r}: {exc}") from exc
        if not root_locator:
            raise ResolutionError(f"No download locator for root package {root_id}")

        root_version = self._metadata.version_of(root_id)
        root_hash = root_version.content_hash if root_version else None

        visited: set[str] = set()
        unresolved: list[str] = []
        entries: list[PlanEntry] = []
        stack: list[PlanEntry] = [PlanEntry(full_id=root_id, locator=root_locator, expected_hash=root_hash)]

        while stack:
            node = stack.pop()
            if node.full_id in visited:
                continue
            visited.add(node.full_id)
            entries.append(node)

            # Reverse so the first (sorted) child is explored first.
            for dep_id in sorted(self._metadata.dependencies_of(node.full_id), reverse=True):
                if dep_id in visited:
                    continue
                child = self._plan_entry_for(node.full_id, dep_id)
                if child is None:
                    if dep_id not in unresolved:
                        unresolved.append(dep_id)
                    continue
                stack.append(child)

        plan = InstallPlan(
            root_id=root_id,
            entries=tuple(entries),
            unresolved=tuple(unresolved),
        )
        logger.info(
            "Resolved %s: %d package(s), %d unresolved dependency(ies).",
            root_id,
            len(plan.entries),
            len(plan.unresolved),
        )
        return plan

    def _plan_entry_for(self, parent_id: str, dep_id: str) -> PlanEntry | None:
        """Look up a dependency's locator; ``None`` means skip this branch."""
        try:
            validate_full_id(dep_id)
        except ValidationError as exc:
            logger.warning("Skipping dependency %r of %s: %s", dep_id, parent_id, exc)
            return None
        version = self._metadata.version_of(dep_id)
        if version is None or not version.download_locator:
            logger.warning(
                "No download locator for dependency %s of %s; skipping that branch.",
                dep_id,
                parent_id,
            )
            return None
        return PlanEntry(
            full_id=dep_id,
            locator=version.download_locator,
            expected_hash=version.content_hash,
        )
