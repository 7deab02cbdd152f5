"""Tests for the Pydantic data models — validation, immutability, defaults."""

from __future__ import annotations

import pydantic
import pytest

from modvault.models import (
    BatchInstallResult,
    InstallOutcome,
    InstallPlan,
    PackageListing,
    PackageManifest,
    PackageVersion,
    PlanEntry,
    Profile,
    ProfileEntry,
)


class TestRegistryModels:
    def test_listing_ignores_unknown_fields(self):
        listing = PackageListing.model_validate(
            {
                "name": "Mod",
                "full_name": "Owner-Mod",
                "owner": "Owner",
                "some_future_field": {"nested": True},
                "versions": [
                    {
                        "name": "Mod",
                        "full_name": "Owner-Mod-1.0.0",
                        "version_number": "1.0.0",
                        "download_url": "https://thunderstore.io/package/download/Owner/Mod/1.0.0/",
                        "extra": 1,
                    }
                ],
            }
        )
        assert listing.versions[0].full_name == "Owner-Mod-1.0.0"
        assert listing.versions[0].dependencies == []
        assert listing.versions[0].sha256 is None

    def test_listing_requires_owner(self):
        with pytest.raises(pydantic.ValidationError):
            PackageListing.model_validate({"name": "Mod", "full_name": "Owner-Mod"})

    def test_manifest_defaults(self):
        manifest = PackageManifest(name="Mod", version_number="1.0.0")
        assert manifest.dependencies == []
        assert manifest.website_url == ""


class TestPackageVersion:
    def test_frozen(self):
        version = PackageVersion(full_id="Owner-Mod-1.0.0", package_name="Owner-Mod", version="1.0.0")
        with pytest.raises(pydantic.ValidationError):
            version.version = "2.0.0"  # type: ignore[misc]

    def test_dependency_ids_are_a_set(self):
        version = PackageVersion(
            full_id="Owner-Mod-1.0.0",
            package_name="Owner-Mod",
            version="1.0.0",
            dependency_ids=["Owner-Lib-1.0.0", "Owner-Lib-1.0.0"],
        )
        assert version.dependency_ids == frozenset({"Owner-Lib-1.0.0"})


class TestInstallModels:
    def test_plan_root_and_dependencies(self):
        plan = InstallPlan(
            root_id="Owner-Root-1.0.0",
            entries=(
                PlanEntry(full_id="Owner-Root-1.0.0", locator="https://thunderstore.io/r.zip"),
                PlanEntry(full_id="Owner-Lib-1.0.0", locator="https://thunderstore.io/l.zip"),
            ),
        )
        assert plan.ids == ["Owner-Root-1.0.0", "Owner-Lib-1.0.0"]
        assert [e.full_id for e in plan.dependencies] == ["Owner-Lib-1.0.0"]
        assert len(plan) == 2

    def test_batch_result_complete(self):
        result = BatchInstallResult(
            root_id="Owner-Root-1.0.0",
            installed=["Owner-Root-1.0.0"],
            skipped=["Owner-Lib-1.0.0"],
        )
        assert result.complete
        assert result.succeeded == ["Owner-Root-1.0.0", "Owner-Lib-1.0.0"]

    @pytest.mark.parametrize(
        "extra",
        [{"failed": {"Owner-Lib-1.0.0": "HTTP 404"}}, {"unresolved": ["Owner-Ghost-1.0.0"]}],
    )
    def test_batch_result_incomplete(self, extra):
        result = BatchInstallResult(root_id="Owner-Root-1.0.0", **extra)
        assert not result.complete

    def test_outcome_values(self):
        assert InstallOutcome.INSTALLED == "installed"
        assert InstallOutcome.ALREADY_INSTALLED == "already_installed"


class TestProfileModels:
    def test_generated_id_and_timestamps(self):
        first = Profile(name="A")
        second = Profile(name="B")
        assert first.id.startswith("prf-")
        assert first.id != second.id
        assert first.created_at.tzinfo is not None
        assert first.active is False

    def test_enabled_ids_and_lookup(self):
        profile = Profile(
            name="Mixed",
            entries=(
                ProfileEntry(full_id="Owner-A-1.0.0"),
                ProfileEntry(full_id="Owner-B-1.0.0", enabled=False),
            ),
        )
        assert profile.enabled_ids == ["Owner-A-1.0.0"]
        assert profile.entry("Owner-B-1.0.0").enabled is False
        assert profile.entry("Owner-C-1.0.0") is None
