"""Tests for DependencyResolver — closure, cycles, diamonds, missing locators."""

from __future__ import annotations

import pytest

from modvault.core.errors import ResolutionError
from modvault.core.metadata_store import MetadataStore
from modvault.core.resolver import DependencyResolver

ROOT_URL = "https://gcdn.thunderstore.io/live/repository/packages/Owner-A-1.0.0.zip"


@pytest.fixture
def resolver(metadata: MetadataStore) -> DependencyResolver:
    return DependencyResolver(metadata)


class TestResolve:
    def test_root_without_dependencies(self, resolver: DependencyResolver):
        plan = resolver.resolve("Owner-A-1.0.0", ROOT_URL)
        assert plan.ids == ["Owner-A-1.0.0"]
        assert plan.entries[0].locator == ROOT_URL
        assert plan.dependencies == ()
        assert plan.unresolved == ()

    def test_root_is_first_and_closure_complete(self, resolver, seed_version):
        seed_version("Owner-A-1.0.0", ["Owner-B-1.0.0"])
        seed_version("Owner-B-1.0.0", ["Owner-C-1.0.0"])
        seed_version("Owner-C-1.0.0")
        plan = resolver.resolve("Owner-A-1.0.0", ROOT_URL)
        assert plan.ids == ["Owner-A-1.0.0", "Owner-B-1.0.0", "Owner-C-1.0.0"]
        assert len(plan) == 3

    def test_cycle_terminates_with_each_id_once(self, resolver, seed_version):
        seed_version("Owner-A-1.0.0", ["Owner-B-1.0.0"])
        seed_version("Owner-B-1.0.0", ["Owner-A-1.0.0"])
        plan = resolver.resolve("Owner-A-1.0.0", ROOT_URL)
        assert sorted(plan.ids) == ["Owner-A-1.0.0", "Owner-B-1.0.0"]

    def test_self_dependency(self, resolver, seed_version):
        seed_version("Owner-A-1.0.0", ["Owner-A-1.0.0"])
        assert resolver.resolve("Owner-A-1.0.0", ROOT_URL).ids == ["Owner-A-1.0.0"]

    def test_diamond_resolves_shared_dependency_once(self, resolver, seed_version):
        seed_version("Owner-A-1.0.0", ["Owner-B-1.0.0", "Owner-C-1.0.0"])
        seed_version("Owner-B-1.0.0", ["Owner-D-1.0.0"])
        seed_version("Owner-C-1.0.0", ["Owner-D-1.0.0"])
        seed_version("Owner-D-1.0.0")
        plan = resolver.resolve("Owner-A-1.0.0", ROOT_URL)
        assert plan.ids.count("Owner-D-1.0.0") == 1
        assert set(plan.ids) == {"Owner-A-1.0.0", "Owner-B-1.0.0", "Owner-C-1.0.0", "Owner-D-1.0.0"}

    def test_deep_chain_does_not_use_call_stack(self, resolver, seed_version):
        depth = 1200
        for i in range(depth):
            seed_version(f"Owner-N{i}-1.0.0", [f"Owner-N{i + 1}-1.0.0"])
        seed_version(f"Owner-N{depth}-1.0.0")
        plan = resolver.resolve("Owner-N0-1.0.0", ROOT_URL)
        assert len(plan) == depth + 1

    def test_dependency_without_locator_is_skipped(self, resolver, seed_version):
        seed_version("Owner-A-1.0.0", ["Owner-B-1.0.0", "Owner-Missing-1.0.0"])
        seed_version("Owner-B-1.0.0")
        plan = resolver.resolve("Owner-A-1.0.0", ROOT_URL)
        assert plan.ids == ["Owner-A-1.0.0", "Owner-B-1.0.0"]
        assert plan.unresolved == ("Owner-Missing-1.0.0",)

    def test_dependency_with_blank_locator_is_skipped(self, resolver, seed_version):
        seed_version("Owner-A-1.0.0", ["Owner-B-1.0.0"])
        seed_version("Owner-B-1.0.0", ["Owner-C-1.0.0"], locator="")
        seed_version("Owner-C-1.0.0")
        plan = resolver.resolve("Owner-A-1.0.0", ROOT_URL)
        # The whole branch below B is skipped with it.
        assert plan.ids == ["Owner-A-1.0.0"]
        assert plan.unresolved == ("Owner-B-1.0.0",)

    def test_malformed_dependency_id_is_skipped(self, resolver, seed_version):
        seed_version("Owner-A-1.0.0", ["../../evil-1.0.0"])
        plan = resolver.resolve("Owner-A-1.0.0", ROOT_URL)
        assert plan.ids == ["Owner-A-1.0.0"]
        assert plan.unresolved == ("../../evil-1.0.0",)

    def test_expected_hashes_are_carried(self, resolver, seed_version):
        seed_version("Owner-A-1.0.0", ["Owner-B-1.0.0"], content_hash="aa" * 32)
        seed_version("Owner-B-1.0.0", content_hash="bb" * 32)
        plan = resolver.resolve("Owner-A-1.0.0", ROOT_URL)
        assert [e.expected_hash for e in plan.entries] == ["aa" * 32, "bb" * 32]


class TestResolveErrors:
    def test_invalid_root_id(self, resolver):
        with pytest.raises(ResolutionError):
            resolver.resolve("../etc", ROOT_URL)

    def test_missing_root_locator(self, resolver):
        with pytest.raises(ResolutionError):
            resolver.resolve("Owner-A-1.0.0", "")
