"""Tests for projection strategies — symlink and hard-link mirror."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from modvault.core.errors import NotInstalledError, StorageError
from modvault.core.projector import (
    HardlinkMirrorProjector,
    Projector,
    SymlinkProjector,
    select_projector,
)


def _snapshot(root: Path) -> set[str]:
    return {str(p.relative_to(root)) for p in root.rglob("*")}


@pytest.fixture
def installed_dir(tmp_path: Path) -> Path:
    pkg = tmp_path / "repository" / "Owner-Mod-1.0.0"
    (pkg / "plugins" / "nested").mkdir(parents=True)
    (pkg / "manifest.json").write_text('{"name": "Mod", "version_number": "1.0.0"}')
    (pkg / "plugins" / "Mod.dll").write_bytes(b"MZ")
    (pkg / "plugins" / "nested" / "data.cfg").write_text("a=1")
    return pkg


@pytest.fixture(params=[SymlinkProjector, HardlinkMirrorProjector], ids=["symlink", "hardlink"])
def projector(request) -> Projector:
    return request.param()


class TestProjectionRoundTrip:
    def test_activate_exposes_files(self, projector: Projector, installed_dir, plugins_dir):
        target = plugins_dir / installed_dir.name
        assert projector.activate(installed_dir, target) is True
        assert (target / "plugins" / "Mod.dll").read_bytes() == b"MZ"
        assert (target / "plugins" / "nested" / "data.cfg").read_text() == "a=1"

    def test_round_trip_restores_plugin_dir(self, projector: Projector, installed_dir, plugins_dir):
        (plugins_dir / "UserMod.dll").write_bytes(b"keep me")
        before = _snapshot(plugins_dir)

        target = plugins_dir / installed_dir.name
        projector.activate(installed_dir, target)
        assert projector.deactivate(target) is True

        assert _snapshot(plugins_dir) == before
        # The installed copy is untouched.
        assert (installed_dir / "plugins" / "Mod.dll").is_file()

    def test_activate_is_noop_when_target_exists(self, projector: Projector, installed_dir, plugins_dir):
        target = plugins_dir / installed_dir.name
        target.mkdir()
        (target / "local.txt").write_text("local")
        assert projector.activate(installed_dir, target) is False
        assert _snapshot(target) == {"local.txt"}

    def test_deactivate_missing_is_noop(self, projector: Projector, plugins_dir):
        assert projector.deactivate(plugins_dir / "Nothing-Here-1.0.0") is False

    def test_activate_requires_installed_dir(self, projector: Projector, tmp_path, plugins_dir):
        with pytest.raises(NotInstalledError):
            projector.activate(tmp_path / "missing", plugins_dir / "missing")

    def test_satisfies_protocol(self, projector: Projector):
        assert isinstance(projector, Projector)


class TestSymlinkProjector:
    def test_creates_single_link(self, installed_dir, plugins_dir):
        target = plugins_dir / installed_dir.name
        SymlinkProjector().activate(installed_dir, target)
        assert target.is_symlink()
        assert target.resolve() == installed_dir.resolve()

    def test_dangling_link_is_removed(self, installed_dir, plugins_dir, tmp_path):
        target = plugins_dir / "Owner-Gone-1.0.0"
        os.symlink(tmp_path / "does-not-exist", target, target_is_directory=True)
        assert SymlinkProjector().deactivate(target) is True
        assert not target.is_symlink()


class TestHardlinkMirrorProjector:
    def test_files_share_inodes(self, installed_dir, plugins_dir):
        target = plugins_dir / installed_dir.name
        HardlinkMirrorProjector().activate(installed_dir, target)
        assert not target.is_symlink()
        src = installed_dir / "plugins" / "Mod.dll"
        dst = target / "plugins" / "Mod.dll"
        assert os.stat(src).st_ino == os.stat(dst).st_ino

    def test_symlinked_subdirectory_is_mirrored(self, installed_dir, plugins_dir, tmp_path):
        shared = tmp_path / "shared-assets"
        shared.mkdir()
        (shared / "atlas.png").write_bytes(b"PNG")
        (installed_dir / "assets").symlink_to(shared, target_is_directory=True)

        target = plugins_dir / installed_dir.name
        HardlinkMirrorProjector().activate(installed_dir, target)

        mirrored = target / "assets" / "atlas.png"
        assert mirrored.read_bytes() == b"PNG"
        assert os.stat(mirrored).st_ino == os.stat(shared / "atlas.png").st_ino

    def test_failure_leaves_no_partial_mirror(self, installed_dir, plugins_dir, monkeypatch):
        def _fail(src, dst):
            raise OSError(18, "Invalid cross-device link")

        monkeypatch.setattr(os, "link", _fail)
        target = plugins_dir / installed_dir.name
        with pytest.raises(StorageError):
            HardlinkMirrorProjector().activate(installed_dir, target)
        assert not target.exists()


class TestSelectProjector:
    def test_explicit_strategies(self):
        assert select_projector("symlink").strategy == "symlink"
        assert select_projector("hardlink").strategy == "hardlink"

    def test_auto_prefers_symlink(self):
        assert select_projector("auto").strategy == "symlink"

    def test_auto_falls_back_without_symlinks(self, monkeypatch):
        monkeypatch.setattr("modvault.core.projector.symlinks_supported", lambda: False)
        assert select_projector("auto").strategy == "hardlink"

    def test_unknown_strategy(self):
        with pytest.raises(ValueError):
            select_projector("copy")
