"""Tests for the file scanner utility."""

import tempfile
from pathlib import Path

import pytest

from acu.models import FileCategory, FileChange
from acu.utils.file_scanner import (
    LOCAL_SKIP_PREFIXES,
    MIRROR_SKIP_PREFIXES,
    classify_path,
    is_module_file,
    requires_rebuild,
    scan_tree,
)


def test_classify_known_paths():
    assert classify_path("go.mod") == FileCategory.MODULE
    assert classify_path("go.sum") == FileCategory.MODULE
    assert classify_path("pkg/api/client.go") == FileCategory.SOURCE
    assert classify_path("cmd/manage/main.go") == FileCategory.SOURCE
    assert classify_path("Makefile") == FileCategory.BUILD_SCRIPT
    assert classify_path("build/rules.mk") == FileCategory.BUILD_SCRIPT
    assert classify_path("icons/logo.png") == FileCategory.IMAGE
    assert classify_path("bin/manage") == FileCategory.BINARY
    assert classify_path("etc/categories") == FileCategory.PLAIN


def test_go_files_outside_source_dirs_are_plain():
    assert classify_path("tools/gen.go") == FileCategory.PLAIN
    assert not requires_rebuild("tools/gen.go")


def test_module_files_only_at_root():
    assert is_module_file("go.mod")
    assert not is_module_file("vendor/x/go.mod")
    assert classify_path("vendor/x/go.mod") == FileCategory.PLAIN


def test_requires_rebuild():
    assert requires_rebuild("go.mod")
    assert requires_rebuild("pkg/foo.go")
    assert requires_rebuild("Makefile")
    assert not requires_rebuild("README.md")
    assert not requires_rebuild("icons/logo.png")


def test_file_change_from_path():
    change = FileChange.from_path("pkg/foo.go")
    assert change.category == FileCategory.SOURCE
    assert change.requires_rebuild
    assert not change.is_module_file
    assert change.note == "requires recompile"
    assert FileChange.from_path("go.sum").note == "module update and recompilation required"
    assert FileChange.from_path("README.md").note == ""


def test_scan_returns_sorted_relative_paths():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        (root / "pkg").mkdir()
        (root / "pkg" / "b.go").write_text("package pkg")
        (root / "a.txt").write_text("a")

        assert scan_tree(root) == ["a.txt", "pkg/b.go"]


def test_scan_skips_excluded_regions():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        for rel in [".git/HEAD", "apps/Foo/install", "update/catalog/x", "data/status/Foo",
                    "update-backup/backup_1/rollback.yaml", "logs/run.log", "etc/git_url"]:
            (root / rel).parent.mkdir(parents=True, exist_ok=True)
            (root / rel).write_text("x")

        assert scan_tree(root, LOCAL_SKIP_PREFIXES) == ["etc/git_url"]
        mirror_view = scan_tree(root, MIRROR_SKIP_PREFIXES)
        assert "update/catalog/x" in mirror_view
        assert "apps/Foo/install" not in mirror_view


def test_skip_prefix_is_not_a_name_prefix():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        (root / "applications").mkdir()
        (root / "applications" / "list").write_text("x")

        assert scan_tree(root, LOCAL_SKIP_PREFIXES) == ["applications/list"]


def test_scan_missing_root_raises():
    with tempfile.TemporaryDirectory() as tmpdir:
        with pytest.raises(OSError):
            scan_tree(Path(tmpdir) / "missing")


def test_every_file_under_source_dirs_feeds_the_build():
    change = FileChange.from_path("pkg/gui/xlunch_native.c")
    assert change.category == FileCategory.SOURCE
    assert change.requires_rebuild
    assert requires_rebuild("cmd/manage/assets/help.txt")
    assert not requires_rebuild("pkgs/list.txt")
