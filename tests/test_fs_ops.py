"""Tests for file and tree primitives."""

import os
import tempfile
from pathlib import Path

from acu.utils.fs_ops import copy_file, files_match, remove_path, replace_tree, trees_match

from fakes import read_tree, write_tree


def test_files_match_compares_bytes():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        write_tree(root, {"a": "same", "b": "same", "c": "diff"})
        assert files_match(root / "a", root / "b")
        assert not files_match(root / "a", root / "c")


def test_trees_match_ignores_metadata():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        write_tree(root / "one", {"install": "echo hi", "icons/64.png": "png"})
        write_tree(root / "two", {"install": "echo hi", "icons/64.png": "png"})
        os.chmod(root / "two" / "install", 0o755)
        os.utime(root / "two" / "install", (0, 0))

        assert trees_match(root / "one", root / "two")


def test_trees_differ_on_extra_file_or_content():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        write_tree(root / "one", {"install": "echo hi"})
        write_tree(root / "two", {"install": "echo hi", "uninstall": "echo bye"})
        write_tree(root / "three", {"install": "echo hello"})

        assert not trees_match(root / "one", root / "two")
        assert not trees_match(root / "one", root / "three")


def test_missing_tree_only_matches_missing_tree():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        write_tree(root / "one", {"install": "x"})
        assert not trees_match(root / "one", root / "missing")
        assert trees_match(root / "missing", root / "also-missing")


def test_copy_file_creates_parents():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        write_tree(root, {"src.txt": "data"})
        copy_file(root / "src.txt", root / "deep" / "er" / "dst.txt")
        assert (root / "deep" / "er" / "dst.txt").read_text() == "data"


def test_replace_tree_drops_stale_files():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        write_tree(root / "src", {"install": "new"})
        write_tree(root / "dst", {"install": "old", "stale": "gone"})

        replace_tree(root / "src", root / "dst")

        assert read_tree(root / "dst") == {"install": "new"}


def test_remove_path_handles_files_dirs_and_missing():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        write_tree(root, {"f": "x", "d/g": "y"})
        remove_path(root / "f")
        remove_path(root / "d")
        remove_path(root / "missing")
        assert list(root.iterdir()) == []
