"""File scanner — walk distribution trees and classify their files."""

from __future__ import annotations

import os
from pathlib import Path, PurePosixPath

from acu.models import FileCategory

# Manifest files whose change requires a dependency refresh
MODULE_FILES = ("go.mod", "go.sum")

# Top-level directories holding the distribution's own sources; anything in them feeds the build
SOURCE_DIRS = ("pkg/", "cmd/")

BUILD_SCRIPT_NAMES = {"makefile"}
BUILD_SCRIPT_SUFFIXES = {".mk"}

IMAGE_SUFFIXES = {".png", ".jpg", ".jpeg", ".gif", ".svg", ".ico"}

BINARY_SUFFIXES = {".bin", ".exe", ".so", ".dylib", ".dll", ".a", ".o"}

REBUILD_CATEGORIES = {
    FileCategory.MODULE,
    FileCategory.SOURCE,
    FileCategory.BUILD_SCRIPT,
}

# Regions never compared file-by-file: version control metadata, managed
# application directories and variable data.
MIRROR_SKIP_PREFIXES = (".git/", "apps/", "data/")
LOCAL_SKIP_PREFIXES = (".git/", "apps/", "update/", "update-backup/", "data/", "logs/")


def classify_path(path: str) -> FileCategory:
    """Return the risk category of a distribution-relative path.

    Pure function of the path string, so it gives the same answer for
    freshly compared files and for paths read back from the status cache.
    """
    posix = PurePosixPath(path)
    name = posix.name.lower()
    suffix = posix.suffix.lower()

    if path in MODULE_FILES:
        return FileCategory.MODULE
    if path.startswith(SOURCE_DIRS):
        return FileCategory.SOURCE
    if name in BUILD_SCRIPT_NAMES or suffix in BUILD_SCRIPT_SUFFIXES:
        return FileCategory.BUILD_SCRIPT
    if path.startswith("apps/") or "/apps/" in path:
        return FileCategory.APP_ASSET
    if suffix in IMAGE_SUFFIXES:
        return FileCategory.IMAGE
    if suffix in BINARY_SUFFIXES or path.startswith("bin/") or "/bin/" in path:
        return FileCategory.BINARY
    return FileCategory.PLAIN


def requires_rebuild(path: str) -> bool:
    return classify_path(path) in REBUILD_CATEGORIES


def is_module_file(path: str) -> bool:
    return path in MODULE_FILES


def scan_tree(root: Path, skip_prefixes: tuple[str, ...] = ()) -> list[str]:
    """Return every file under ``root`` as a sorted list of relative POSIX paths.

    Paths starting with any of ``skip_prefixes`` are left out, and whole
    directories matching a prefix are not descended into. Walk errors
    propagate as ``OSError``.
    """
    root = Path(root)
    found = []

    def _raise(err: OSError) -> None:
        raise err

    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise):
        rel_dir = Path(dirpath).relative_to(root).as_posix()
        prefix = "" if rel_dir == "." else rel_dir + "/"

        dirnames[:] = sorted(
            d for d in dirnames if not _skipped(prefix + d + "/", skip_prefixes)
        )
        for filename in filenames:
            rel_path = prefix + filename
            if not _skipped(rel_path, skip_prefixes):
                found.append(rel_path)

    return sorted(found)


def _skipped(rel_path: str, skip_prefixes: tuple[str, ...]) -> bool:
    return any(rel_path.startswith(p) for p in skip_prefixes)
