"""File system primitives — existence, equality and copy for files and trees."""

from __future__ import annotations

import hashlib
import os
import shutil
from pathlib import Path

from acu.utils.file_scanner import scan_tree

CHUNK_SIZE = 8192


def file_exists(path: str | Path) -> bool:
    return os.path.isfile(path)


def dir_exists(path: str | Path) -> bool:
    return os.path.isdir(path)


def hash_file(path: str | Path) -> str:
    """Return the SHA-256 hex digest of a file's bytes."""
    sha256 = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            sha256.update(chunk)
    return sha256.hexdigest()


def files_match(first: str | Path, second: str | Path) -> bool:
    """True when both files exist and hold identical bytes."""
    if os.path.getsize(first) != os.path.getsize(second):
        return False
    return hash_file(first) == hash_file(second)


def tree_digest(root: str | Path) -> dict[str, str]:
    """Map every file under ``root`` (relative POSIX path) to its content hash."""
    root = Path(root)
    return {rel: hash_file(root / rel) for rel in scan_tree(root)}


def trees_match(first: str | Path, second: str | Path) -> bool:
    """Structural comparison: same set of file paths and same bytes per file.

    Metadata (timestamps, permissions) is ignored. A missing directory only
    matches another missing directory.
    """
    first_exists, second_exists = dir_exists(first), dir_exists(second)
    if not first_exists or not second_exists:
        return first_exists == second_exists
    return tree_digest(first) == tree_digest(second)


def copy_file(src: str | Path, dst: str | Path) -> None:
    """Copy one file, creating the destination's parent directories."""
    Path(dst).parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(src, dst)


def copy_tree(src: str | Path, dst: str | Path) -> None:
    """Copy ``src`` over ``dst``, keeping files in ``dst`` that ``src`` lacks."""
    shutil.copytree(src, dst, symlinks=True, dirs_exist_ok=True)


def replace_tree(src: str | Path, dst: str | Path) -> None:
    """Make ``dst`` an exact copy of ``src``."""
    remove_path(dst)
    Path(dst).parent.mkdir(parents=True, exist_ok=True)
    shutil.copytree(src, dst, symlinks=True)


def remove_path(path: str | Path) -> None:
    """Delete a file or directory tree if it exists."""
    if os.path.islink(path) or os.path.isfile(path):
        os.remove(path)
    elif os.path.isdir(path):
        shutil.rmtree(path)


def has_content(path: str | Path) -> bool:
    """True when the file exists and holds any non-whitespace text."""
    try:
        return bool(Path(path).read_text().strip())
    except OSError:
        return False
