"""Exclusion filter — administrator-blacklisted paths that are never updated.

The exclusion list holds one distribution-relative path per line. Lines
starting with ``#`` or ``;`` are comments. Matching is exact: no globbing,
no prefix matching.
"""

from __future__ import annotations

import logging
from pathlib import Path

from acu.models import FileChange

logger = logging.getLogger(__name__)

COMMENT_PREFIXES = ("#", ";")


def load_exclusions(path: str | Path) -> set[str]:
    """Read the exclusion list. A missing or unreadable list excludes nothing."""
    path = Path(path)
    if not path.is_file():
        return set()

    try:
        text = path.read_text()
    except OSError as e:
        logger.warning(f"Could not read exclusion list {path}: {e}")
        return set()

    excluded = set()
    for line in text.splitlines():
        line = line.strip()
        if line and not line.startswith(COMMENT_PREFIXES):
            excluded.add(line)
    return excluded


class ExclusionFilter:
    """Drops changes whose path is listed in the exclusion file."""

    def __init__(self, exclusion_file: str | Path):
        self.exclusion_file = Path(exclusion_file)

    def filter(self, changes: list[FileChange]) -> list[FileChange]:
        excluded = load_exclusions(self.exclusion_file)
        if not excluded:
            return list(changes)

        kept = [c for c in changes if c.path not in excluded]
        dropped = len(changes) - len(kept)
        if dropped:
            logger.info(f"Excluded {dropped} file(s) listed in {self.exclusion_file}")
        return kept
