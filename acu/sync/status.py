"""Status store — the plain-text update-status cache and check-interval policy.

Files under the distribution's ``data`` directory:

- ``update-status/updatable-files``: changed file paths, one per line
- ``update-status/updatable-apps``: changed app names, one per line
- ``last-update-check``: day count (days since the epoch) of the last check
- ``settings/Check for updates``: Never | Daily | Weekly | Always
"""

from __future__ import annotations

import logging
import time
from pathlib import Path

from acu.config import UpdaterConfig
from acu.errors import NoUpdatesAvailable, UpdatesDisabled
from acu.models import FileChange
from acu.utils.fs_ops import has_content

logger = logging.getLogger(__name__)

FILES_STATUS = "updatable-files"
APPS_STATUS = "updatable-apps"

DEFAULT_INTERVAL = "Weekly"
SECONDS_PER_DAY = 86400


def current_day(now: float | None = None) -> int:
    """Days since the epoch."""
    return int((time.time() if now is None else now) // SECONDS_PER_DAY)


class StatusStore:
    """Reads and writes the persisted update status for one distribution root."""

    def __init__(self, config: UpdaterConfig):
        self.config = config

    @property
    def files_path(self) -> Path:
        return self.config.status_dir / FILES_STATUS

    @property
    def apps_path(self) -> Path:
        return self.config.status_dir / APPS_STATUS

    def has_cached_files(self) -> bool:
        return self.files_path.is_file()

    def has_cached_apps(self) -> bool:
        return self.apps_path.is_file()

    def write(self, files: list[FileChange], apps: list[str]) -> None:
        self.config.status_dir.mkdir(parents=True, exist_ok=True)
        self.files_path.write_text(_join_lines(f.path for f in files))
        self.apps_path.write_text(_join_lines(apps))
        logger.debug(f"Wrote update status: {len(files)} file(s), {len(apps)} app(s)")

    def read_files(self) -> list[FileChange]:
        return [FileChange.from_path(p) for p in _read_lines(self.files_path)]

    def read_apps(self) -> list[str]:
        return _read_lines(self.apps_path)

    def has_updates(self) -> bool:
        return has_content(self.files_path) or has_content(self.apps_path)

    def get_status(self) -> None:
        """Succeed if updates are pending, raise ``NoUpdatesAvailable`` otherwise."""
        if not self.has_updates():
            raise NoUpdatesAvailable("no updates available")

    def check_interval(self, now: float | None = None) -> None:
        """Apply the check-interval setting, recording today as the last check.

        Raises:
            UpdatesDisabled: when the policy says not to check now.
        """
        last_check = 0
        try:
            last_check = int(self.config.last_check_file.read_text().strip())
        except (OSError, ValueError):
            pass

        today = current_day(now)
        self.config.last_check_file.parent.mkdir(parents=True, exist_ok=True)
        self.config.last_check_file.write_text(str(today))

        interval = DEFAULT_INTERVAL
        try:
            interval = self.config.interval_file.read_text().strip() or DEFAULT_INTERVAL
        except OSError:
            pass

        if interval == "Never":
            raise UpdatesDisabled("update checking is disabled")
        if interval == "Daily" and today == last_check:
            raise UpdatesDisabled("already checked today")
        if interval == "Weekly" and today <= last_check + 7:
            raise UpdatesDisabled("checked within last week")


def _join_lines(items) -> str:
    lines = list(items)
    return "\n".join(lines) + "\n" if lines else ""


def _read_lines(path: Path) -> list[str]:
    try:
        text = path.read_text()
    except FileNotFoundError:
        return []
    return [line.strip() for line in text.splitlines() if line.strip()]
