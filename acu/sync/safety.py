"""Safety filter — the part of an update set that may run unattended.

Background execution must never introduce new software, force a reinstall,
try to heal a known-broken install, or touch anything that needs a rebuild.
Those changes wait for explicit confirmation.
"""

from __future__ import annotations

import logging
from pathlib import Path

from acu.apps import AppManager
from acu.errors import AppManagerError
from acu.models import AppStatus, FileChange
from acu.utils.fs_ops import dir_exists

logger = logging.getLogger(__name__)


class SafetyFilter:
    """Narrows files and apps to the safe subset."""

    def __init__(self, app_manager: AppManager, apps_dir: str | Path):
        self.app_manager = app_manager
        self.apps_dir = Path(apps_dir)

    def is_safe_file(self, change: FileChange) -> bool:
        return not change.requires_rebuild and not change.is_module_file

    def is_safe_app(self, app: str) -> bool:
        if not dir_exists(self.apps_dir / app):
            logger.debug(f"{app}: new app, needs confirmation")
            return False

        try:
            if self.app_manager.will_reinstall(app):
                logger.debug(f"{app}: requires reinstall, needs confirmation")
                return False
            if self.app_manager.status(app) == AppStatus.CORRUPTED:
                logger.debug(f"{app}: corrupted, needs confirmation")
                return False
        except AppManagerError as e:
            logger.debug(f"{app}: could not be assessed ({e}), needs confirmation")
            return False

        return True

    def safe_subset(
        self, files: list[FileChange], apps: list[str]
    ) -> tuple[list[FileChange], list[str]]:
        safe_files = [f for f in files if self.is_safe_file(f)]
        safe_apps = [a for a in apps if self.is_safe_app(a)]
        return safe_files, safe_apps
