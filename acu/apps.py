"""Application manager — the updater's view of the external app manager.

Installing and removing applications is owned by a separate tool. The
updater only needs the five operations of ``AppManager``.
``DirectoryAppManager`` answers the read-only questions from the
distribution tree and delegates install/uninstall to the manage command.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from pathlib import Path
from typing import Protocol

from acu.config import UpdaterConfig
from acu.errors import AppManagerError
from acu.models import AppStatus
from acu.utils.fs_ops import file_exists, files_match

logger = logging.getLogger(__name__)

# Files whose change means an installed app has to be reinstalled
REINSTALL_TRIGGERS = ("install", "install-32", "install-64", "packages")

SCOPES = ("all", "local", "online", "installed")


class AppManager(Protocol):
    def list_apps(self, scope: str) -> list[str]: ...

    def status(self, app: str) -> AppStatus: ...

    def will_reinstall(self, app: str) -> bool: ...

    def install(self, app: str) -> None: ...

    def uninstall(self, app: str) -> None: ...


class DirectoryAppManager:
    """App manager backed by the distribution's ``apps`` and ``data/status`` trees."""

    def __init__(self, config: UpdaterConfig, timeout: int = 3600):
        self.config = config
        self.timeout = timeout

    def list_apps(self, scope: str) -> list[str]:
        """List app names for ``scope``: all, local, online or installed."""
        if scope == "local":
            return _list_dirs(self.config.apps_dir)
        if scope == "online":
            return _list_dirs(self.config.mirror_dir / "apps")
        if scope == "all":
            return sorted(set(self.list_apps("local")) | set(self.list_apps("online")))
        if scope == "installed":
            return [a for a in self.list_apps("local") if self.status(a) == AppStatus.INSTALLED]
        raise ValueError(f"Unknown app scope: {scope} (expected one of {', '.join(SCOPES)})")

    def status(self, app: str) -> AppStatus:
        status_file = self.config.app_status_dir / app
        try:
            text = status_file.read_text().strip()
        except FileNotFoundError:
            return AppStatus.UNINSTALLED
        except OSError as e:
            raise AppManagerError(f"Could not read status of {app}: {e}") from e

        if not text:
            return AppStatus.UNINSTALLED
        try:
            return AppStatus(text)
        except ValueError:
            return AppStatus.CORRUPTED

    def will_reinstall(self, app: str) -> bool:
        """True if the app is installed and its install definition changed upstream."""
        if self.status(app) != AppStatus.INSTALLED:
            return False

        local_dir = self.config.apps_dir / app
        mirror_dir = self.config.mirror_dir / "apps" / app
        for name in REINSTALL_TRIGGERS:
            local, upstream = local_dir / name, mirror_dir / name
            local_exists, upstream_exists = file_exists(local), file_exists(upstream)
            if local_exists != upstream_exists:
                return True
            if local_exists and not files_match(local, upstream):
                return True
        return False

    def install(self, app: str) -> None:
        self._manage("install", app)

    def uninstall(self, app: str) -> None:
        self._manage("uninstall", app)

    def _manage(self, action: str, app: str) -> None:
        command = shlex.split(self.config.manage_command) + [action, app]
        logger.info(f"Running {' '.join(command)}")
        try:
            proc = subprocess.run(
                command,
                cwd=self.config.directory,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise AppManagerError(f"Failed to {action} {app}: {e}") from e

        if proc.returncode != 0:
            detail = (proc.stderr or proc.stdout).strip()[-2000:]
            raise AppManagerError(f"Failed to {action} {app} (exit {proc.returncode}): {detail}")


def _list_dirs(path: Path) -> list[str]:
    if not path.is_dir():
        return []
    return sorted(p.name for p in path.iterdir() if p.is_dir() and not p.name.startswith("."))
