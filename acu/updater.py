"""Updater — wires the components together and implements the run modes.

One ``Updater`` serves one distribution root. Presentation layers (the
console frontend, the CLI) talk to it; it never prints.
"""

from __future__ import annotations

import logging
import os
import subprocess
import threading
import time
from dataclasses import dataclass, field

import httpx

from acu.apps import AppManager, DirectoryAppManager
from acu.builder import BuildRunner
from acu.config import UpdaterConfig
from acu.errors import MirrorError, UpdaterError, UpdatesDisabled
from acu.models import FileChange, UpdateMode, UpdateResult
from acu.sync.backup import BackupManager
from acu.sync.classifier import ChangeClassifier
from acu.sync.lock import UpdateLock
from acu.sync.mirror import MirrorManager
from acu.sync.orchestrator import UpdateOrchestrator
from acu.sync.safety import SafetyFilter
from acu.sync.status import StatusStore

logger = logging.getLogger(__name__)


@dataclass
class CheckReport:
    """What an unattended run found and did."""

    message: str = ""
    files: list[FileChange] = field(default_factory=list)
    apps: list[str] = field(default_factory=list)
    applied: UpdateResult | None = None
    needs_attention: bool = False


class Updater:
    def __init__(
        self,
        config: UpdaterConfig,
        app_manager: AppManager | None = None,
        builder: BuildRunner | None = None,
        fetcher=None,
        http_get=httpx.get,
        sleep=time.sleep,
    ):
        self.config = config
        self.app_manager = app_manager or DirectoryAppManager(config)
        self.builder = builder or BuildRunner(config)
        self.status = StatusStore(config)
        self.mirror = MirrorManager(config, fetcher=fetcher, sleep=sleep)
        self.classifier = ChangeClassifier(config, self.app_manager, self.status)
        self.safety = SafetyFilter(self.app_manager, config.apps_dir)
        self.backups = BackupManager(config, self.builder)
        self.orchestrator = UpdateOrchestrator(
            config, self.app_manager, self.builder, self.backups
        )
        self._http_get = http_get
        self._sleep = sleep

    # -- checking ---------------------------------------------------------

    def check_repo(self, timeout: float | None = None, cancel: threading.Event | None = None) -> None:
        self.mirror.check(timeout=timeout, cancel=cancel)

    def updatable_files(self, use_cache: bool = True) -> list[FileChange]:
        return self.classifier.changed_files(use_cache)

    def updatable_apps(self, use_cache: bool = True) -> list[str]:
        return self.classifier.changed_apps(use_cache)

    def find_updates(self, use_cache: bool = True) -> tuple[list[FileChange], list[str]]:
        files = self.updatable_files(use_cache)
        apps = self.updatable_apps(use_cache)
        self.classifier.check_removed_apps()
        logger.info(f"Found {len(files)} updatable file(s) and {len(apps)} updatable app(s)")
        return files, apps

    def write_status(self, files: list[FileChange], apps: list[str]) -> None:
        self.status.write(files, apps)

    def refresh_status(self) -> None:
        """Recompute and persist the status after the tree changed."""
        files, apps = self.find_updates(use_cache=False)
        self.write_status(files, apps)

    # -- applying ---------------------------------------------------------

    def apply(self, files: list[FileChange], apps: list[str]) -> UpdateResult:
        """Apply the selection; the status files are refreshed after success."""
        result = self.orchestrator.perform_update(files, apps)
        if result.success:
            try:
                self.refresh_status()
            except (OSError, UpdaterError) as e:
                logger.warning(f"Failed to refresh update status: {e}")
        return result

    def update_background_safe(
        self, files: list[FileChange], apps: list[str]
    ) -> UpdateResult | None:
        """Apply only the unattended-safe part of the selection.

        Returns None when nothing is safe to apply.
        """
        safe_files, safe_apps = self.safety.safe_subset(files, apps)
        if not safe_files and not safe_apps:
            logger.info("Nothing can be updated in the background")
            return None

        logger.info(
            f"Updating {len(safe_files)} file(s) and {len(safe_apps)} app(s) in the background"
        )
        result = self.orchestrator.perform_update(safe_files, safe_apps)
        if not result.success:
            logger.warning(f"Background update failed: {result.message}")
        return result

    def rollback(self, backup_path) -> None:
        self.orchestrator.rollback(self.backups.load(backup_path))

    # -- modes ------------------------------------------------------------

    def get_status(self) -> None:
        self.status.get_status()

    def set_status(self, timeout: float | None = None, cancel: threading.Event | None = None) -> None:
        """Check upstream, record the status files, then answer like ``get_status``."""
        self.check_repo(timeout=timeout, cancel=cancel)
        self.run_once_entries()
        files, apps = self.find_updates()
        self.write_status(files, apps)
        self.get_status()

    def autostarted(self, cancel: threading.Event | None = None) -> CheckReport:
        """Unattended check on boot: apply what is safe, record the rest."""
        try:
            self.status.check_interval()
        except UpdatesDisabled as e:
            logger.info(f"Won't check for updates today: {e}")
            return CheckReport(message=f"Won't check for updates today: {e}")

        if not self.has_installed_apps():
            message = "No apps have been installed yet, so exiting now."
            logger.info(message)
            return CheckReport(message=message)

        self.wait_for_connection()
        self.check_repo(cancel=cancel)

        files, apps = self.find_updates()
        report = CheckReport()
        report.applied = self.update_background_safe(files, apps)
        if report.applied is not None:
            files, apps = self.find_updates(use_cache=False)
        self.write_status(files, apps)

        report.files, report.apps = files, apps
        if not files and not apps:
            report.message = "Nothing is updatable."
        else:
            installed = set(self.app_manager.list_apps("installed"))
            pending_installed = [a for a in apps if a in installed]
            if not files and not pending_installed:
                report.message = "No installed apps are updatable."
            else:
                report.needs_attention = True
                report.message = (
                    f"Updates available: {len(files)} file(s), {len(pending_installed)} app(s)"
                )
        logger.info(report.message)
        return report

    def run(self, frontend=None, cancel: threading.Event | None = None):
        """Dispatch on ``config.mode``.

        Interactive and confirm-all modes are delegated to ``frontend``
        (see ``acu.console.ConsoleFrontend``). Everything except
        ``get-status`` runs under the advisory lock.
        """
        mode = self.config.mode
        if mode == UpdateMode.GET_STATUS:
            return self.get_status()

        with UpdateLock(self.config.status_dir):
            if mode == UpdateMode.SET_STATUS:
                return self.set_status(cancel=cancel)
            if mode == UpdateMode.AUTOSTARTED:
                return self.autostarted(cancel=cancel)
            if frontend is None:
                raise ValueError(f"Mode {mode.value} needs a frontend")
            return frontend.run(self)

    # -- helpers ----------------------------------------------------------

    def has_installed_apps(self) -> bool:
        path = self.config.app_status_dir
        return path.is_dir() and any(path.iterdir())

    def wait_for_connection(self) -> None:
        """Poll ``connect_url`` until it answers.

        Raises:
            MirrorError: after ``connect_attempts`` failed tries.
        """
        attempts = self.config.connect_attempts
        for attempt in range(1, attempts + 1):
            try:
                response = self._http_get(self.config.connect_url, timeout=10.0, follow_redirects=True)
                if response.status_code < 500:
                    return
                logger.debug(f"{self.config.connect_url} answered {response.status_code}")
            except httpx.HTTPError as e:
                logger.debug(f"Connection attempt {attempt} failed: {e}")
            if attempt < attempts:
                logger.info(
                    f"No internet connection yet, waiting {self.config.connect_wait_seconds}s "
                    f"({attempt}/{attempts})"
                )
                self._sleep(self.config.connect_wait_seconds)
        raise MirrorError(f"No internet connection after {attempts} attempts")

    def run_once_entries(self) -> None:
        """Run the distribution's one-time migration hook, if it has one."""
        script = self.config.runonce_script
        if not script.is_file() or not os.access(script, os.X_OK):
            return
        logger.info("Running runonce entries...")
        try:
            proc = subprocess.run(
                [str(script)],
                cwd=self.config.directory,
                capture_output=True,
                text=True,
                timeout=self.config.build_timeout_seconds,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning(f"Runonce entries failed: {e}")
            return
        if proc.returncode != 0:
            logger.warning(f"Runonce entries exited with code {proc.returncode}: {proc.stderr.strip()}")
