"""Update orchestrator — the staged apply with backup and rollback.

Stages, strictly in order, targets within a stage processed one at a time:

    Start -> BackedUp -> FilesApplied -> AppsApplied
          -> [ModuleRefreshed] -> [Rebuilt] -> Finalized

Any stage after the backup may fail; the snapshot is then restored
(RolledBack), or the failure is reported as RollbackUnavailable if the
restore itself fails. A failed backup aborts before anything is mutated.
Once the backup has begun the apply runs to completion or rollback; it
cannot be cancelled midway.
"""

from __future__ import annotations

import logging

from acu.apps import AppManager
from acu.builder import BuildRunner
from acu.config import UpdaterConfig
from acu.errors import (
    AppManagerError,
    ApplyError,
    BackupError,
    BuildError,
    DependencyRefreshError,
    RestoreError,
    UpdateInProgressError,
)
from acu.models import (
    AppStatus,
    CompilationState,
    FileChange,
    RollbackData,
    UpdateResult,
    UpdateState,
)
from acu.sync.backup import BackupManager
from acu.utils.file_scanner import MODULE_FILES
from acu.utils.fs_ops import copy_file, dir_exists, file_exists, replace_tree

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Update completed successfully"


def needs_module_refresh(files: list[FileChange]) -> bool:
    return any(f.is_module_file for f in files)


def needs_rebuild(files: list[FileChange]) -> bool:
    """True if a targeted source or build script changed.

    Manifest changes alone are settled by the dependency refresh.
    """
    return any(f.requires_rebuild and not f.is_module_file for f in files)


def compose_message(module_refreshed: bool, recompiled: bool) -> str:
    if module_refreshed and recompiled:
        return f"{SUCCESS_MESSAGE} (Module dependencies updated and recompilation completed)"
    if module_refreshed:
        return f"{SUCCESS_MESSAGE} (Module dependencies updated)"
    if recompiled:
        return f"{SUCCESS_MESSAGE} (Recompilation completed)"
    return SUCCESS_MESSAGE


class UpdateOrchestrator:
    """Applies a selected set of file and app changes to the local tree."""

    def __init__(
        self,
        config: UpdaterConfig,
        app_manager: AppManager,
        builder: BuildRunner | None = None,
        backups: BackupManager | None = None,
    ):
        self.config = config
        self.app_manager = app_manager
        self.builder = builder or BuildRunner(config)
        self.backups = backups or BackupManager(config, self.builder)
        self._busy = False

    @property
    def busy(self) -> bool:
        return self._busy

    def perform_update(self, files: list[FileChange], apps: list[str]) -> UpdateResult:
        """Run the full staged apply; never raises for apply-stage failures.

        Raises:
            UpdateInProgressError: if an apply is already running in this process.
        """
        if self._busy:
            raise UpdateInProgressError("An update is already being applied")
        self._busy = True
        try:
            return self._perform_update(files, apps)
        finally:
            self._busy = False

    def _perform_update(self, files: list[FileChange], apps: list[str]) -> UpdateResult:
        result = UpdateResult()
        refresh_modules = needs_module_refresh(files)
        rebuild = needs_rebuild(files)

        # The dependency refresh may rewrite every manifest, targeted or not
        backup_paths = [f.path for f in files]
        if refresh_modules:
            backup_paths += [m for m in MODULE_FILES if file_exists(self.config.directory / m)]

        logger.info("Step 1/6: Creating backup...")
        try:
            rollback_data = self.backups.backup(backup_paths, apps)
        except BackupError as e:
            logger.error(str(e))
            result.success = False
            result.message = str(e)
            result.state = UpdateState.FAILED
            return result
        result.rollback_data = rollback_data
        result.state = UpdateState.BACKED_UP

        logger.info(f"Step 2/6: Updating {len(files)} file(s)...")
        try:
            self.update_files(files)
        except ApplyError as e:
            result.failed_files.append(e.target)
            return self._fail(result, f"Failed to update files: {e}")
        result.state = UpdateState.FILES_APPLIED

        logger.info(f"Step 3/6: Updating {len(apps)} app(s)...")
        try:
            self.update_apps(apps)
        except ApplyError as e:
            result.failed_apps.append(e.target)
            return self._fail(result, f"Failed to update apps: {e}")
        result.state = UpdateState.APPS_APPLIED

        if refresh_modules:
            logger.info("Step 4/6: Refreshing module dependencies...")
            try:
                self.builder.refresh_dependencies()
            except DependencyRefreshError as e:
                rollback_data.compilation_state = CompilationState.FAILED
                return self._fail(result, f"Module update failed: {e}", e.output)
            result.module_refreshed = True
            result.state = UpdateState.MODULE_REFRESHED
            self.sync_mirror_manifests()

        if rebuild:
            logger.info("Step 5/6: Recompiling...")
            try:
                self.builder.rebuild()
            except BuildError as e:
                rollback_data.compilation_state = CompilationState.FAILED
                return self._fail(result, f"Compilation failed: {e}", e.output)
            rollback_data.compilation_state = CompilationState.SUCCESS
            result.recompiled = True
            result.state = UpdateState.REBUILT
            self._save_rollback_state(rollback_data)

        if not refresh_modules:
            logger.info("Step 6/6: Marking local tree as caught up...")
            try:
                self.finalize_ref()
            except OSError as e:
                logger.warning(f"Failed to update local git metadata: {e}")

        result.state = UpdateState.FINALIZED
        result.message = compose_message(result.module_refreshed, result.recompiled)
        # Snapshot stays on disk for a manual rollback, but the apply is confirmed
        result.rollback_data = None
        logger.info(result.message)
        return result

    def _fail(self, result: UpdateResult, message: str, output: str = "") -> UpdateResult:
        logger.error(message)
        if output:
            logger.debug(f"Command output:\n{output}")
        result.success = False
        result.message = message
        result.state = UpdateState.FAILED

        data = result.rollback_data
        self._save_rollback_state(data)
        try:
            self.backups.restore(data)
        except RestoreError as e:
            logger.error(f"Rollback failed: {e}")
            result.restore_error = str(e)
            result.message = f"{message} (rollback failed: {e})"
            result.state = UpdateState.ROLLBACK_UNAVAILABLE
            return result

        result.state = UpdateState.ROLLED_BACK
        return result

    def _save_rollback_state(self, data: RollbackData) -> None:
        try:
            self.backups.save(data)
        except OSError as e:
            logger.warning(f"Could not record rollback state in {data.backup_path}: {e}")

    # -- stage operations -------------------------------------------------

    def update_files(self, files: list[FileChange]) -> None:
        """Overwrite each local file with its mirror counterpart."""
        for change in files:
            src = self.config.mirror_dir / change.path
            dst = self.config.directory / change.path
            try:
                copy_file(src, dst)
            except OSError as e:
                raise ApplyError(
                    f"failed to update file {change.path}: {e}", target=change.path
                ) from e

    def update_apps(self, apps: list[str]) -> None:
        """Refresh each app, reinstalling those the app manager says need it."""
        for app in apps:
            try:
                reinstall = self.app_manager.will_reinstall(app)
            except (AppManagerError, OSError) as e:
                raise ApplyError(
                    f"failed to check if app {app} will be reinstalled: {e}", target=app, kind="app"
                ) from e

            if reinstall:
                self.reinstall_app(app)
            else:
                self.refresh_app(app)

    def refresh_app(self, app: str) -> None:
        """Replace the app's local directory with the mirror's; installation untouched."""
        src = self.config.mirror_dir / "apps" / app
        if not dir_exists(src):
            raise ApplyError(f"app {app} is not in the mirror", target=app, kind="app")
        try:
            replace_tree(src, self.config.apps_dir / app)
        except OSError as e:
            raise ApplyError(f"failed to refresh app {app}: {e}", target=app, kind="app") from e
        logger.info(f"Refreshed {app}")

    def reinstall_app(self, app: str) -> None:
        """Uninstall, refresh, then install again."""
        try:
            if self.app_manager.status(app) != AppStatus.UNINSTALLED:
                self.app_manager.uninstall(app)
        except (AppManagerError, OSError) as e:
            raise ApplyError(f"failed to uninstall app {app}: {e}", target=app, kind="app") from e

        self.refresh_app(app)

        try:
            self.app_manager.install(app)
        except (AppManagerError, OSError) as e:
            raise ApplyError(f"failed to install app {app}: {e}", target=app, kind="app") from e
        logger.info(f"Reinstalled {app}")

    def sync_mirror_manifests(self) -> None:
        """Copy the freshly tidied manifests back into the mirror.

        Without this the next check compares the tidied local manifests
        against the untidied upstream ones and reports them as changed
        forever.
        """
        for name in MODULE_FILES:
            local = self.config.directory / name
            if not file_exists(local):
                continue
            try:
                copy_file(local, self.config.mirror_dir / name)
            except OSError as e:
                logger.warning(f"Failed to update {name} in the mirror after module refresh: {e}")

    def finalize_ref(self) -> None:
        """Replace the local git metadata with the mirror's."""
        src = self.config.mirror_dir / ".git"
        if not dir_exists(src):
            raise FileNotFoundError(f"Mirror has no git metadata: {src}")
        replace_tree(src, self.config.directory / ".git")

    def rollback(self, data: RollbackData) -> None:
        """Restore a snapshot on request (e.g. after the user accepts a rollback offer)."""
        self.backups.restore(data)
