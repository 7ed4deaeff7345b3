"""Change classifier — which files and apps differ between mirror and local tree.

File rules, applied to the union of both trees (minus version control,
app and variable-data regions):

1. Only in the mirror: changed (a new file).
2. Only local: ignored; local-only files are not tracked.
3. In both: changed iff the bytes differ.

An app is changed if upstream knows it and either it is missing locally or
its directory differs structurally from the mirror's. Installation status
never decides membership.

With ``speed=fast`` and a persisted status cache, the cached lists are
returned instead; such results may be stale.
"""

from __future__ import annotations

import logging

from acu.apps import AppManager
from acu.config import UpdaterConfig
from acu.errors import AppManagerError, ComparisonError
from acu.models import AppStatus, FileChange, UpdateSpeed
from acu.sync.exclusion import ExclusionFilter
from acu.sync.status import StatusStore
from acu.utils.file_scanner import LOCAL_SKIP_PREFIXES, MIRROR_SKIP_PREFIXES, scan_tree
from acu.utils.fs_ops import dir_exists, file_exists, files_match, trees_match

logger = logging.getLogger(__name__)


class ChangeClassifier:
    """Computes the changed-file and changed-app sets for one distribution root."""

    def __init__(
        self,
        config: UpdaterConfig,
        app_manager: AppManager,
        status: StatusStore | None = None,
        exclusions: ExclusionFilter | None = None,
    ):
        self.config = config
        self.app_manager = app_manager
        self.status = status or StatusStore(config)
        self.exclusions = exclusions or ExclusionFilter(config.exclusion_file)

    def changed_files(self, use_cache: bool = True) -> list[FileChange]:
        """Changed files, minus administrator exclusions.

        ``use_cache=False`` forces a fresh comparison even in fast mode.

        Raises:
            ComparisonError: if either tree cannot be walked or read.
        """
        if use_cache and self._fast() and self.status.has_cached_files():
            return self.exclusions.filter(self.status.read_files())

        mirror = self.config.mirror_dir
        root = self.config.directory
        changed = []

        try:
            for path in self.list_all_files():
                upstream = mirror / path
                if not file_exists(upstream):
                    continue
                local = root / path
                if file_exists(local) and files_match(local, upstream):
                    continue
                changed.append(FileChange.from_path(path))
        except OSError as e:
            raise ComparisonError(f"Failed to compare files: {e}") from e

        return self.exclusions.filter(changed)

    def changed_apps(self, use_cache: bool = True) -> list[str]:
        """Upstream apps that are new locally or whose directory differs.

        Raises:
            ComparisonError: if an app directory cannot be read or the
                upstream app list cannot be obtained.
        """
        if use_cache and self._fast() and self.status.has_cached_apps():
            return self.status.read_apps()

        try:
            online_apps = self.app_manager.list_apps("online")
        except AppManagerError as e:
            raise ComparisonError(f"Failed to list upstream apps: {e}") from e

        changed = []
        for app in online_apps:
            local = self.config.apps_dir / app
            upstream = self.config.mirror_dir / "apps" / app
            if not dir_exists(local):
                changed.append(app)
                continue
            try:
                if not trees_match(local, upstream):
                    changed.append(app)
            except OSError as e:
                raise ComparisonError(f"Failed to compare app {app}: {e}") from e

        return changed

    def _fast(self) -> bool:
        return self.config.speed == UpdateSpeed.FAST

    def list_all_files(self) -> list[str]:
        """Sorted union of the comparable paths in the mirror and the local tree."""
        mirror_files = scan_tree(self.config.mirror_dir, MIRROR_SKIP_PREFIXES)
        local_files = scan_tree(self.config.directory, LOCAL_SKIP_PREFIXES)
        return sorted(set(mirror_files) | set(local_files))

    def removed_apps(self) -> list[str]:
        """Apps present locally but no longer known upstream."""
        online = set(self.app_manager.list_apps("online"))
        return [app for app in self.app_manager.list_apps("local") if app not in online]

    def check_removed_apps(self) -> list[str]:
        """Warn about installed apps that upstream no longer carries.

        Nothing is uninstalled or deleted here; deprecation is handled by
        a separate mechanism. Returns the installed, removed apps.
        """
        flagged = []
        for app in self.removed_apps():
            try:
                status = self.app_manager.status(app)
            except AppManagerError as e:
                logger.debug(f"Skipping removed app {app}: {e}")
                continue
            if status == AppStatus.INSTALLED and dir_exists(self.config.apps_dir / app):
                logger.warning(
                    f"App '{app}' was removed from the repository but is still installed. "
                    "Consider deprecating it."
                )
                flagged.append(app)
        return flagged
