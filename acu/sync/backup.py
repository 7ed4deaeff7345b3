"""Backup & rollback — snapshot what an update will touch, restore it on failure.

A snapshot lives in ``<root>/update-backup/backup_<timestamp>/``:

    files/<relative path>   pre-update bytes of every targeted file
    apps/<app>/...          pre-update tree of every targeted app
    rollback.yaml           what was saved, what was new, rebuild state

Targets that did not exist yet are recorded as new; restoring removes them
again, so a restored tree matches the pre-update tree exactly. Restoring is
idempotent.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

import yaml

from acu.builder import BuildRunner
from acu.config import UpdaterConfig
from acu.errors import BackupError, BuildError, RestoreError
from acu.models import CompilationState, RollbackData
from acu.utils.fs_ops import copy_file, dir_exists, file_exists, remove_path, replace_tree

logger = logging.getLogger(__name__)

METADATA_FILE = "rollback.yaml"
FILES_DIR = "files"
APPS_DIR = "apps"


class BackupManager:
    """Creates and restores pre-update snapshots for one distribution root."""

    def __init__(self, config: UpdaterConfig, builder: BuildRunner):
        self.config = config
        self.builder = builder

    def backup(self, files: list[str], apps: list[str]) -> RollbackData:
        """Snapshot ``files`` (relative paths) and ``apps`` before mutation.

        Returns the ``RollbackData`` describing the snapshot; its
        ``backup_path`` is the snapshot directory.

        Raises:
            BackupError: nothing has been mutated; the partial snapshot is removed.
        """
        now = datetime.now(timezone.utc)
        backup_dir = self.config.backup_root / f"backup_{now.strftime('%Y%m%d_%H%M%S_%f')}"
        data = RollbackData(backup_path=str(backup_dir), created_at=now.isoformat())

        try:
            backup_dir.mkdir(parents=True, exist_ok=False)

            for rel_path in dict.fromkeys(files):
                src = self.config.directory / rel_path
                if file_exists(src):
                    dst = backup_dir / FILES_DIR / rel_path
                    copy_file(src, dst)
                    data.original_files[rel_path] = str(dst)
                else:
                    data.new_files.append(rel_path)

            for app in dict.fromkeys(apps):
                src = self.config.apps_dir / app
                if dir_exists(src):
                    replace_tree(src, backup_dir / APPS_DIR / app)
                    data.original_apps.append(app)
                else:
                    data.new_apps.append(app)

            self.save(data)
        except OSError as e:
            remove_path(backup_dir)
            raise BackupError(f"Failed to create backup: {e}") from e

        logger.info(
            f"Backed up {len(data.original_files)} file(s) and {len(data.original_apps)} app(s) "
            f"to {backup_dir}"
        )
        return data

    def restore(self, data: RollbackData) -> None:
        """Put the snapshot back over the live tree.

        If the snapshot records a successful rebuild, the rebuild is run
        again so the restored sources and the binary agree.

        Raises:
            RestoreError: the failure is reported; no further rollback is attempted.
        """
        if not data.backup_path:
            raise RestoreError("No backup to roll back to")
        backup_dir = Path(data.backup_path)
        if not dir_exists(backup_dir):
            raise RestoreError(f"Backup directory is missing: {backup_dir}")

        logger.info(f"Rolling back changes from {backup_dir}...")
        root = self.config.directory
        try:
            for rel_path in data.original_files:
                copy_file(backup_dir / FILES_DIR / rel_path, root / rel_path)
            for rel_path in data.new_files:
                remove_path(root / rel_path)
                _prune_empty_parents(root / rel_path, root)

            for app in data.original_apps:
                replace_tree(backup_dir / APPS_DIR / app, self.config.apps_dir / app)
            for app in data.new_apps:
                remove_path(self.config.apps_dir / app)
        except OSError as e:
            raise RestoreError(f"Failed to restore files: {e}") from e

        if data.compilation_state == CompilationState.SUCCESS:
            try:
                self.builder.rebuild()
            except BuildError as e:
                raise RestoreError(f"Failed to recompile during rollback: {e}") from e

        logger.info("Rollback completed")

    def save(self, data: RollbackData) -> None:
        """Write (or rewrite) the snapshot's metadata."""
        path = Path(data.backup_path) / METADATA_FILE
        with open(path, "w") as f:
            yaml.safe_dump(_data_to_dict(data), f, sort_keys=False)

    def load(self, backup_path: str | Path) -> RollbackData:
        """Reconstruct ``RollbackData`` from a snapshot directory.

        Raises:
            RestoreError: if the directory holds no readable metadata.
        """
        path = Path(backup_path) / METADATA_FILE
        try:
            with open(path) as f:
                raw = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise RestoreError(f"Not a readable backup: {backup_path} ({e})") from e
        return _dict_to_data(raw, Path(backup_path))

    def list_backups(self) -> list[Path]:
        """Snapshot directories, newest first."""
        root = self.config.backup_root
        if not root.is_dir():
            return []
        return sorted(
            (p for p in root.iterdir() if p.is_dir() and (p / METADATA_FILE).is_file()),
            key=lambda p: p.name,
            reverse=True,
        )


def _prune_empty_parents(path: Path, stop: Path) -> None:
    """Remove directories left empty by deleting ``path``, up to ``stop``."""
    parent = path.parent
    while parent != stop and stop in parent.parents:
        try:
            parent.rmdir()
        except OSError:
            return
        parent = parent.parent


def _data_to_dict(data: RollbackData) -> dict:
    return {
        "created_at": data.created_at,
        "compilation_state": data.compilation_state.value,
        "original_files": sorted(data.original_files),
        "original_apps": list(data.original_apps),
        "new_files": list(data.new_files),
        "new_apps": list(data.new_apps),
    }


def _dict_to_data(raw: dict, backup_dir: Path) -> RollbackData:
    return RollbackData(
        backup_path=str(backup_dir),
        created_at=raw.get("created_at", ""),
        compilation_state=CompilationState(raw.get("compilation_state", "not-attempted")),
        original_files={p: str(backup_dir / FILES_DIR / p) for p in raw.get("original_files", [])},
        original_apps=raw.get("original_apps", []),
        new_files=raw.get("new_files", []),
        new_apps=raw.get("new_apps", []),
    )
