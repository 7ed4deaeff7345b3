"""Updater configuration.

The distribution root and everything derived from it travel as one explicit
``UpdaterConfig`` value handed to each component. Optional overrides live in
``<root>/etc/updater.yaml``:

    git_url: https://github.com/example/catalog
    branch: main
    rebuild_command: make install
    refresh_command: go mod tidy
    manage_command: ./manage
    fetch_retry_seconds: 60
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path

import yaml

from acu.models import UpdateMode, UpdateSpeed

logger = logging.getLogger(__name__)

DEFAULT_GIT_URL = "https://github.com/pi-apps-go/pi-apps"
CONFIG_FILE = Path("etc") / "updater.yaml"
GIT_URL_FILE = Path("etc") / "git_url"

# Set when the distribution is installed as a single multi-call binary
MULTI_CALL_ENV = "ACU_MULTI_CALL_BINARY"


@dataclass
class UpdaterConfig:
    """Everything the updater needs to know about one distribution root."""

    directory: Path
    mode: UpdateMode = UpdateMode.CLI
    speed: UpdateSpeed = UpdateSpeed.NORMAL
    git_url: str = DEFAULT_GIT_URL
    branch: str = ""
    rebuild_command: str = "make install"
    multi_call_rebuild_command: str = "make install-with-multi-call"
    multi_call: bool = False
    refresh_command: str = "go mod tidy"
    manage_command: str = "manage"
    build_timeout_seconds: int = 1800
    fetch_retry_seconds: int = 60
    connect_url: str = "https://github.com"
    connect_attempts: int = 18
    connect_wait_seconds: int = 10

    def __post_init__(self):
        self.directory = Path(self.directory)

    # -- derived paths ----------------------------------------------------

    @property
    def repo_name(self) -> str:
        name = self.git_url.rstrip("/").rsplit("/", 1)[-1]
        return name[:-4] if name.endswith(".git") else name or "catalog"

    @property
    def update_dir(self) -> Path:
        return self.directory / "update"

    @property
    def mirror_dir(self) -> Path:
        return self.update_dir / self.repo_name

    @property
    def apps_dir(self) -> Path:
        return self.directory / "apps"

    @property
    def data_dir(self) -> Path:
        return self.directory / "data"

    @property
    def status_dir(self) -> Path:
        return self.data_dir / "update-status"

    @property
    def app_status_dir(self) -> Path:
        return self.data_dir / "status"

    @property
    def exclusion_file(self) -> Path:
        return self.data_dir / "update-exclusion"

    @property
    def last_check_file(self) -> Path:
        return self.data_dir / "last-update-check"

    @property
    def interval_file(self) -> Path:
        return self.data_dir / "settings" / "Check for updates"

    @property
    def backup_root(self) -> Path:
        return self.directory / "update-backup"

    @property
    def runonce_script(self) -> Path:
        return self.directory / "etc" / "runonce-entries"

    @property
    def effective_rebuild_command(self) -> str:
        return self.multi_call_rebuild_command if self.multi_call else self.rebuild_command


def load_config(
    directory: str | Path,
    mode: UpdateMode = UpdateMode.CLI,
    speed: UpdateSpeed = UpdateSpeed.NORMAL,
    config_path: str | Path | None = None,
) -> UpdaterConfig:
    """Build the configuration for a distribution root.

    Precedence for the upstream URL: ``git_url`` in the YAML file, then the
    one-line ``etc/git_url`` file, then the built-in default.
    """
    directory = Path(directory)
    config = UpdaterConfig(directory=directory, mode=mode, speed=speed)

    git_url_file = directory / GIT_URL_FILE
    if git_url_file.is_file():
        url = git_url_file.read_text().strip()
        if url:
            config.git_url = url

    path = Path(config_path) if config_path else directory / CONFIG_FILE
    if path.is_file():
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        _apply_overrides(config, data, path)

    if os.environ.get(MULTI_CALL_ENV):
        config.multi_call = True

    return config


def validate_directory(directory: str | Path) -> None:
    """Raise ``ValueError`` unless ``directory`` looks like a distribution root."""
    path = Path(directory)
    if not path.is_dir():
        raise ValueError(f"Directory does not exist: {directory}")
    if not (path / "apps").is_dir():
        raise ValueError(f"Not a distribution root (no apps/ directory): {directory}")


def _apply_overrides(config: UpdaterConfig, data: dict, source: Path) -> None:
    known = {f.name: f for f in fields(config)}
    for key, value in data.items():
        if key in ("directory", "mode", "speed"):
            logger.warning(f"Ignoring '{key}' in {source}: set on the command line instead")
            continue
        if key not in known:
            logger.warning(f"Unknown updater setting '{key}' in {source}")
            continue
        current = getattr(config, key)
        if isinstance(current, bool):
            value = bool(value)
        elif isinstance(current, int):
            value = int(value)
        else:
            value = str(value)
        setattr(config, key, value)
