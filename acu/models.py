"""Core data models for the updater.

Covers: run configuration enums, change records produced by the
classifier, and the result/rollback records produced by the orchestrator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class UpdateMode(Enum):
    """How the updater interacts with the user."""

    AUTOSTARTED = "autostarted"  # Unattended check on boot
    GET_STATUS = "get-status"  # Answer from the status cache via exit code
    SET_STATUS = "set-status"  # Check upstream and record the status cache
    GUI = "gui"
    GUI_YES = "gui-yes"
    CLI = "cli"
    CLI_YES = "cli-yes"

    @property
    def unattended(self) -> bool:
        return self in (UpdateMode.AUTOSTARTED, UpdateMode.GUI_YES, UpdateMode.CLI_YES)


class UpdateSpeed(Enum):
    """Whether the mirror is refreshed or cached results are reused."""

    NORMAL = "normal"
    FAST = "fast"  # Results may be stale


class FileCategory(Enum):
    """Risk category of a changed file, derived from its path."""

    MODULE = "module"
    SOURCE = "source"
    BUILD_SCRIPT = "build-script"
    APP_ASSET = "app-asset"
    IMAGE = "image"
    BINARY = "binary"
    PLAIN = "plain"


class AppStatus(Enum):
    INSTALLED = "installed"
    UNINSTALLED = "uninstalled"
    CORRUPTED = "corrupted"


class CompilationState(Enum):
    """Rebuild state recorded alongside a snapshot."""

    NOT_ATTEMPTED = "not-attempted"
    SUCCESS = "success"
    FAILED = "failed"


class UpdateState(Enum):
    """Stages of one orchestrated apply."""

    START = "start"
    BACKED_UP = "backed-up"
    FILES_APPLIED = "files-applied"
    APPS_APPLIED = "apps-applied"
    MODULE_REFRESHED = "module-refreshed"
    REBUILT = "rebuilt"
    FINALIZED = "finalized"
    FAILED = "failed"
    ROLLED_BACK = "rolled-back"
    ROLLBACK_UNAVAILABLE = "rollback-unavailable"


@dataclass(frozen=True)
class FileChange:
    """A distribution-relative path that differs between mirror and local tree."""

    path: str
    category: FileCategory = FileCategory.PLAIN
    requires_rebuild: bool = False
    is_module_file: bool = False

    @classmethod
    def from_path(cls, path: str) -> FileChange:
        from acu.utils.file_scanner import classify_path, is_module_file, requires_rebuild

        return cls(
            path=path,
            category=classify_path(path),
            requires_rebuild=requires_rebuild(path),
            is_module_file=is_module_file(path),
        )

    @property
    def note(self) -> str:
        """Short annotation for listings."""
        if self.is_module_file:
            return "module update and recompilation required"
        if self.requires_rebuild:
            return "requires recompile"
        return ""


@dataclass
class RollbackData:
    """What a snapshot holds and the rebuild state at the time it was taken."""

    backup_path: str = ""
    compilation_state: CompilationState = CompilationState.NOT_ATTEMPTED
    original_files: dict[str, str] = field(default_factory=dict)  # live path -> snapshot copy
    original_apps: list[str] = field(default_factory=list)
    new_files: list[str] = field(default_factory=list)  # absent before the update
    new_apps: list[str] = field(default_factory=list)
    created_at: str = ""  # ISO 8601


@dataclass
class UpdateResult:
    """Outcome of one orchestrated apply."""

    success: bool = True
    message: str = ""
    failed_apps: list[str] = field(default_factory=list)
    failed_files: list[str] = field(default_factory=list)
    recompiled: bool = False
    module_refreshed: bool = False
    rollback_data: RollbackData | None = None
    state: UpdateState = UpdateState.START
    restore_error: str = ""

    @property
    def can_roll_back(self) -> bool:
        return self.rollback_data is not None and bool(self.rollback_data.backup_path)

    def summary(self) -> str:
        lines = [f"Result:  {'SUCCESS' if self.success else 'FAILED'}", f"Message: {self.message}"]
        if self.failed_files:
            lines.append(f"Failed files: {', '.join(self.failed_files)}")
        if self.failed_apps:
            lines.append(f"Failed apps:  {', '.join(self.failed_apps)}")
        if self.rollback_data and self.rollback_data.backup_path:
            lines.append(f"Backup:  {self.rollback_data.backup_path}")
        lines.append(f"State:   {self.state.value}")
        return "\n".join(lines)
