"""Typed failures raised by the updater components.

Inner components raise these; the orchestrator is the single place that
turns them into an ``UpdateResult`` for presentation layers.
"""

from __future__ import annotations


class UpdaterError(Exception):
    """Base class for every updater failure."""


class MirrorError(UpdaterError):
    """The upstream catalog could not be fetched or refreshed."""


class ComparisonError(UpdaterError):
    """Walking or reading the mirror/local trees failed."""


class BackupError(UpdaterError):
    """A pre-update snapshot could not be written."""


class ApplyError(UpdaterError):
    """Copying a file or applying an app change failed.

    ``target`` names the file path or app the failure belongs to.
    """

    def __init__(self, message: str, target: str = "", kind: str = "file"):
        super().__init__(message)
        self.target = target
        self.kind = kind


class AppManagerError(UpdaterError):
    """The external application manager reported a failure."""


class BuildError(UpdaterError):
    """An external build step exited unsuccessfully."""

    def __init__(self, message: str, output: str = ""):
        super().__init__(message)
        self.output = output


class DependencyRefreshError(BuildError):
    """The dependency-refresh (manifest tidy) step failed."""


class RebuildError(BuildError):
    """The rebuild step failed; the running binary may be stale."""


class RestoreError(UpdaterError):
    """Restoring a snapshot failed."""


class UpdateInProgressError(UpdaterError):
    """Another check or apply already holds the distribution root."""


class UpdatesDisabled(UpdaterError):
    """The update-check interval policy says not to check now."""


class NoUpdatesAvailable(UpdaterError):
    """A status-only check found nothing to update.

    This is a normal negative answer, not a fault.
    """
