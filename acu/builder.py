"""Build runner — the distribution's external rebuild and dependency-refresh steps.

Both steps are opaque commands run in the distribution root. Success is a
zero exit status; the captured output is kept for diagnostics.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
import time
from dataclasses import dataclass

from acu.config import UpdaterConfig
from acu.errors import BuildError, DependencyRefreshError, RebuildError

logger = logging.getLogger(__name__)

OUTPUT_LIMIT = 5000


@dataclass
class CommandResult:
    """Result of one external build command."""

    command: str
    exit_code: int = 0
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0

    @property
    def passed(self) -> bool:
        return self.exit_code == 0

    @property
    def output(self) -> str:
        return "\n".join(part for part in (self.stdout, self.stderr) if part)


class BuildRunner:
    """Runs the configured rebuild and dependency-refresh commands."""

    def __init__(self, config: UpdaterConfig):
        self.config = config

    def rebuild(self) -> CommandResult:
        """Recompile the distribution's own executables.

        Raises:
            RebuildError: if the command is missing, times out or exits nonzero.
        """
        command = self.config.effective_rebuild_command
        if self.config.multi_call:
            logger.info("Multi-call mode detected, using the multi-call rebuild target")
        logger.info(f"Recompiling: {command}")
        result = self._run(command, RebuildError)
        logger.info(f"Recompilation completed in {result.duration_ms}ms")
        return result

    def refresh_dependencies(self) -> CommandResult:
        """Resolve and tidy the build manifest.

        Raises:
            DependencyRefreshError: if the command is missing, times out or exits nonzero.
        """
        command = self.config.refresh_command
        logger.info(f"Refreshing module dependencies: {command}")
        result = self._run(command, DependencyRefreshError)
        logger.info(f"Dependency refresh completed in {result.duration_ms}ms")
        return result

    def _run(self, command: str, error_cls: type[BuildError]) -> CommandResult:
        timeout = self.config.build_timeout_seconds
        start = time.monotonic()
        try:
            proc = subprocess.run(
                shlex.split(command),
                cwd=self.config.directory,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise error_cls(f"{command} timed out after {timeout}s") from e
        except OSError as e:
            raise error_cls(f"{command} could not be started: {e}") from e

        result = CommandResult(
            command=command,
            exit_code=proc.returncode,
            stdout=proc.stdout[-OUTPUT_LIMIT:],
            stderr=proc.stderr[-OUTPUT_LIMIT:],
            duration_ms=int((time.monotonic() - start) * 1000),
        )
        if not result.passed:
            raise error_cls(f"{command} failed with exit code {result.exit_code}", output=result.output)
        return result
