"""Repository mirror — the local clone of the upstream catalog.

The mirror is the source of truth for what should be installed. It is
replaced wholesale on every check unless the speed is ``fast``, in which
case whatever mirror exists (possibly stale) is reused.
"""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path

from acu.config import UpdaterConfig
from acu.errors import MirrorError
from acu.models import UpdateSpeed
from acu.utils.fs_ops import dir_exists, remove_path
from acu.utils.git_ops import GitFetcher

logger = logging.getLogger(__name__)


class MirrorManager:
    """Keeps ``config.mirror_dir`` in step with the upstream repository."""

    def __init__(
        self,
        config: UpdaterConfig,
        fetcher=None,
        sleep=time.sleep,
        clock=time.monotonic,
    ):
        self.config = config
        self.fetcher = fetcher or GitFetcher()
        self._sleep = sleep
        self._clock = clock

    @property
    def path(self) -> Path:
        return self.config.mirror_dir

    def exists(self) -> bool:
        return dir_exists(self.path / ".git")

    def check(
        self,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> None:
        """Bring the mirror up to date.

        An existing mirror is refreshed incrementally; if that fails it is
        discarded and fetched again. The full fetch retries every
        ``fetch_retry_seconds`` until it succeeds, ``timeout`` seconds have
        elapsed, or ``cancel`` is set.

        Raises:
            MirrorError: on deadline expiry or cancellation.
        """
        if self.config.speed == UpdateSpeed.FAST:
            logger.debug("Fast mode: reusing existing mirror")
            return

        logger.info("Checking for online changes...")

        if self.exists():
            try:
                self.fetcher.refresh(self.path)
                logger.info("Mirror refreshed")
                return
            except MirrorError as e:
                logger.warning(f"Incremental refresh failed, fetching again: {e}")
                remove_path(self.config.update_dir)

        self._fetch_until_done(timeout, cancel)
        logger.info("Mirror fetched")

    def _fetch_until_done(self, timeout: float | None, cancel: threading.Event | None) -> None:
        deadline = self._clock() + timeout if timeout is not None else None
        retry = self.config.fetch_retry_seconds
        attempt = 0

        while True:
            if cancel is not None and cancel.is_set():
                raise MirrorError("Mirror fetch cancelled")

            attempt += 1
            remove_path(self.config.update_dir)
            self.config.update_dir.mkdir(parents=True, exist_ok=True)

            try:
                self.fetcher.clone(self.config.git_url, self.path, self.config.branch)
                return
            except MirrorError as e:
                last_error = e

            if deadline is not None and self._clock() + retry > deadline:
                remove_path(self.config.update_dir)
                raise MirrorError(
                    f"Failed to download the catalog after {attempt} attempt(s): {last_error}"
                ) from last_error

            logger.error(
                f"Failed to download the catalog repository! Retrying in {retry} seconds. ({last_error})"
            )
            if cancel is not None:
                if cancel.wait(retry):
                    remove_path(self.config.update_dir)
                    raise MirrorError("Mirror fetch cancelled")
            else:
                self._sleep(retry)
