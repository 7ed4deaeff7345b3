"""Advisory lock — one check or apply per distribution root at a time."""

from __future__ import annotations

import fcntl
import os
from pathlib import Path

from acu.errors import UpdateInProgressError

LOCK_FILE = ".lock"


class UpdateLock:
    """Exclusive, non-blocking ``flock`` on ``<status_dir>/.lock``.

    Use as a context manager::

        with UpdateLock(config.status_dir):
            ...
    """

    def __init__(self, lock_dir: str | Path):
        self.lock_path = Path(lock_dir) / LOCK_FILE
        self._file = None

    def acquire(self) -> None:
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        lock_file = open(self.lock_path, "a+")
        try:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            lock_file.close()
            raise UpdateInProgressError(
                f"Another update is already running (lock held on {self.lock_path})"
            )
        lock_file.seek(0)
        lock_file.truncate()
        lock_file.write(str(os.getpid()))
        lock_file.flush()
        self._file = lock_file

    def release(self) -> None:
        if self._file is not None:
            fcntl.flock(self._file.fileno(), fcntl.LOCK_UN)
            self._file.close()
            self._file = None

    @property
    def held(self) -> bool:
        return self._file is not None

    def __enter__(self) -> UpdateLock:
        self.acquire()
        return self

    def __exit__(self, *exc) -> None:
        self.release()
