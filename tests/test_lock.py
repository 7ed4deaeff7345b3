"""Tests for the advisory update lock."""

import os
import tempfile

import pytest

from acu.errors import UpdateInProgressError
from acu.sync.lock import UpdateLock


def test_lock_is_exclusive():
    with tempfile.TemporaryDirectory() as tmpdir:
        with UpdateLock(tmpdir) as lock:
            assert lock.held
            with pytest.raises(UpdateInProgressError):
                UpdateLock(tmpdir).acquire()
        assert not lock.held


def test_lock_can_be_taken_again_after_release():
    with tempfile.TemporaryDirectory() as tmpdir:
        first = UpdateLock(tmpdir)
        first.acquire()
        first.release()

        with UpdateLock(tmpdir) as second:
            assert second.lock_path.read_text() == str(os.getpid())


def test_lock_creates_its_directory():
    with tempfile.TemporaryDirectory() as tmpdir:
        with UpdateLock(os.path.join(tmpdir, "data", "update-status")) as lock:
            assert lock.lock_path.is_file()
