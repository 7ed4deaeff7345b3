"""Tests for the core data models."""

from acu.models import (
    CompilationState,
    RollbackData,
    UpdateMode,
    UpdateResult,
    UpdateState,
)


def test_unattended_modes():
    assert UpdateMode.AUTOSTARTED.unattended
    assert UpdateMode.CLI_YES.unattended
    assert not UpdateMode.CLI.unattended
    assert UpdateMode("get-status") == UpdateMode.GET_STATUS


def test_result_defaults():
    result = UpdateResult()
    assert result.success
    assert result.state == UpdateState.START
    assert not result.can_roll_back


def test_failed_result_summary():
    result = UpdateResult(
        success=False,
        message="Compilation failed: make install failed with exit code 2",
        failed_files=["pkg/foo.go"],
        rollback_data=RollbackData(
            backup_path="/srv/dist/update-backup/backup_1",
            compilation_state=CompilationState.FAILED,
        ),
        state=UpdateState.ROLLED_BACK,
    )
    summary = result.summary()

    assert result.can_roll_back
    assert "FAILED" in summary
    assert "pkg/foo.go" in summary
    assert "backup_1" in summary
    assert "rolled-back" in summary
