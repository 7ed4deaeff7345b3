"""End-to-end tests for the staged apply."""

import shutil
import tempfile

import pytest

from acu.errors import AppManagerError, UpdateInProgressError
from acu.models import AppStatus, CompilationState, FileChange, UpdateState
from acu.sync.backup import BackupManager
from acu.sync.orchestrator import UpdateOrchestrator, compose_message, needs_rebuild

from fakes import FakeAppManager, FakeBuilder, make_distribution, read_tree


def _orchestrator(config, manager=None, builder=None):
    manager = manager or FakeAppManager(config)
    builder = builder or FakeBuilder()
    return UpdateOrchestrator(config, manager, builder, BackupManager(config, builder))


def _local_tree(config):
    return {
        k: v for k, v in read_tree(config.directory).items()
        if not k.startswith(("update-backup/", "update/"))
    }


def test_plain_file_update():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = make_distribution(
            tmpdir,
            local={"README.md": "old", ".git/HEAD": "old-ref"},
            mirror={"README.md": "new", ".git/HEAD": "new-ref"},
        )
        builder = FakeBuilder()
        result = _orchestrator(config, builder=builder).perform_update(
            [FileChange.from_path("README.md")], []
        )

        assert result.success
        assert result.message == "Update completed successfully"
        assert result.state == UpdateState.FINALIZED
        assert result.rollback_data is None
        assert (config.directory / "README.md").read_text() == "new"
        assert (config.directory / ".git" / "HEAD").read_text() == "new-ref"
        assert builder.rebuilds == 0 and builder.refreshes == 0


def test_app_refresh_without_reinstall():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = make_distribution(
            tmpdir,
            local={"apps/Foo/install": "old", "apps/Foo/stale": "x"},
            mirror={"apps/Foo/install": "new"},
        )
        manager = FakeAppManager(config, statuses={"Foo": AppStatus.INSTALLED})
        result = _orchestrator(config, manager).perform_update([], ["Foo"])

        assert result.success
        assert manager.calls == []
        assert read_tree(config.apps_dir / "Foo") == {"install": "new"}


def test_app_reinstall():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = make_distribution(
            tmpdir,
            local={"apps/Foo/install": "old"},
            mirror={"apps/Foo/install": "new"},
        )
        manager = FakeAppManager(config, statuses={"Foo": AppStatus.INSTALLED}, reinstall={"Foo"})
        result = _orchestrator(config, manager).perform_update([], ["Foo"])

        assert result.success
        assert manager.calls == [("uninstall", "Foo"), ("install", "Foo")]
        assert (config.apps_dir / "Foo" / "install").read_text() == "new"


def test_module_update_refreshes_without_rebuild():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = make_distribution(
            tmpdir,
            local={"go.mod": "module x\ngo 1.21\n", "go.sum": "a"},
            mirror={"go.mod": "module x\ngo 1.22\n", "go.sum": "a"},
        )

        def tidy():
            (config.directory / "go.sum").write_text("a\nb")

        builder = FakeBuilder(on_refresh=tidy)
        result = _orchestrator(config, builder=builder).perform_update(
            [FileChange.from_path("go.mod")], []
        )

        assert result.success
        assert result.module_refreshed
        assert not result.recompiled
        assert "Module dependencies updated" in result.message
        assert builder.refreshes == 1 and builder.rebuilds == 0
        assert (config.mirror_dir / "go.sum").read_text() == "a\nb"


def test_module_and_source_update():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = make_distribution(
            tmpdir,
            local={"go.mod": "v1", "pkg/foo.go": "v1"},
            mirror={"go.mod": "v2", "pkg/foo.go": "v2"},
        )
        builder = FakeBuilder()
        result = _orchestrator(config, builder=builder).perform_update(
            [FileChange.from_path("go.mod"), FileChange.from_path("pkg/foo.go")], []
        )

        assert result.success and result.module_refreshed and result.recompiled
        assert result.message.endswith("(Module dependencies updated and recompilation completed)")


def test_failed_rebuild_rolls_back():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = make_distribution(
            tmpdir,
            local={"pkg/foo.go": "v1", "README.md": "old"},
            mirror={"pkg/foo.go": "v2", "README.md": "new", "pkg/bar.go": "new file"},
        )
        before = _local_tree(config)
        builder = FakeBuilder(fail_rebuild=True)
        result = _orchestrator(config, builder=builder).perform_update(
            [FileChange.from_path(p) for p in ("pkg/foo.go", "README.md", "pkg/bar.go")], []
        )

        assert not result.success
        assert result.message.startswith("Compilation failed")
        assert result.state == UpdateState.ROLLED_BACK
        assert result.rollback_data.compilation_state == CompilationState.FAILED
        assert _local_tree(config) == before


def test_failed_refresh_rolls_back_untargeted_manifest():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = make_distribution(
            tmpdir,
            local={"go.mod": "v1", "go.sum": "s1"},
            mirror={"go.mod": "v2", "go.sum": "s1"},
        )
        before = _local_tree(config)

        def tidy():
            (config.directory / "go.sum").write_text("s2")

        builder = FakeBuilder(fail_refresh=True, on_refresh=tidy)
        result = _orchestrator(config, builder=builder).perform_update(
            [FileChange.from_path("go.mod")], []
        )

        assert not result.success
        assert result.message.startswith("Module update failed")
        assert _local_tree(config) == before


def test_failed_app_install_rolls_back():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = make_distribution(
            tmpdir,
            local={"README.md": "old", "apps/Foo/install": "old"},
            mirror={"README.md": "new", "apps/Foo/install": "new"},
        )
        before = _local_tree(config)
        manager = FakeAppManager(config, statuses={"Foo": AppStatus.INSTALLED})
        manager.reinstall = {"Foo"}
        manager.install = _failing_install(manager)

        result = _orchestrator(config, manager).perform_update(
            [FileChange.from_path("README.md")], ["Foo"]
        )

        assert not result.success
        assert result.failed_apps == ["Foo"]
        assert result.message.startswith("Failed to update apps")
        assert result.state == UpdateState.ROLLED_BACK
        assert _local_tree(config) == before


def test_missing_mirror_file_fails_and_rolls_back():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = make_distribution(tmpdir, local={"README.md": "old"}, mirror={})
        result = _orchestrator(config).perform_update(
            [FileChange.from_path("README.md"), FileChange.from_path("gone.txt")], []
        )

        assert not result.success
        assert result.failed_files == ["gone.txt"]
        assert (config.directory / "README.md").read_text() == "old"


def test_backup_failure_touches_nothing():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = make_distribution(tmpdir, local={"README.md": "old"}, mirror={"README.md": "new"})
        (config.directory / "update-backup").write_text("not a directory")

        result = _orchestrator(config).perform_update([FileChange.from_path("README.md")], [])

        assert not result.success
        assert result.state == UpdateState.FAILED
        assert result.rollback_data is None
        assert (config.directory / "README.md").read_text() == "old"


def test_rollback_unavailable_when_snapshot_disappears():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = make_distribution(tmpdir, local={"pkg/foo.go": "v1"}, mirror={"pkg/foo.go": "v2"})

        def lose_backups():
            shutil.rmtree(config.backup_root)

        builder = FakeBuilder(fail_rebuild=True, on_rebuild=lose_backups)
        orchestrator = _orchestrator(config, builder=builder)

        result = orchestrator.perform_update([FileChange.from_path("pkg/foo.go")], [])

        assert not result.success
        assert result.state == UpdateState.ROLLBACK_UNAVAILABLE
        assert "rollback failed" in result.message
        assert result.restore_error


def test_reentrant_apply_is_refused():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = make_distribution(tmpdir, local={"README.md": "old"}, mirror={"README.md": "new"})
        orchestrator = _orchestrator(config)
        orchestrator._busy = True

        with pytest.raises(UpdateInProgressError):
            orchestrator.perform_update([FileChange.from_path("README.md")], [])


def test_rebuild_decision_and_messages():
    assert not needs_rebuild([FileChange.from_path("go.mod")])
    assert needs_rebuild([FileChange.from_path("Makefile")])
    assert compose_message(False, False) == "Update completed successfully"
    assert compose_message(False, True) == "Update completed successfully (Recompilation completed)"


def _failing_install(manager):
    def install(app):
        manager.calls.append(("install", app))
        raise AppManagerError(f"install of {app} failed")

    return install


def test_os_error_from_app_manager_rolls_back():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = make_distribution(
            tmpdir,
            local={"README.md": "old", "apps/Foo/install": "old"},
            mirror={"README.md": "new", "apps/Foo/install": "new"},
        )
        before = _local_tree(config)
        manager = FakeAppManager(config, statuses={"Foo": AppStatus.INSTALLED}, reinstall={"Foo"})

        def install(app):
            raise OSError("disk full while installing")

        manager.install = install
        result = _orchestrator(config, manager).perform_update(
            [FileChange.from_path("README.md")], ["Foo"]
        )

        assert not result.success
        assert result.failed_apps == ["Foo"]
        assert result.state == UpdateState.ROLLED_BACK
        assert _local_tree(config) == before


def test_os_error_while_checking_reinstall_rolls_back():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = make_distribution(
            tmpdir,
            local={"README.md": "old", "apps/Foo/install": "old"},
            mirror={"README.md": "new", "apps/Foo/install": "new"},
        )
        manager = FakeAppManager(config)

        def will_reinstall(app):
            raise PermissionError("apps/Foo/install: permission denied")

        manager.will_reinstall = will_reinstall
        result = _orchestrator(config, manager).perform_update(
            [FileChange.from_path("README.md")], ["Foo"]
        )

        assert not result.success
        assert result.state == UpdateState.ROLLED_BACK
        assert (config.directory / "README.md").read_text() == "old"
