"""acu CLI — the entry point for the application-catalog updater."""

import logging
import os
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from acu import __version__
from acu.errors import NoUpdatesAvailable, UpdaterError
from acu.models import UpdateMode, UpdateSpeed

console = Console()

MODES = [m.value for m in UpdateMode]
SPEEDS = [s.value for s in UpdateSpeed]


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--directory", "-d",
    envvar="ACU_DIRECTORY",
    default=None,
    help="Distribution root (default: ACU_DIRECTORY or the current directory)",
)
@click.option("--verbose", "-v", count=True, help="More logging (repeatable)")
@click.option("--allow-root", is_flag=True, help="Allow running as root")
@click.pass_context
def main(ctx, directory: str | None, verbose: int, allow_root: bool):
    """acu — application-catalog updater.

    Keeps a distribution's scripts, build sources and app definitions in
    step with its upstream repository, with backup and rollback.
    """
    logging.basicConfig(
        level=logging.WARNING - 10 * min(verbose, 2),
        format="%(asctime)s %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if not allow_root and hasattr(os, "geteuid") and os.geteuid() == 0:
        console.print("[red]The updater must not be run as root.[/] Use --allow-root to override.")
        sys.exit(1)

    from acu.config import validate_directory

    root = Path(directory or os.getcwd()).resolve()
    try:
        validate_directory(root)
    except ValueError as e:
        console.print(f"[red]{e}[/]")
        sys.exit(1)
    ctx.obj = {"directory": root}


def _updater(ctx, mode: UpdateMode, speed: UpdateSpeed = UpdateSpeed.NORMAL):
    from acu.config import load_config
    from acu.updater import Updater

    return Updater(load_config(ctx.obj["directory"], mode=mode, speed=speed))


def _run(ctx, mode: UpdateMode, speed: UpdateSpeed) -> None:
    from acu.console import ConsoleFrontend

    updater = _updater(ctx, mode, speed)
    try:
        outcome = updater.run(frontend=ConsoleFrontend(console))
    except NoUpdatesAvailable as e:
        console.print(f"[yellow]{e}[/]")
        sys.exit(1)
    except (UpdaterError, OSError) as e:
        if mode == UpdateMode.AUTOSTARTED:
            # Unattended runs never fail the boot sequence
            logging.getLogger(__name__).error(f"Updater failed: {e}")
            return
        if not isinstance(e, UpdaterError):
            raise
        console.print(f"[red]Updater failed:[/] {e}")
        sys.exit(1)

    if mode == UpdateMode.AUTOSTARTED and outcome is not None:
        console.print(outcome.message)
    elif mode in (UpdateMode.GET_STATUS, UpdateMode.SET_STATUS):
        console.print("[green]Updates available.[/]")
    elif outcome is not None and not outcome.success:
        sys.exit(1)


# ── Run ──────────────────────────────────────────────────────────────


@main.command()
@click.argument("mode", type=click.Choice(MODES))
@click.argument("speed", type=click.Choice(SPEEDS), default="normal")
@click.pass_context
def run(ctx, mode: str, speed: str):
    """Run the updater in MODE.

    \b
    autostarted   unattended boot-time check, applies only safe updates
    get-status    exit 0 if updates are pending, 1 otherwise
    set-status    check upstream and record pending updates
    cli, gui      choose updates interactively
    cli-yes, gui-yes  apply every pending update

    SPEED 'fast' reuses the existing mirror and cached status.
    """
    _run(ctx, UpdateMode(mode), UpdateSpeed(speed))


@main.command()
@click.pass_context
def status(ctx):
    """Exit 0 if updates are pending, 1 otherwise (no network)."""
    _run(ctx, UpdateMode.GET_STATUS, UpdateSpeed.NORMAL)


@main.command()
@click.pass_context
def check(ctx):
    """Check upstream and record pending updates."""
    _run(ctx, UpdateMode.SET_STATUS, UpdateSpeed.NORMAL)


# ── Backups ──────────────────────────────────────────────────────────


@main.command()
@click.pass_context
def backups(ctx):
    """List update snapshots, newest first."""
    updater = _updater(ctx, UpdateMode.CLI)
    entries = updater.backups.list_backups()
    if not entries:
        console.print("[yellow]No backups found.[/]")
        return

    table = Table(title=f"Backups ({len(entries)})")
    table.add_column("Backup", style="cyan", no_wrap=True)
    table.add_column("Created")
    table.add_column("Files", justify="right")
    table.add_column("Apps", justify="right")
    table.add_column("Rebuild")
    for path in entries:
        try:
            data = updater.backups.load(path)
        except UpdaterError as e:
            table.add_row(path.name, f"[red]{e}[/]", "", "", "")
            continue
        table.add_row(
            path.name,
            data.created_at,
            str(len(data.original_files) + len(data.new_files)),
            str(len(data.original_apps) + len(data.new_apps)),
            data.compilation_state.value,
        )
    console.print(table)


@main.command()
@click.argument("backup_dir")
@click.pass_context
def rollback(ctx, backup_dir: str):
    """Restore the snapshot BACKUP_DIR (a path or a name from 'acu backups')."""
    from acu.sync.lock import UpdateLock

    updater = _updater(ctx, UpdateMode.CLI)
    path = Path(backup_dir)
    if not path.is_dir():
        path = updater.config.backup_root / backup_dir

    try:
        with UpdateLock(updater.config.status_dir):
            updater.rollback(path)
    except UpdaterError as e:
        console.print(f"[red]Updater failed:[/] {e}")
        sys.exit(1)
    console.print(f"[green]Restored snapshot:[/] {path}")


if __name__ == "__main__":
    main()
