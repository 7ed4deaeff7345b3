"""Console frontend — pending-update listings, interactive selection and result panels."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from acu.errors import AppManagerError, RestoreError
from acu.models import FileChange, UpdateResult

logger = logging.getLogger(__name__)

SELECTION_HELP = (
    "Enter a number to toggle an item, 'all' or 'none' to select everything or nothing, "
    "'list' to show the selection, 'continue' to apply or 'quit' to exit."
)


class ConsoleFrontend:
    """Drives the ``cli``/``gui`` (interactive) and ``cli-yes``/``gui-yes`` modes."""

    def __init__(self, console: Console | None = None, input_func=None):
        self.console = console or Console()
        self._input = input_func or self.console.input

    def run(self, updater) -> UpdateResult | None:
        """Check, show what is pending, apply the selection.

        Returns None when nothing was applied.
        """
        interactive = not updater.config.mode.unattended

        updater.check_repo()
        files, apps = updater.find_updates()
        if not files and not apps:
            self.console.print("[green]Everything is up to date.[/]")
            return None

        if interactive:
            items = self._build_items(updater, files, apps)
            selected = self.select(items)
            if selected is None:
                self.console.print("[yellow]Update cancelled.[/]")
                return None
            files = [item for item in selected if isinstance(item, FileChange)]
            apps = [item for item in selected if isinstance(item, str)]
            if not files and not apps:
                self.console.print("[yellow]No updates selected.[/]")
                return None
        else:
            self.console.print(self._table(self._build_items(updater, files, apps)))

        return self.apply(updater, files, apps, interactive)

    def apply(self, updater, files, apps, interactive: bool) -> UpdateResult:
        self.console.print(f"\nApplying {len(files)} file(s) and {len(apps)} app(s)...\n")
        result = updater.apply(files, apps)
        self.show_result(result)

        if result.success or not interactive:
            return result

        if result.can_roll_back and self.confirm("Roll back to the pre-update snapshot again?"):
            try:
                updater.orchestrator.rollback(result.rollback_data)
                self.console.print("[green]Rollback completed.[/]")
            except RestoreError as e:
                self.console.print(f"[red]Rollback failed:[/] {e}")

        if self.confirm("Retry the update?"):
            return self.apply(updater, files, apps, interactive)
        return result

    def show_result(self, result: UpdateResult) -> None:
        style = "green" if result.success else "red"
        self.console.print(Panel(result.summary(), title="Update Result", border_style=style))

    # -- selection --------------------------------------------------------

    def select(self, items: list[tuple[object, str, str]]) -> list | None:
        """Let the user toggle items; everything starts selected.

        Returns the selected objects, or None if the user quits.
        """
        chosen = [True] * len(items)
        self.console.print(self._table(items, chosen))
        self.console.print(SELECTION_HELP)

        while True:
            answer = self._input("> ").strip().lower()
            if answer in ("c", "continue", ""):
                return [item[0] for item, on in zip(items, chosen) if on]
            if answer in ("q", "quit"):
                return None
            if answer == "all":
                chosen = [True] * len(items)
            elif answer == "none":
                chosen = [False] * len(items)
            elif answer in ("l", "list"):
                self.console.print(self._table(items, chosen))
            elif answer.isdigit() and 1 <= int(answer) <= len(items):
                index = int(answer) - 1
                chosen[index] = not chosen[index]
            else:
                self.console.print(f"[yellow]Unknown choice:[/] {answer}")

    def confirm(self, question: str) -> bool:
        return self._input(f"{question} [y/N] ").strip().lower() in ("y", "yes")

    def _build_items(self, updater, files, apps) -> list[tuple[object, str, str]]:
        items = [(f, f.path, f.note) for f in files]
        for app in apps:
            note = ""
            try:
                if updater.app_manager.will_reinstall(app):
                    note = "will be reinstalled"
            except AppManagerError as e:
                logger.warning(f"Could not check whether {app} will be reinstalled: {e}")
            if not (updater.config.apps_dir / app).is_dir():
                note = "new app"
            items.append((app, f"app: {app}", note))
        return items

    def _table(self, items, chosen=None) -> Table:
        table = Table(title=f"Pending Updates ({len(items)})")
        table.add_column("#", style="dim", width=4)
        if chosen is not None:
            table.add_column("Sel", width=3)
        table.add_column("Update", style="cyan")
        table.add_column("Note", style="yellow")
        for i, (_, label, note) in enumerate(items):
            row = [str(i + 1)]
            if chosen is not None:
                row.append("x" if chosen[i] else " ")
            table.add_row(*row, label, note)
        return table
