"""Rich console rendering of changed issues."""

from __future__ import annotations

from typing import Sequence

from rich import box
from rich.console import Console
from rich.table import Table

from ..engine.parser import Issue
from .base import BaseNotifier


class ConsoleNotifier(BaseNotifier):
    """Print a table of changed issues with links to open them."""

    def __init__(self, server: str, console: Console | None = None) -> None:
        super().__init__(server)
        self.console = console or Console()

    def notify(self, issues: Sequence[Issue]) -> None:
        if not issues:
            return
        table = Table(title=f"Updated issues · {len(issues)}", box=box.SIMPLE_HEAD)
        table.add_column("#", style="cyan", justify="right", no_wrap=True)
        table.add_column("Subject", overflow="fold")
        table.add_column("Updated", style="green", no_wrap=True)
        table.add_column("Link", style="magenta", overflow="fold")
        for issue in issues:
            table.add_row(
                str(issue.id),
                issue.subject,
                issue.updated_at.strftime("%Y-%m-%d %H:%M:%S"),
                issue.url(self.server),
            )
        self.console.print(table)


__all__ = ["ConsoleNotifier"]
