"""Typer CLI entrypoint for the Redmine notifier."""

from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigRepository, NotifierSettings
from .engine import FanOutExecutor, TrackerClient
from .infra import SQLiteManager, SQLiteStateStore
from .logging_conf import configure_logging, notifier_log_path, tail_log
from .notify import build_notifiers
from .orchestrator import CycleReport, Orchestrator
from .scheduler import APSchedulerAdapter

app = typer.Typer(
    help="Redmine issue change notifier",
    no_args_is_help=True,
    rich_markup_mode=None,
)
state_app = typer.Typer(name="state", help="Inspect or reset the poll state", no_args_is_help=True)
config_app = typer.Typer(name="config", help="Show effective settings", no_args_is_help=True)
log_app = typer.Typer(name="log", help="Show notifier logs", no_args_is_help=True)

console = Console()


@dataclass
class AppState:
    repository: ConfigRepository
    settings: NotifierSettings
    scheduler: APSchedulerAdapter
    orchestrator: Orchestrator
    state_store: SQLiteStateStore


def build_state(verbose: bool) -> AppState:
    configure_logging(verbose=verbose)
    repository = ConfigRepository()
    settings = repository.load_settings()
    state_store = SQLiteStateStore(SQLiteManager(), repository.state_path())
    orchestrator = Orchestrator(
        settings=settings,
        client=TrackerClient(settings),
        fan_out=FanOutExecutor(settings.thread_pool_workers),
        state_store=state_store,
        notifiers=build_notifiers(settings),
    )
    return AppState(
        repository=repository,
        settings=settings,
        scheduler=APSchedulerAdapter(),
        orchestrator=orchestrator,
        state_store=state_store,
    )


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _mask(secret: str) -> str:
    if not secret:
        return "<unset>"
    if len(secret) <= 4:
        return "*" * len(secret)
    return secret[:2] + "*" * (len(secret) - 4) + secret[-2:]


def _render_report(report: CycleReport) -> Table:
    table = Table(title="Cycle result", box=box.SIMPLE_HEAD)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green", justify="right")
    table.add_row("Queries", str(report.queries))
    table.add_row("Failed queries", str(report.failed_queries))
    table.add_row("Issues fetched", str(report.issues_fetched))
    table.add_row("Notified", str(report.notified))
    table.add_row("State changed", "yes" if report.state_changed else "no")
    table.add_row("State saved", "yes" if report.state_saved else "no")
    table.add_row("Duration (ms)", str(report.duration_ms))
    if report.error:
        table.add_row("Error", report.error)
    return table


app.add_typer(state_app, name="state")
app.add_typer(config_app, name="config")
app.add_typer(log_app, name="log")


@app.callback()
def main(
    ctx: typer.Context, verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging")
) -> None:
    try:
        ctx.obj = build_state(verbose)
    except ValueError as exc:
        console.print(f"Invalid configuration: {exc}", style="red", markup=False)
        raise typer.Exit(code=1) from exc


@app.command("run", help="Poll Redmine every configured interval until interrupted.")
def run(
    ctx: typer.Context,
    once: bool = typer.Option(False, "--once", help="Run a single cycle and exit."),
) -> None:
    state = _get_state(ctx)
    orchestrator = state.orchestrator
    if not state.settings.tracking.any_enabled():
        console.print("All tracking modes are disabled; cycles will not query Redmine.", style="yellow")
    try:
        report = orchestrator.run_cycle()
        if once:
            console.print(_render_report(report))
            if report.error:
                raise typer.Exit(code=1)
            return
        state.scheduler.schedule_cycle(orchestrator.run_cycle, state.settings.interval)
        state.scheduler.start()
        console.print(
            f"Polling {state.settings.server} every {state.settings.interval}s. Press Ctrl+C to stop.",
            style="green",
        )
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        console.print("Stopping…", style="dim")
    finally:
        state.scheduler.shutdown()
        orchestrator.close()


@state_app.command("show", help="Print the persisted watermark and boundary ids.")
def state_show(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    poll_state = state.state_store.load()
    table = Table(title="Poll state", box=box.SIMPLE_HEAD, show_header=False)
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="green", overflow="fold")
    table.add_row(
        "Watermark",
        poll_state.watermark.isoformat() if poll_state.watermark else "<unset>",
    )
    table.add_row("Boundary ids", ", ".join(str(i) for i in sorted(poll_state.boundary)) or "-")
    table.add_row("Database", str(state.state_store.db_path))
    console.print(table)


@state_app.command("reset", help="Delete the persisted poll state.")
def state_reset(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation."),
) -> None:
    state = _get_state(ctx)
    if not yes:
        confirm = typer.confirm(
            "Reset the poll state? The next cycle will notify every matching issue.",
            default=False,
        )
        if not confirm:
            console.print("Cancelled.", style="yellow")
            raise typer.Exit(code=0)
    state.state_store.reset()
    console.print("Poll state reset.", style="green")


@config_app.command("show", help="Print the effective settings.")
def config_show(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    settings = state.settings
    table = Table(title="Settings", box=box.SIMPLE_HEAD, show_header=False)
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="green", overflow="fold")
    table.add_row("Settings file", str(state.repository.locator.settings_path()))
    table.add_row("Server", settings.server)
    table.add_row("API key", _mask(settings.api_key))
    table.add_row("Interval (s)", str(settings.interval))
    table.add_row("Assigned to me", str(settings.tracking.assigned_to_me))
    table.add_row("Authored by me", str(settings.tracking.authored_by_me))
    table.add_row("Watched by me", str(settings.tracking.watched_by_me))
    table.add_row("Notifiers", ", ".join(kind.value for kind in settings.notifiers) or "-")
    table.add_row("State database", str(state.state_store.db_path))
    console.print(table)


@log_app.command("show", help="Print the last lines of the notifier log.")
def log_show(
    lines: int = typer.Option(50, "--lines", "-n", help="Number of lines to show."),
    source: Optional[str] = typer.Option(None, "--file", help="Log file path (defaults to notifier.log)."),
) -> None:
    path = Path(source) if source else notifier_log_path()
    content = tail_log(path, lines)
    if not content:
        console.print(f"No log entries in {path}.", style="dim")
        raise typer.Exit(code=0)
    for line in content:
        console.print(line.rstrip("\n"), markup=False, highlight=False)


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
