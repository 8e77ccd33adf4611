"""Idleweaver CLI - run background tasks while the machine is idle."""

import asyncio
import signal as sig
import sys
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from idleweaver import __version__
from idleweaver.application import Orchestrator
from idleweaver.domain.models import Task, TaskPriority, TaskResult, TaskStatus
from idleweaver.infrastructure import ConfigManager, default_idle_source, load_task_file, setup_logging
from idleweaver.infrastructure.exceptions import (
    IdleWeaverError,
    TaskAlreadyRunningError,
    TaskNotFoundError,
)
from idleweaver.infrastructure.health_checks import system_summary

# Initialize Typer app
app = typer.Typer(
    name="idleweaver",
    help="Idle-triggered background task scheduler",
    no_args_is_help=True,
)

console = Console()

TASKS_FILE_OPTION = typer.Option(
    None,
    "--tasks-file",
    "-f",
    help="YAML file with a top-level 'tasks:' list",
    exists=True,
    dir_okay=False,
)

PRIORITY_STYLES = {
    TaskPriority.CRITICAL: "bold red",
    TaskPriority.HIGH: "red",
    TaskPriority.MEDIUM: "yellow",
    TaskPriority.LOW: "green",
    TaskPriority.PERIODIC: "cyan",
}

STATUS_STYLES = {
    TaskStatus.PENDING: "yellow",
    TaskStatus.RUNNING: "blue",
    TaskStatus.COMPLETED: "green",
    TaskStatus.FAILED: "red",
}


# ===== Version =====
@app.command()
def version() -> None:
    """Show Idleweaver version."""
    console.print(f"[bold]Idleweaver[/bold] version [cyan]{__version__}[/cyan]")


# ===== Helper Functions =====
def system_health_task() -> Task:
    """Built-in task enqueued when no task file is given."""
    return Task(
        id="system-health",
        name="System health check",
        description="System health check",
        priority=TaskPriority.LOW,
        tags=["builtin"],
    )


def _build_orchestrator(
    tasks_file: Path | None,
    *,
    interval_ms: int | None = None,
    idle_threshold: float | None = None,
    cooldown: float | None = None,
    max_concurrent: int | None = None,
) -> Orchestrator:
    """Load configuration, apply CLI overrides and enqueue tasks."""
    config_manager = ConfigManager()
    config = config_manager.load_config()

    # Setup logging to both console and file
    setup_logging(log_level=config.log_level, log_dir=config_manager.get_log_dir())

    if interval_ms is not None:
        config.orchestrator.heartbeat_interval_ms = interval_ms
    if idle_threshold is not None:
        config.idle.idle_threshold_seconds = idle_threshold
    if cooldown is not None:
        config.idle.cooldown_seconds = cooldown
    if max_concurrent is not None:
        config.executor.max_concurrent = max_concurrent

    orchestrator = Orchestrator.from_config(config, idle_source=default_idle_source())

    if tasks_file is None:
        orchestrator.add_task(system_health_task(), system_summary)
    else:
        for task, action in load_task_file(tasks_file):
            orchestrator.add_task(task, action)

    return orchestrator


def _print_result(task_id: str, result: TaskResult) -> None:
    if result.success:
        console.print(f"[green]✓[/green] {task_id} completed")
        if result.output:
            console.print(f"[dim]{escape(result.output)}[/dim]")
    else:
        console.print(f"[red]✗[/red] {task_id} failed: {escape(result.error or 'unknown error')}")


def _fail(error: Exception) -> typer.Exit:
    console.print(f"[red]Error:[/red] {escape(str(error))}")
    return typer.Exit(1)


# ===== Commands =====
@app.command()
def start(
    tasks_file: Path | None = TASKS_FILE_OPTION,
    interval_ms: int | None = typer.Option(None, min=1, help="Heartbeat interval in milliseconds"),
    idle_threshold: float | None = typer.Option(None, min=0, help="Seconds of machine idleness required"),
    cooldown: float | None = typer.Option(None, min=0, help="Seconds to wait after a trigger"),
    max_concurrent: int | None = typer.Option(None, min=1, help="Max concurrent task executions"),
) -> None:
    """Run the heartbeat until interrupted.

    Without --tasks-file, the built-in system health check is enqueued.

    Examples:
        idleweaver start                              # Health check with configured thresholds
        idleweaver start -f tasks.yaml                # Run tasks from a file
        idleweaver start --interval-ms 5000 --idle-threshold 0 --cooldown 0
    """

    async def _start() -> None:
        orchestrator = _build_orchestrator(
            tasks_file,
            interval_ms=interval_ms,
            idle_threshold=idle_threshold,
            cooldown=cooldown,
            max_concurrent=max_concurrent,
        )

        def on_trigger(tasks: list[Task]) -> None:
            console.print(f"[blue]Idle detected:[/blue] {len(tasks)} eligible task(s)")

        def on_task_complete(task: Task, result: TaskResult) -> None:
            _print_result(task.id, result)

        orchestrator.on_trigger = on_trigger
        orchestrator.on_task_complete = on_task_complete

        # Setup signal handlers for graceful shutdown
        shutdown_event = asyncio.Event()

        def signal_handler(signum: int, frame: Any) -> None:
            console.print("\n[yellow]Shutdown signal received, stopping gracefully...[/yellow]")
            shutdown_event.set()

        sig.signal(sig.SIGINT, signal_handler)
        sig.signal(sig.SIGTERM, signal_handler)

        stats = orchestrator.store.stats()
        console.print(
            f"[blue]Watching for idle time[/blue] "
            f"({stats.total} task(s), heartbeat every {orchestrator.heartbeat_interval_ms} ms)"
        )
        console.print("[dim]Press Ctrl+C to stop gracefully[/dim]")

        await orchestrator.start()
        try:
            await shutdown_event.wait()
        finally:
            await orchestrator.shutdown()

        stats = orchestrator.store.stats()
        console.print(
            f"[green]✓[/green] Stopped: {stats.completed} completed, "
            f"{stats.failed} failed, {stats.pending} pending"
        )

    try:
        asyncio.run(_start())
    except IdleWeaverError as e:
        raise _fail(e) from e
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")


@app.command()
def status(tasks_file: Path | None = TASKS_FILE_OPTION) -> None:
    """Show idle state and task counts."""

    async def _status() -> None:
        orchestrator = _build_orchestrator(tasks_file)
        snapshot = await orchestrator.get_status()
        idle = snapshot.idle_state
        stats = snapshot.task_stats

        console.print("[bold]Idleweaver Status[/bold]")
        console.print(f"Running: {'yes' if snapshot.is_running else 'no'}")
        console.print(f"System idle: {idle.system_idle_seconds:.0f}s")
        if idle.user_silent_seconds is not None:
            console.print(f"User silent: {idle.user_silent_seconds:.0f}s")
        console.print(f"Active tasks: {'yes' if idle.has_active_tasks else 'no'}")

        table = Table(title="Tasks")
        table.add_column("Total", justify="right")
        table.add_column("Pending", justify="right", style="yellow")
        table.add_column("Running", justify="right", style="blue")
        table.add_column("Completed", justify="right", style="green")
        table.add_column("Failed", justify="right", style="red")
        table.add_row(
            str(stats.total),
            str(stats.pending),
            str(stats.running),
            str(stats.completed),
            str(stats.failed),
        )
        console.print(table)

    try:
        asyncio.run(_status())
    except IdleWeaverError as e:
        raise _fail(e) from e


@app.command("list")
def list_tasks(tasks_file: Path | None = TASKS_FILE_OPTION) -> None:
    """List eligible tasks in dispatch order, then tasks still waiting."""
    try:
        orchestrator = _build_orchestrator(tasks_file)
    except IdleWeaverError as e:
        raise _fail(e) from e

    store = orchestrator.store
    eligible = orchestrator.scheduler.eligible(store)
    eligible_ids = {task.id for task in eligible}

    table = Table(title="Eligible Tasks")
    table.add_column("#", justify="right", style="dim")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Priority")
    for position, task in enumerate(eligible, start=1):
        style = PRIORITY_STYLES[task.priority]
        table.add_row(str(position), task.id, task.name, f"[{style}]{task.priority.value}[/{style}]")
    console.print(table)

    waiting = [task for task in store.all_tasks() if task.id not in eligible_ids]
    if not waiting:
        return

    table = Table(title="Waiting Tasks")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Status")
    table.add_column("Waiting On")
    for task in waiting:
        style = STATUS_STYLES[task.status]
        blocking = orchestrator.scheduler.blocking_dependencies(store, task)
        if task.status != TaskStatus.PENDING:
            reason = "-"
        elif blocking:
            reason = ", ".join(blocking)
        else:
            reason = "interval"
        table.add_row(task.id, f"[{style}]{task.status.value}[/{style}]", reason)
    console.print(table)


@app.command("exec")
def exec_task(
    task_id: str | None = typer.Argument(None, help="Task to run (default: next eligible)"),
    tasks_file: Path | None = TASKS_FILE_OPTION,
) -> None:
    """Run one task now, ignoring idle state."""

    async def _exec() -> bool:
        orchestrator = _build_orchestrator(tasks_file)

        if task_id is None:
            result = await orchestrator.execute_next()
            if result is None:
                console.print("[yellow]No eligible task to run[/yellow]")
                return True
        else:
            if task_id not in orchestrator.store:
                raise TaskNotFoundError(task_id)
            result = await orchestrator.execute_task(task_id)
            if result is None:
                raise TaskAlreadyRunningError(task_id)

        _print_result(result.task_id or task_id or "task", result)
        return result.success

    try:
        succeeded = asyncio.run(_exec())
    except IdleWeaverError as e:
        raise _fail(e) from e

    if not succeeded:
        raise typer.Exit(1)


# ===== Main Entry Point =====
def main() -> None:
    """Main entry point."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)


if __name__ == "__main__":
    main()
