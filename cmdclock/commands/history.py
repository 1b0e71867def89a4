"""
CLI commands for the persisted command history.

Commands:
- cmdclock history list: Most recent commands with duration and exit code
- cmdclock history stats: Row count, distinct commands, database size
- cmdclock history clear: Delete every recorded command
- cmdclock history optimize: VACUUM + ANALYZE the database
- cmdclock history check: SQLite integrity check
- cmdclock history backup: Timestamped copy of the database
- cmdclock history repair: Rebuild a damaged database from readable rows
"""

from __future__ import annotations

import json

from rich.console import Console
from rich.markup import escape
from rich.table import Table
import typer

from cmdclock.config import load_config
from cmdclock.errors import ConfigError, PersistenceFailure
from cmdclock.timing.persistence import SQLiteHistoryRecorder

app = typer.Typer(help="Inspect and maintain the command history database")
console = Console()


def _recorder() -> SQLiteHistoryRecorder:
    try:
        cfg = load_config()
    except ConfigError as e:
        console.print(f"[red]Config error: {escape(str(e))}[/red]")
        raise typer.Exit(2) from None
    return SQLiteHistoryRecorder(cfg.history.resolved_path())


@app.command("list")
def list_history(
    limit: int = typer.Option(20, "--limit", "-n", help="Number of commands to show"),
    json_output: bool = typer.Option(False, "--json", help="JSON output"),
):
    """Show the most recent recorded commands."""
    recorder = _recorder()
    try:
        entries = recorder.recent(limit)
    except PersistenceFailure as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1) from None

    if json_output:
        typer.echo(json.dumps([entry.__dict__ for entry in entries], indent=2))
        return

    if not entries:
        console.print("[dim]No commands recorded yet.[/dim]")
        return

    table = Table(title="Command History")
    table.add_column("Started", style="dim")
    table.add_column("Command", style="cyan")
    table.add_column("Duration", justify="right")
    table.add_column("Exit", justify="right")

    for entry in entries:
        exit_style = "green" if entry.exit_code == 0 else "red"
        table.add_row(
            entry.start_time,
            escape(entry.command_line),
            f"{entry.duration_ms:.1f}ms",
            f"[{exit_style}]{entry.exit_code}[/{exit_style}]",
        )
    console.print(table)


@app.command()
def stats():
    """Summarise the history database."""
    recorder = _recorder()
    try:
        summary = recorder.statistics()
    except PersistenceFailure as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1) from None

    console.print(f"[bold]Database:[/bold] {recorder.db_path}")
    console.print(f"Total commands:  {summary.total_commands}")
    console.print(f"Unique commands: {summary.unique_commands}")
    console.print(f"Avg duration:    {summary.avg_duration_ms:.1f}ms")
    console.print(f"Size:            {summary.db_size_bytes / 1024:.1f} KB")


@app.command()
def clear(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete every recorded command."""
    recorder = _recorder()
    if not yes and not typer.confirm(f"Delete all history in {recorder.db_path}?"):
        raise typer.Exit(1)
    try:
        count = recorder.clear()
    except PersistenceFailure as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1) from None
    console.print(f"[green]Cleared {count} commands.[/green]")


@app.command()
def optimize():
    """Compact and re-analyse the history database."""
    recorder = _recorder()
    try:
        recorder.optimize()
    except PersistenceFailure as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1) from None
    console.print(f"[green]Optimized {recorder.db_path}[/green]")


@app.command()
def check():
    """Run SQLite's integrity check on the history database."""
    recorder = _recorder()
    try:
        problems = recorder.integrity_check()
    except PersistenceFailure as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1) from None
    if problems:
        for problem in problems:
            console.print(f"[red]{escape(problem)}[/red]")
        raise typer.Exit(1)
    console.print("[green]History database OK[/green]")


@app.command()
def backup(
    dest: str | None = typer.Argument(None, help="Directory or file to write the copy to"),
):
    """Write a timestamped copy of the history database."""
    recorder = _recorder()
    try:
        backup_path = recorder.backup(dest)
    except PersistenceFailure as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1) from None
    console.print(f"[green]Backed up to {escape(str(backup_path))}[/green]")


@app.command()
def repair(
    force: bool = typer.Option(False, "--force", help="Rebuild even if the check passes"),
):
    """Rebuild a damaged history database, keeping a backup of the old file."""
    recorder = _recorder()
    try:
        report = recorder.repair(force=force)
    except PersistenceFailure as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1) from None

    if not report.rebuilt:
        console.print(f"[green]History database OK ({report.rows_kept} commands)[/green]")
        return
    for problem in report.problems:
        console.print(f"[yellow]{escape(problem)}[/yellow]")
    console.print(f"[green]Rebuilt with {report.rows_kept} commands.[/green]")
    console.print(f"Backup: {escape(str(report.backup_path))}")
