#!/usr/bin/env python3
"""cmdclock CLI - Main entry point.

Core commands:
- shell: Interactive shell with per-command timing
- insights: Slowest / most executed commands from the history database
- health: Memory usage and rating
- history: History database maintenance (list, stats, clear, optimize, check)
"""

from __future__ import annotations

import json

from rich.console import Console
from rich.markup import escape
import typer

from cmdclock.commands import history as history_commands
from cmdclock.config import ClockConfig, load_config
from cmdclock.core import CMDCLOCK_VERSION
from cmdclock.errors import ConfigError
from cmdclock.logging_utils import setup_logging
from cmdclock.shell import InteractiveShell
from cmdclock.timing import InstrumentationContext, SQLiteHistoryRecorder

app = typer.Typer(
    name="cmdclock",
    help="cmdclock: wall-clock timing for every command you run",
    add_completion=False,
    no_args_is_help=True,
)
app.add_typer(history_commands.app, name="history")

console = Console()


def _load() -> ClockConfig:
    """Load config once per invocation and set up logging from it."""
    try:
        cfg = load_config()
    except ConfigError as e:
        console.print(f"[red]Config error: {escape(str(e))}[/red]")
        raise typer.Exit(2) from None
    setup_logging(cfg.verbosity, cfg.log_format, cfg.log_path or None)
    return cfg


def _parse_aliases(values: list[str] | None) -> dict[str, str]:
    aliases = {}
    for value in values or []:
        name, sep, expansion = value.partition("=")
        if not sep or not name:
            console.print(f"[red]Invalid alias {escape(value)}: expected NAME=EXPANSION[/red]")
            raise typer.Exit(2)
        aliases[name] = expansion
    return aliases


@app.command()
def shell(
    no_history: bool = typer.Option(False, "--no-history", help="Keep timings in memory only"),
    alias: list[str] = typer.Option(None, "--alias", "-a", help="Alias as NAME=EXPANSION"),
):
    """Start an interactive shell that times every command.

    Examples:
        cmdclock shell
        cmdclock shell -a ll="ls -la" -a gs="git status"
    """
    cfg = _load()
    if no_history:
        cfg.history.enabled = False

    ctx = InstrumentationContext.from_config(cfg)
    sh = InteractiveShell(aliases=_parse_aliases(alias), console=console)
    ctx.attach(sh)

    def show_insights() -> None:
        """Slowest and most executed commands this session."""
        ctx.show_insights(console)

    def health_check() -> None:
        """Memory usage and rating."""
        ctx.health_check(console)

    def clear_stats() -> None:
        """Forget every timing recorded this session."""
        count = ctx.clear_stats()
        console.print(f"[green]Cleared stats for {count} commands.[/green]")

    sh.define("insights", show_insights)
    sh.define("health", health_check)
    sh.define("clear-stats", clear_stats)

    try:
        code = sh.run()
    finally:
        ctx.detach()
    raise typer.Exit(code)


@app.command()
def insights(
    json_output: bool = typer.Option(False, "--json", help="JSON output"),
):
    """Insights over the persisted command history."""
    cfg = _load()
    recorder = SQLiteHistoryRecorder(cfg.history.resolved_path())
    ctx = InstrumentationContext(cfg, recorder=recorder, console=console)
    ctx.load_history()

    if json_output:
        typer.echo(json.dumps(ctx.insights.to_dict(), indent=2))
        return
    ctx.show_insights(console)


@app.command()
def health(
    json_output: bool = typer.Option(False, "--json", help="JSON output"),
):
    """Report this process's memory usage and a rating."""
    cfg = _load()
    ctx = InstrumentationContext(cfg, console=console)
    if json_output:
        typer.echo(json.dumps(ctx.insights.health().to_dict(), indent=2))
        return
    ctx.health_check(console)


@app.command()
def version():
    """Show the cmdclock version."""
    typer.echo(f"cmdclock {CMDCLOCK_VERSION}")


if __name__ == "__main__":
    app()
