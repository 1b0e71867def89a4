"""
Read-only analytics over the StatsStore.

Nothing here mutates recorded data except `reset()`, which is the explicit
ClearStats operation.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

import psutil
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .store import StatsStore

SLOW_AVG_MS = 100.0
FREQUENTLY_SLOW_AVG_MS = 500.0
FREQUENT_COUNT = 10
FREQUENT_AVG_MS = 50.0

# (upper bound in MB, rating)
HEALTH_RATINGS = (
    (100, "Excellent"),
    (200, "Good"),
    (300, "Fair"),
)
HEALTH_FALLBACK = "Needs optimization"


@dataclass(frozen=True)
class CommandStats:
    """Aggregates for one command's retained durations."""

    name: str
    avg_ms: float
    max_ms: float
    count: int

    @property
    def total_ms(self) -> float:
        return self.avg_ms * self.count

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["avg_ms"] = round(self.avg_ms, 2)
        data["total_ms"] = round(self.total_ms, 2)
        return data


@dataclass(frozen=True)
class HealthReport:
    memory_mb: float
    rating: str

    def to_dict(self) -> dict[str, Any]:
        return {"memory_mb": round(self.memory_mb, 1), "rating": self.rating}


def rate_memory(memory_mb: float) -> str:
    for limit, rating in HEALTH_RATINGS:
        if memory_mb < limit:
            return rating
    return HEALTH_FALLBACK


def process_memory_mb() -> float:
    """Resident set size of this process."""
    return psutil.Process().memory_info().rss / (1024 * 1024)


class InsightsReporter:
    """Views and suggestions derived from recorded durations."""

    def __init__(self, store: StatsStore):
        self.store = store

    def stats(self) -> list[CommandStats]:
        result = []
        for name, series in self.store.items():
            if not series:
                continue
            result.append(
                CommandStats(
                    name=name,
                    avg_ms=sum(series) / len(series),
                    max_ms=max(series),
                    count=len(series),
                )
            )
        return result

    def command(self, name: str) -> CommandStats | None:
        for entry in self.stats():
            if entry.name == name:
                return entry
        return None

    def slowest(self, limit: int = 10) -> list[CommandStats]:
        slow = [s for s in self.stats() if s.avg_ms > SLOW_AVG_MS]
        return sorted(slow, key=lambda s: s.avg_ms, reverse=True)[:limit]

    def most_executed(self, limit: int = 10) -> list[CommandStats]:
        return sorted(self.stats(), key=lambda s: s.count, reverse=True)[:limit]

    def frequently_slow(self, limit: int = 5) -> list[CommandStats]:
        """Worth optimising: slow on average, ranked by total time spent."""
        slow = [s for s in self.stats() if s.avg_ms > FREQUENTLY_SLOW_AVG_MS]
        return sorted(slow, key=lambda s: s.total_ms, reverse=True)[:limit]

    def frequently_used(self, limit: int = 5) -> list[CommandStats]:
        """Worth optimising: run often and not instant."""
        busy = [s for s in self.stats() if s.count > FREQUENT_COUNT and s.avg_ms > FREQUENT_AVG_MS]
        return sorted(busy, key=lambda s: s.count, reverse=True)[:limit]

    def health(self, memory_mb: float | None = None) -> HealthReport:
        if memory_mb is None:
            memory_mb = process_memory_mb()
        return HealthReport(memory_mb=memory_mb, rating=rate_memory(memory_mb))

    def reset(self) -> int:
        return self.store.clear()

    def to_dict(self) -> dict[str, Any]:
        return {
            "tracked_commands": len(self.stats()),
            "slowest": [s.to_dict() for s in self.slowest()],
            "most_executed": [s.to_dict() for s in self.most_executed()],
            "suggestions": {
                "frequently_slow": [s.to_dict() for s in self.frequently_slow()],
                "frequently_used": [s.to_dict() for s in self.frequently_used()],
            },
        }

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def print_insights(self, console: Console) -> None:
        tracked = len(self.stats())
        console.print(f"[bold]Command insights[/bold] ({tracked} commands tracked)")
        if not tracked:
            console.print("[dim]No commands recorded yet.[/dim]")
            return

        slowest = self.slowest()
        if slowest:
            console.print(_stats_table("Slowest commands", slowest))

        console.print(_stats_table("Most executed", self.most_executed()))

        frequently_slow = self.frequently_slow()
        frequently_used = self.frequently_used()
        if frequently_slow or frequently_used:
            console.print("\n[bold]Suggestions[/bold]")
        for s in frequently_slow:
            console.print(
                f"  • [yellow]{escape(s.name)}[/yellow] averages {s.avg_ms / 1000:.2f}s "
                f"({s.total_ms / 1000:.1f}s total): consider optimising or caching it"
            )
        for s in frequently_used:
            console.print(
                f"  • [cyan]{escape(s.name)}[/cyan] ran {s.count}x at {s.avg_ms:.0f}ms: "
                "a faster alias or function would add up"
            )

    def print_health(self, console: Console, report: HealthReport | None = None) -> None:
        report = report or self.health()
        color = {"Excellent": "green", "Good": "green", "Fair": "yellow"}.get(report.rating, "red")
        console.print(f"Memory: {report.memory_mb:.1f} MB")
        console.print(f"Rating: [{color}]{report.rating}[/{color}]")
        console.print(f"Tracked commands: {len(self.store)}")


def _stats_table(title: str, rows: list[CommandStats]) -> Table:
    table = Table(title=title)
    table.add_column("Command", style="cyan")
    table.add_column("Avg", justify="right")
    table.add_column("Max", justify="right")
    table.add_column("Count", justify="right")
    table.add_column("Total", justify="right", style="yellow")
    for s in rows:
        table.add_row(
            escape(s.name),
            f"{s.avg_ms:.1f}ms",
            f"{s.max_ms:.1f}ms",
            str(s.count),
            f"{s.total_ms / 1000:.2f}s",
        )
    return table
