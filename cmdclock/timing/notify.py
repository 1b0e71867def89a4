"""
Live slow-command notice, printed as soon as a measurement is recorded.
"""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape

from .timer import Measurement

DEFAULT_SLOW_THRESHOLD_MS = 1000.0


class SlowCommandReporter:
    """Prints a one-line notice for measurements over the threshold."""

    def __init__(
        self,
        threshold_ms: float = DEFAULT_SLOW_THRESHOLD_MS,
        console: Console | None = None,
    ):
        self.threshold_ms = threshold_ms
        self.console = console or Console(stderr=True, highlight=False)

    def is_slow(self, measurement: Measurement) -> bool:
        return measurement.duration_ms > self.threshold_ms

    def report(self, measurement: Measurement) -> bool:
        """Emit the notice if warranted. Returns True when something was printed."""
        if not self.is_slow(measurement):
            return False
        seconds = measurement.duration_ms / 1000.0
        self.console.print(
            f"[yellow]⏱  {escape(measurement.name)} took {seconds:.2f}s[/yellow]",
            markup=True,
        )
        return True
