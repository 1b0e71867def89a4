"""
Per-command duration history.

One bounded FIFO series per command name. Appending past capacity drops the
oldest entry, so a long session never grows a series beyond `capacity`.
Key count is unbounded: distinct command names in a session stay small.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Iterator

DEFAULT_CAPACITY = 100


class StatsStore:
    """Mapping of command name -> recent durations in milliseconds."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self._series: dict[str, deque[float]] = {}

    def record(self, name: str, duration_ms: float) -> None:
        """Append a duration, evicting the oldest once the series is full."""
        series = self._series.get(name)
        if series is None:
            series = deque(maxlen=self.capacity)
            self._series[name] = series
        series.append(float(duration_ms))

    def extend(self, name: str, durations: Iterable[float]) -> None:
        for duration in durations:
            self.record(name, duration)

    def series(self, name: str) -> list[float]:
        """Durations for one command, oldest first. Empty if never recorded."""
        return list(self._series.get(name, ()))

    def items(self) -> Iterator[tuple[str, list[float]]]:
        for name, series in self._series.items():
            yield name, list(series)

    def names(self) -> list[str]:
        return list(self._series.keys())

    def clear(self) -> int:
        """Drop every series. Returns how many commands were tracked."""
        count = len(self._series)
        self._series = {}
        return count

    def __contains__(self, name: object) -> bool:
        return name in self._series

    def __len__(self) -> int:
        return len(self._series)
