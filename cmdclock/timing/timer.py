"""
The single active measurement slot.

Idle --arm(name)--> Running --stop()--> Idle
Running --clear()--> Idle   (forced, used on every failure path)
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import time


@dataclass(frozen=True)
class CommandTimer:
    """An armed measurement."""

    name: str
    started: float  # monotonic seconds from the slot's clock
    started_at: datetime  # wall clock, for the history sink


@dataclass(frozen=True)
class Measurement:
    """A finished measurement."""

    name: str
    duration_ms: float
    started_at: datetime
    ended_at: datetime
    suspicious: bool = False


class TimerSlot:
    """Holds zero or one CommandTimer for the whole session."""

    def __init__(
        self,
        clock: Callable[[], float] = time.perf_counter,
        wall_clock: Callable[[], datetime] | None = None,
    ):
        self._clock = clock
        self._wall_clock = wall_clock or (lambda: datetime.now(timezone.utc))
        self._active: CommandTimer | None = None

    @property
    def active(self) -> CommandTimer | None:
        return self._active

    @property
    def running(self) -> bool:
        return self._active is not None

    def arm(self, name: str) -> bool:
        """Start timing `name` unless a measurement is already running.

        Returns True only when this call armed the slot. A second arm in the
        same logical command (alias resolution re-entering lookup) is ignored
        so the earlier start instant wins.
        """
        if self._active is not None:
            return False
        self._active = CommandTimer(name=name, started=self._clock(), started_at=self._wall_clock())
        return True

    def stop(self, suspicious_after_ms: float | None = None) -> Measurement | None:
        """Finish the running measurement. No-op (None) when idle."""
        timer = self._active
        if timer is None:
            return None
        # Clear first so a failure below can never leave the slot Running.
        self._active = None
        duration_ms = (self._clock() - timer.started) * 1000.0
        ended_at = timer.started_at + timedelta(milliseconds=duration_ms)
        suspicious = suspicious_after_ms is not None and duration_ms > suspicious_after_ms
        return Measurement(
            name=timer.name,
            duration_ms=duration_ms,
            started_at=timer.started_at,
            ended_at=ended_at,
            suspicious=suspicious,
        )

    def clear(self) -> None:
        self._active = None
