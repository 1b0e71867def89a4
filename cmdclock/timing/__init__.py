"""Command timing core: hook, timer slot, stats store and prompt chain."""

from __future__ import annotations

from .context import InstrumentationContext
from cmdclock.errors import (
    PersistenceFailure,
    TimerArmFailure,
    TimerStopFailure,
    TimingError,
)
from .guard import ExclusionFilter, ReentrancyGuard
from .hook import CommandHook
from .insights import CommandStats, HealthReport, InsightsReporter
from .notify import SlowCommandReporter
from .persistence import HistoryRecorder, SQLiteHistoryRecorder
from .prompt import PromptChain, TimingMiddleware, default_prompt
from .store import StatsStore
from .timer import CommandTimer, Measurement, TimerSlot

__all__ = [
    "CommandHook",
    "CommandStats",
    "CommandTimer",
    "ExclusionFilter",
    "HealthReport",
    "HistoryRecorder",
    "InsightsReporter",
    "InstrumentationContext",
    "Measurement",
    "PersistenceFailure",
    "PromptChain",
    "ReentrancyGuard",
    "SQLiteHistoryRecorder",
    "SlowCommandReporter",
    "StatsStore",
    "TimerArmFailure",
    "TimerSlot",
    "TimerStopFailure",
    "TimingError",
    "TimingMiddleware",
    "default_prompt",
]
