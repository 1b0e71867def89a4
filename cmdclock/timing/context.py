"""
Session-scoped instrumentation context.

One object per interactive session owns the timer slot, the stats store,
the reentrancy latch and the prompt chain, and is handed by reference to the
hook and the prompt middleware. No module-level state.

Usage:
    ctx = InstrumentationContext.from_config(load_config())
    ctx.attach(shell)          # register hook, install prompt chain
    ...
    ctx.show_insights(console)
"""

from __future__ import annotations

from collections.abc import Callable
import logging
import time
from typing import Protocol

from rich.console import Console

from cmdclock.config import ClockConfig
from cmdclock.errors import PersistenceFailure

from .guard import ExclusionFilter, ReentrancyGuard
from .hook import CommandHook
from .insights import InsightsReporter
from .notify import SlowCommandReporter
from .persistence import HistoryRecorder, SQLiteHistoryRecorder
from .prompt import PromptChain, PromptSlotLike, TimingMiddleware
from .store import StatsStore
from .timer import TimerSlot

logger = logging.getLogger(__name__)


class HookRegistry(Protocol):
    def register(self, callback: Callable[[str], None]) -> bool: ...

    def unregister(self, callback: Callable[[str], None]) -> bool: ...


class Host(Protocol):
    """What a host shell exposes to the instrumentation."""

    hooks: HookRegistry
    prompt: PromptSlotLike
    last_command_line: str | None
    last_exit_code: int

    def call_depth(self) -> int: ...


class InstrumentationContext:
    """Everything the timing core needs for one session."""

    def __init__(
        self,
        config: ClockConfig | None = None,
        recorder: HistoryRecorder | None = None,
        console: Console | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.config = config or ClockConfig()
        self.store = StatsStore(capacity=self.config.history_size)
        self.timer = TimerSlot(clock=clock)
        self.guard = ReentrancyGuard()
        self.exclusions = ExclusionFilter(
            self.config.excluded_commands, max_depth=self.config.max_stack_depth
        )
        self.reporter = SlowCommandReporter(self.config.slow_threshold_ms, console=console)
        self.insights = InsightsReporter(self.store)
        self.recorder = recorder

        self.hook = CommandHook(self.timer, self.guard, self.exclusions)
        self.timing = TimingMiddleware(
            self.timer,
            self.store,
            reporter=self.reporter,
            recorder=recorder,
            suspicious_threshold_ms=self.config.suspicious_threshold_ms,
        )
        self.prompt = PromptChain()
        self.prompt.use(self.timing)
        self._host: Host | None = None

    @classmethod
    def from_config(
        cls, config: ClockConfig, console: Console | None = None
    ) -> InstrumentationContext:
        """Build a context, with a SQLite recorder when history is enabled."""
        recorder = None
        if config.history.enabled:
            recorder = SQLiteHistoryRecorder(config.history.resolved_path())
        return cls(config=config, recorder=recorder, console=console)

    def attach(self, host: Host, refresh: bool = False) -> None:
        """Wire the hook, the probes and the prompt chain into a host shell.

        Safe to call again: the hook registration and the prompt install are
        both idempotent. Pass `refresh=True` after a prompt theme replaced
        the host's prompt slot so the chain re-captures it as its base.
        """
        self.hook.depth_probe = host.call_depth
        self.timing.command_line_probe = lambda: host.last_command_line
        self.timing.exit_code_probe = lambda: host.last_exit_code
        host.hooks.register(self.hook)
        self.prompt.install(host.prompt, refresh=refresh)
        self._host = host
        logger.info("instrumentation attached (persistence=%s)", self.recorder is not None)

    def detach(self) -> None:
        """Unregister the hook and hand the prompt slot back to the captured base."""
        host = self._host
        if host is None:
            return
        host.hooks.unregister(self.hook)
        if host.prompt.get() is self.prompt and self.prompt.base is not None:
            host.prompt.set(self.prompt.base)
        self.timer.clear()
        self._host = None

    def load_history(self) -> int:
        """Seed the store from the history database. Returns commands loaded."""
        if not isinstance(self.recorder, SQLiteHistoryRecorder):
            return 0
        try:
            grouped = self.recorder.durations_by_command()
        except PersistenceFailure as e:
            logger.warning("history unavailable: %s", e)
            return 0
        for name, durations in grouped.items():
            self.store.extend(name, durations)
        return len(grouped)

    # Public commands

    def show_insights(self, console: Console) -> None:
        self.insights.print_insights(console)

    def health_check(self, console: Console) -> None:
        self.insights.print_health(console)

    def clear_stats(self) -> int:
        count = self.insights.reset()
        logger.info("cleared stats for %d commands", count)
        return count
