"""
Command resolution hook.

The host calls this once per top-level resolution attempt, possibly several
times for one user action (alias expansion re-enters lookup). Only the first
call arms the timer; everything else is a quiet no-op.
"""

from __future__ import annotations

from collections.abc import Callable
import logging

from cmdclock.errors import TimerArmFailure
from cmdclock.logging_utils import TRACE

from .guard import ExclusionFilter, ReentrancyGuard
from .timer import TimerSlot

logger = logging.getLogger(__name__)


class CommandHook:
    """Arms the TimerSlot when the host resolves a user command."""

    def __init__(
        self,
        timer: TimerSlot,
        guard: ReentrancyGuard,
        exclusions: ExclusionFilter,
        depth_probe: Callable[[], int] | None = None,
    ):
        self.timer = timer
        self.guard = guard
        self.exclusions = exclusions
        self.depth_probe = depth_probe

    def __call__(self, command: object) -> None:
        if self.guard.held:
            return

        with self.guard.hold():
            try:
                self._arm(command)
            except Exception as e:
                failure = e if isinstance(e, TimerArmFailure) else TimerArmFailure(str(e))
                logger.debug(
                    "timer arm failed for %r: %s",
                    command,
                    failure,
                    extra={"error_code": failure.code},
                )

    def _arm(self, command: object) -> None:
        name = _normalize(command)
        if not name:
            return

        if self.exclusions.is_excluded(name):
            logger.log(TRACE, "skip excluded command %s", name)
            return

        depth = self._current_depth()
        if self.exclusions.is_nested(depth):
            logger.log(TRACE, "skip nested call %s at depth %d", name, depth)
            return

        if self.timer.arm(name):
            logger.debug("timer armed for %s", name, extra={"command": name})

    def _current_depth(self) -> int:
        if self.depth_probe is None:
            return 0
        # The probe itself goes through resolution and must not be swallowed by the latch.
        with self.guard.relaxed():
            try:
                return int(self.depth_probe())
            except Exception as e:
                raise TimerArmFailure(f"depth probe failed: {e}") from e


def _normalize(command: object) -> str:
    """Reduce whatever the host hands us to a plain command name."""
    if command is None:
        return ""
    name = getattr(command, "name", command)
    return str(name).strip()
