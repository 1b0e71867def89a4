"""
Timing error types.

Every failure in the instrumentation path maps to one of these. None of them
is ever allowed to reach the host shell: the hook and the prompt middleware
catch them at their boundaries and degrade to "skip this measurement".
"""

from __future__ import annotations


class TimingError(Exception):
    """Base error for the timing core."""

    code: str = "TIMING_ERROR"

    def __init__(self, message: str, *, code: str | None = None):
        super().__init__(message)
        if code is not None:
            self.code = code


class TimerArmFailure(TimingError):
    """Arming the timer from the resolution hook failed."""

    code = "TIMER_ARM_FAILED"


class TimerStopFailure(TimingError):
    """Stopping or recording the active measurement failed."""

    code = "TIMER_STOP_FAILED"


class PersistenceFailure(TimingError):
    """The history sink rejected a record."""

    code = "PERSISTENCE_FAILED"


class ConfigError(TimingError):
    """cmdclock.toml could not be parsed or holds invalid values."""

    code = "CONFIG_INVALID"
