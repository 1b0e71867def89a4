"""
Prompt middleware chain.

The host owns one mutable prompt slot. Instead of patching whatever renderer
sits there, the chain captures it as its base and installs itself in the
slot. Middlewares run in order, each wrapping the next, ending at the base.

    chain = PromptChain()
    chain.use(TimingMiddleware(...))
    chain.install(slot)               # captures the theme, installs the chain
    chain.install(slot)               # no-op, never a wrapper of a wrapper
    chain.install(slot, refresh=True) # a theme replaced the slot later: re-capture it
"""

from __future__ import annotations

from collections.abc import Callable
import logging
from typing import Protocol

from cmdclock.errors import PersistenceFailure, TimerStopFailure

from .notify import SlowCommandReporter
from .persistence import HistoryRecorder
from .store import StatsStore
from .timer import Measurement, TimerSlot

logger = logging.getLogger(__name__)

PromptFn = Callable[[], str]
Middleware = Callable[[PromptFn], str]

DEFAULT_PROMPT = "$ "


def default_prompt() -> str:
    return DEFAULT_PROMPT


class PromptSlotLike(Protocol):
    def get(self) -> PromptFn | None: ...

    def set(self, renderer: PromptFn) -> None: ...


class PromptChain:
    """Ordered middlewares over a captured base renderer."""

    def __init__(self, base: PromptFn | None = None):
        self._base = base
        self._superseded: list[PromptFn | None] = []
        self._captured = base is not None
        self._middlewares: list[Middleware] = []
        self._depth = 0

    @property
    def base(self) -> PromptFn | None:
        return self._base

    @property
    def middlewares(self) -> tuple[Middleware, ...]:
        return tuple(self._middlewares)

    def use(self, middleware: Middleware) -> bool:
        """Append a middleware. Appending one already present changes nothing."""
        if middleware in self._middlewares:
            return False
        self._middlewares.append(middleware)
        return True

    def remove(self, middleware: Middleware) -> bool:
        if middleware not in self._middlewares:
            return False
        self._middlewares.remove(middleware)
        return True

    def install(self, slot: PromptSlotLike, refresh: bool = False) -> bool:
        """Put this chain into the host's prompt slot.

        Returns True if the slot was written. The slot's current renderer is
        captured as base on first install, and again whenever `refresh` is set
        (a theme that initialised after us and replaced the slot).
        """
        current = slot.get()
        if current is self:
            return False
        if not self._captured or refresh:
            if self._captured:
                self._superseded.append(self._base)
            self._base = current
            self._captured = True
            logger.debug("prompt base captured: %r", current)
        slot.set(self)
        return True

    def __call__(self) -> str:
        return self.render()

    def render(self) -> str:
        depth = self._depth
        self._depth += 1
        try:
            if depth == 0:
                return self._dispatch(0)
            # A base delegates back into us (a theme that wrapped the chain and
            # was then captured by a refresh). Each level down renders the base
            # that base replaced, so stacked wrapping themes still terminate.
            index = len(self._superseded) - depth
            if index < 0:
                return default_prompt()
            return self._call_base(self._superseded[index])
        finally:
            self._depth -= 1

    def _dispatch(self, index: int) -> str:
        if index >= len(self._middlewares):
            return self._call_base(self._base)

        called = False
        result = ""
        downstream: Exception | None = None

        def call_next() -> str:
            # At most one downstream render per invocation, however often it is asked for.
            nonlocal called, result, downstream
            if not called:
                called = True
                try:
                    result = self._dispatch(index + 1)
                except Exception as e:
                    downstream = e
                    raise
            elif downstream is not None:
                raise downstream
            return result

        middleware = self._middlewares[index]
        try:
            text = middleware(call_next)
        except Exception:
            if downstream is not None:
                # The base (or a later middleware) failed; the host's own
                # prompt fallback handles that, not us.
                raise downstream
            logger.warning(
                "prompt middleware %s failed", type(middleware).__name__, exc_info=True
            )
            return call_next()
        if not called:
            call_next()
        return text

    def _call_base(self, base: PromptFn | None) -> str:
        renderer = base if base is not None else default_prompt
        return renderer()


class TimingMiddleware:
    """Stops the running timer before anything else renders, then delegates."""

    def __init__(
        self,
        timer: TimerSlot,
        store: StatsStore,
        reporter: SlowCommandReporter | None = None,
        recorder: HistoryRecorder | None = None,
        suspicious_threshold_ms: float = 5000.0,
        command_line_probe: Callable[[], str | None] | None = None,
        exit_code_probe: Callable[[], int] | None = None,
    ):
        self.timer = timer
        self.store = store
        self.reporter = reporter
        self.recorder = recorder
        self.suspicious_threshold_ms = suspicious_threshold_ms
        self.command_line_probe = command_line_probe
        self.exit_code_probe = exit_code_probe

    def __call__(self, call_next: PromptFn) -> str:
        if self.timer.running:
            try:
                self.stop()
            except Exception as e:
                failure = e if isinstance(e, TimerStopFailure) else TimerStopFailure(str(e))
                logger.warning(
                    "measurement dropped: %s", failure, extra={"error_code": failure.code}
                )
            finally:
                self.timer.clear()
        return call_next()

    def stop(self) -> Measurement | None:
        """Finish and record the running measurement. Idle slot -> None."""
        measurement = self.timer.stop(suspicious_after_ms=self.suspicious_threshold_ms)
        if measurement is None:
            return None

        if measurement.suspicious:
            logger.warning(
                "suspicious duration for %s: %.0fms (likely spans idle time between commands)",
                measurement.name,
                measurement.duration_ms,
                extra={"command": measurement.name, "duration_ms": measurement.duration_ms},
            )

        self.store.record(measurement.name, measurement.duration_ms)
        logger.debug(
            "recorded %s: %.1fms",
            measurement.name,
            measurement.duration_ms,
            extra={"command": measurement.name, "duration_ms": measurement.duration_ms},
        )

        if self.reporter is not None:
            self.reporter.report(measurement)

        if self.recorder is not None:
            self._persist(measurement)

        return measurement

    def _persist(self, measurement: Measurement) -> None:
        try:
            command_line = measurement.name
            if self.command_line_probe is not None:
                command_line = self.command_line_probe() or measurement.name
            exit_code = self.exit_code_probe() if self.exit_code_probe is not None else 0
            self.recorder.record(
                command_line,
                measurement.duration_ms,
                exit_code,
                measurement.started_at,
                measurement.ended_at,
            )
        except Exception as e:
            failure = e if isinstance(e, PersistenceFailure) else PersistenceFailure(str(e))
            logger.warning(
                "history write failed: %s", failure, extra={"error_code": failure.code}
            )
