"""Prompt middleware chain and the timing middleware."""

from __future__ import annotations

import logging
from unittest.mock import MagicMock

import pytest

from cmdclock.errors import PersistenceFailure
from cmdclock.shell.host import PromptSlot
from cmdclock.timing.notify import SlowCommandReporter
from cmdclock.timing.prompt import DEFAULT_PROMPT, PromptChain, TimingMiddleware
from cmdclock.timing.store import StatsStore
from cmdclock.timing.timer import TimerSlot


class CountingTheme:
    def __init__(self, text="theme> "):
        self.text = text
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return self.text


class TestPromptChain:
    def test_install_captures_current_renderer(self):
        theme = CountingTheme()
        slot = PromptSlot(theme)
        chain = PromptChain()

        assert chain.install(slot)
        assert slot.get() is chain
        assert chain.base is theme
        assert slot.render() == "theme> "

    def test_install_twice_does_not_nest(self):
        theme = CountingTheme()
        slot = PromptSlot(theme)
        chain = PromptChain()
        chain.install(slot)

        assert not chain.install(slot)
        assert chain.base is theme
        slot.render()
        assert theme.calls == 1

    def test_refresh_recaptures_theme_installed_later(self):
        original = CountingTheme("old> ")
        slot = PromptSlot(original)
        chain = PromptChain()
        chain.install(slot)

        late_theme = CountingTheme("new> ")
        slot.set(late_theme)
        chain.install(slot, refresh=True)

        assert slot.get() is chain
        assert chain.base is late_theme
        assert slot.render() == "new> "
        assert original.calls == 0

    def test_reinstall_without_refresh_keeps_base(self):
        original = CountingTheme("old> ")
        slot = PromptSlot(original)
        chain = PromptChain()
        chain.install(slot)

        slot.set(CountingTheme("other> "))
        chain.install(slot)

        assert chain.base is original
        assert slot.render() == "old> "

    def test_theme_wrapping_the_chain_does_not_recurse(self):
        original = CountingTheme("old> ")
        slot = PromptSlot(original)
        chain = PromptChain()
        chain.install(slot)

        def wrapping_theme():
            return "[git] " + chain()

        slot.set(wrapping_theme)
        chain.install(slot, refresh=True)

        assert slot.render() == "[git] old> "
        assert original.calls == 1

    def test_empty_slot_uses_default_prompt(self):
        slot = PromptSlot()
        chain = PromptChain()
        chain.install(slot)
        assert slot.render() == DEFAULT_PROMPT

    def test_use_is_idempotent(self):
        chain = PromptChain()

        def middleware(call_next):
            return call_next()

        assert chain.use(middleware)
        assert not chain.use(middleware)
        assert chain.middlewares == (middleware,)
        assert chain.remove(middleware)
        assert not chain.remove(middleware)

    def test_middlewares_run_in_order(self):
        order = []

        def outer(call_next):
            order.append("outer")
            return "<" + call_next() + ">"

        def inner(call_next):
            order.append("inner")
            return call_next().upper()

        chain = PromptChain(base=lambda: "p")
        chain.use(outer)
        chain.use(inner)

        assert chain() == "<P>"
        assert order == ["outer", "inner"]

    def test_base_called_exactly_once_even_if_middleware_misbehaves(self):
        theme = CountingTheme()
        chain = PromptChain(base=theme)
        chain.use(lambda call_next: call_next() + call_next())
        chain.use(lambda call_next: "skipped")

        chain()
        assert theme.calls == 1

    def test_failing_middleware_still_renders(self):
        theme = CountingTheme()
        chain = PromptChain(base=theme)

        def broken(call_next):
            raise RuntimeError("bad middleware")

        chain.use(broken)
        assert chain() == "theme> "
        assert theme.calls == 1

    def test_failing_middleware_logged_by_type_name(self, caplog):
        class BrokenMiddleware:
            def __call__(self, call_next):
                raise RuntimeError("bad middleware")

        chain = PromptChain(base=CountingTheme())
        chain.use(BrokenMiddleware())

        with caplog.at_level(logging.WARNING, logger="cmdclock"):
            chain()

        assert "prompt middleware BrokenMiddleware failed" in caplog.text

    def test_failing_base_propagates_through_middlewares(self, caplog):
        def broken_theme():
            raise RuntimeError("theme crashed")

        seen = []

        def passthrough(call_next):
            seen.append("before")
            return call_next()

        chain = PromptChain(base=broken_theme)
        chain.use(passthrough)
        chain.use(lambda call_next: call_next())

        with caplog.at_level(logging.WARNING, logger="cmdclock"):
            with pytest.raises(RuntimeError, match="theme crashed"):
                chain()

        assert seen == ["before"]
        assert "prompt middleware" not in caplog.text

    def test_failing_theme_keeps_host_fallback(self, clock):
        def broken_theme():
            raise RuntimeError("theme crashed")

        slot = PromptSlot(broken_theme)
        middleware, timer, store = make_middleware(clock)
        chain = PromptChain()
        chain.use(middleware)
        chain.install(slot)
        timer.arm("git")
        clock.advance_ms(50)

        assert slot.render() == DEFAULT_PROMPT
        assert store.series("git") == [pytest.approx(50.0)]
        assert not timer.running

    def test_stacked_wrapping_themes_terminate(self):
        original = CountingTheme("old> ")
        slot = PromptSlot(original)
        chain = PromptChain()
        chain.install(slot)

        def git_theme():
            return "[git] " + chain()

        slot.set(git_theme)
        chain.install(slot, refresh=True)

        def venv_theme():
            return "(venv) " + chain()

        slot.set(venv_theme)
        chain.install(slot, refresh=True)

        assert slot.render() == "(venv) [git] old> "
        assert original.calls == 1

    def test_wrapping_theme_without_earlier_base_gets_default(self):
        chain = PromptChain()
        slot = PromptSlot()

        def wrapping_theme():
            return "[git] " + chain()

        slot.set(wrapping_theme)
        chain.install(slot)

        assert slot.render() == "[git] " + DEFAULT_PROMPT


def make_middleware(clock, **kwargs):
    timer = TimerSlot(clock=clock)
    store = StatsStore()
    middleware = TimingMiddleware(timer, store, **kwargs)
    return middleware, timer, store


class TestTimingMiddleware:
    def test_records_and_clears(self, clock):
        middleware, timer, store = make_middleware(clock)
        timer.arm("git")
        clock.advance_ms(120)

        assert middleware(lambda: "p> ") == "p> "
        assert store.series("git") == [pytest.approx(120.0)]
        assert not timer.running

    def test_idle_timer_is_passthrough(self, clock):
        middleware, timer, store = make_middleware(clock)
        assert middleware(lambda: "p> ") == "p> "
        assert len(store) == 0

    def test_timer_stopped_before_base_renders(self, clock):
        middleware, timer, store = make_middleware(clock)
        timer.arm("git")
        clock.advance_ms(100)

        def slow_theme():
            clock.advance_ms(400)
            return "p> "

        middleware(slow_theme)
        assert store.series("git") == [pytest.approx(100.0)]

    def test_suspicious_duration_logged_and_kept(self, clock, caplog):
        middleware, timer, store = make_middleware(clock)
        timer.arm("x")
        clock.advance_ms(6000)

        with caplog.at_level(logging.WARNING, logger="cmdclock"):
            middleware(lambda: "p> ")

        assert "suspicious duration" in caplog.text
        assert store.series("x") == [pytest.approx(6000.0)]

    def test_slow_command_notice(self, clock):
        reporter = MagicMock(spec=SlowCommandReporter)
        middleware, timer, _ = make_middleware(clock, reporter=reporter)
        timer.arm("make")
        clock.advance_ms(2500)

        middleware(lambda: "p> ")
        reporter.report.assert_called_once()
        assert reporter.report.call_args.args[0].name == "make"

    def test_stop_failure_force_clears_and_renders(self, clock, caplog):
        middleware, timer, store = make_middleware(clock)
        store.record = MagicMock(side_effect=RuntimeError("disk on fire"))
        timer.arm("git")
        clock.advance_ms(10)

        with caplog.at_level(logging.WARNING, logger="cmdclock"):
            assert middleware(lambda: "p> ") == "p> "

        assert not timer.running
        assert "measurement dropped" in caplog.text

    def test_persistence_forwarded(self, clock):
        recorder = MagicMock()
        middleware, timer, store = make_middleware(
            clock,
            recorder=recorder,
            command_line_probe=lambda: "git status --short",
            exit_code_probe=lambda: 1,
        )
        timer.arm("git")
        clock.advance_ms(80)
        middleware(lambda: "p> ")

        recorder.record.assert_called_once()
        command_line, duration_ms, exit_code, start, end = recorder.record.call_args.args
        assert command_line == "git status --short"
        assert duration_ms == pytest.approx(80.0)
        assert exit_code == 1
        assert end > start

    def test_persistence_failure_keeps_in_memory_record(self, clock, caplog):
        recorder = MagicMock()
        recorder.record.side_effect = PersistenceFailure("read-only database")
        middleware, timer, store = make_middleware(clock, recorder=recorder)
        timer.arm("git")
        clock.advance_ms(30)

        with caplog.at_level(logging.WARNING, logger="cmdclock"):
            assert middleware(lambda: "p> ") == "p> "

        assert store.series("git") == [pytest.approx(30.0)]
        assert "history write failed" in caplog.text
