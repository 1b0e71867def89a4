"""
Host shell extension points.

- PromptSlot: the single mutable "render the prompt" function
- CommandHooks: callbacks fired once per command resolution attempt
"""

from __future__ import annotations

from collections.abc import Callable
import logging

from cmdclock.timing.prompt import DEFAULT_PROMPT, PromptFn

logger = logging.getLogger(__name__)

HookFn = Callable[[str], None]


class PromptSlot:
    """Holds whatever currently renders the prompt (a theme, a chain, nothing)."""

    def __init__(self, renderer: PromptFn | None = None):
        self._renderer = renderer

    def get(self) -> PromptFn | None:
        return self._renderer

    def set(self, renderer: PromptFn) -> None:
        self._renderer = renderer

    def render(self) -> str:
        if self._renderer is None:
            return DEFAULT_PROMPT
        try:
            text = self._renderer()
        except Exception:
            logger.warning("prompt renderer failed, using default", exc_info=True)
            return DEFAULT_PROMPT
        return text if isinstance(text, str) else str(text)


class CommandHooks:
    """Ordered resolution callbacks. Registering the same callback twice is a no-op."""

    def __init__(self) -> None:
        self._callbacks: list[HookFn] = []

    def register(self, callback: HookFn) -> bool:
        if callback in self._callbacks:
            return False
        self._callbacks.append(callback)
        return True

    def unregister(self, callback: HookFn) -> bool:
        if callback not in self._callbacks:
            return False
        self._callbacks.remove(callback)
        return True

    def fire(self, name: str) -> None:
        # Copy: a callback may (un)register while we iterate.
        for callback in list(self._callbacks):
            try:
                callback(name)
            except Exception:
                logger.warning("resolution hook %r failed for %s", callback, name, exc_info=True)

    def __len__(self) -> int:
        return len(self._callbacks)
