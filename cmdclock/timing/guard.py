"""
Reentrancy latch and exclusion rules for the resolution hook.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from contextlib import contextmanager


class ReentrancyGuard:
    """Boolean latch around the hook body.

    `hold()` sets the latch and always resets it on the way out, exception or
    not. `relaxed()` drops it temporarily for a call that must be allowed to
    re-enter the hook (the call-depth probe), then restores the prior state.
    """

    def __init__(self) -> None:
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    @contextmanager
    def hold(self) -> Iterator[None]:
        self._held = True
        try:
            yield
        finally:
            self._held = False

    @contextmanager
    def relaxed(self) -> Iterator[None]:
        previous = self._held
        self._held = False
        try:
            yield
        finally:
            self._held = previous


class ExclusionFilter:
    """Decides which resolutions must never start a measurement."""

    def __init__(self, names: Iterable[str] = (), max_depth: int = 3):
        self._names = frozenset(name.lower() for name in names)
        self.max_depth = max_depth

    @property
    def names(self) -> frozenset[str]:
        return self._names

    def is_excluded(self, name: str) -> bool:
        return name.lower() in self._names

    def is_nested(self, depth: int) -> bool:
        """Depth past the threshold means an internal call, not a user command."""
        return depth > self.max_depth
