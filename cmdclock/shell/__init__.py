"""Reference host shell exposing a resolution hook and a prompt slot."""

from __future__ import annotations

from .host import CommandHooks, PromptSlot
from .interactive import InteractiveShell

__all__ = ["CommandHooks", "InteractiveShell", "PromptSlot"]
