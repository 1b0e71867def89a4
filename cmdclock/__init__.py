"""
cmdclock - wall-clock timing for every top-level command in an interactive shell.

A session-scoped instrumentation context listens to the host's command
resolution hook, arms a single timer, and stops it from inside the prompt
render chain. Durations land in a bounded per-command history that the
insights commands read back.
"""

from __future__ import annotations

__version__ = "0.3.0"
