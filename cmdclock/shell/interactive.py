"""
A small interactive shell that exposes the two extension points cmdclock
instruments: a resolution hook and a replaceable prompt renderer.

Resolution mirrors a real shell closely enough to exercise the timing core:
aliases re-enter lookup (so the hook fires more than once for one user
action), `source` runs a script one frame deeper, and the `callstack`
primitive is itself dispatched through resolution.
"""

from __future__ import annotations

from collections.abc import Callable
import logging
import os
from pathlib import Path
import shlex
import subprocess

from rich.console import Console
from rich.markup import escape

from .host import CommandHooks, PromptSlot

logger = logging.getLogger(__name__)

Builtin = Callable[[list[str]], int]

EXIT_USAGE = 2
EXIT_NOT_EXECUTABLE = 126
EXIT_NOT_FOUND = 127
EXIT_INTERRUPTED = 130


class InteractiveShell:
    """Read a line, resolve it, run it, render the prompt. Repeat."""

    def __init__(
        self,
        prompt: PromptSlot | None = None,
        hooks: CommandHooks | None = None,
        aliases: dict[str, str] | None = None,
        console: Console | None = None,
        input_fn: Callable[[str], str] = input,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ):
        self.prompt = prompt or PromptSlot()
        self.hooks = hooks or CommandHooks()
        self.aliases: dict[str, str] = dict(aliases or {})
        self.console = console or Console(highlight=False)
        self._input = input_fn
        self._runner = runner
        self._frames: list[str] = []
        self.history: list[str] = []
        self.last_command_line: str | None = None
        self.last_exit_code = 0
        self.running = False

        self.builtins: dict[str, Builtin] = {
            "alias": self._alias,
            "unalias": self._unalias,
            "callstack": self._callstack,
            "cd": self._cd,
            "echo": self._echo,
            "exit": self._exit,
            "help": self._help,
            "history": self._history,
            "source": self._source,
        }

    # ------------------------------------------------------------------
    # Extension
    # ------------------------------------------------------------------

    def define(self, name: str, func: Callable[[], object]) -> None:
        """Expose a no-argument function as a builtin command."""

        def builtin(args: list[str]) -> int:
            func()
            return 0

        builtin.__doc__ = func.__doc__
        self.builtins[name] = builtin

    def call_depth(self) -> int:
        """Current dispatch depth. Goes through resolution like any other primitive."""
        self.hooks.fire("callstack")
        return len(self._frames)

    # ------------------------------------------------------------------
    # REPL
    # ------------------------------------------------------------------

    def run(self) -> int:
        self.running = True
        while self.running:
            try:
                line = self._input(self.prompt.render())
            except EOFError:
                break
            except KeyboardInterrupt:
                self.console.print()
                continue
            self.execute(line)
        return self.last_exit_code

    def execute(self, line: str) -> int:
        """Run one top-level command line."""
        line = line.strip()
        if not line or line.startswith("#"):
            return self.last_exit_code
        self.history.append(line)
        self.last_command_line = line
        self.last_exit_code = self._run_line(line)
        return self.last_exit_code

    def _run_line(self, line: str) -> int:
        try:
            argv = shlex.split(line)
        except ValueError as e:
            self.console.print(f"[red]parse error: {escape(str(e))}[/red]")
            return EXIT_USAGE
        if not argv:
            return 0

        self._frames.append(argv[0])
        try:
            return self._dispatch(argv, frozenset())
        finally:
            self._frames.pop()

    def _dispatch(self, argv: list[str], expanded: frozenset[str]) -> int:
        name = argv[0]
        self.hooks.fire(name)

        if name in self.aliases and name not in expanded:
            expansion = shlex.split(self.aliases[name])
            logger.debug("alias %s expands to %s", name, self.aliases[name])
            if expansion:
                return self._dispatch(expansion + argv[1:], expanded | {name})

        builtin = self.builtins.get(name)
        if builtin is not None:
            return builtin(argv[1:])

        return self._run_external(argv)

    def _run_external(self, argv: list[str]) -> int:
        try:
            completed = self._runner(argv, check=False)
        except FileNotFoundError:
            self.console.print(f"[red]{escape(argv[0])}: command not found[/red]")
            return EXIT_NOT_FOUND
        except PermissionError:
            self.console.print(f"[red]{escape(argv[0])}: permission denied[/red]")
            return EXIT_NOT_EXECUTABLE
        except KeyboardInterrupt:
            return EXIT_INTERRUPTED
        return completed.returncode

    # ------------------------------------------------------------------
    # Builtins
    # ------------------------------------------------------------------

    def _alias(self, args: list[str]) -> int:
        """alias [NAME=EXPANSION ...]"""
        if not args:
            for name, expansion in sorted(self.aliases.items()):
                self.console.print(f"alias {escape(name)}={escape(shlex.quote(expansion))}")
            return 0
        status = 0
        for arg in args:
            name, sep, expansion = arg.partition("=")
            if not sep:
                if name in self.aliases:
                    quoted = shlex.quote(self.aliases[name])
                    self.console.print(f"alias {escape(name)}={escape(quoted)}")
                else:
                    self.console.print(f"[red]alias: {escape(name)}: not found[/red]")
                    status = 1
                continue
            self.aliases[name] = expansion
        return status

    def _unalias(self, args: list[str]) -> int:
        """unalias NAME ..."""
        status = 0
        for name in args:
            if self.aliases.pop(name, None) is None:
                self.console.print(f"[red]unalias: {escape(name)}: not found[/red]")
                status = 1
        return status

    def _callstack(self, args: list[str]) -> int:
        """Print the current dispatch frames, innermost last."""
        for depth, frame in enumerate(self._frames, start=1):
            self.console.print(f"{depth}: {escape(frame)}")
        return 0

    def _cd(self, args: list[str]) -> int:
        """cd [DIR]"""
        target = Path(args[0]).expanduser() if args else Path.home()
        try:
            os.chdir(target)
        except OSError as e:
            self.console.print(f"[red]cd: {escape(str(e))}[/red]")
            return 1
        return 0

    def _echo(self, args: list[str]) -> int:
        """echo [ARG ...]"""
        self.console.print(escape(" ".join(args)))
        return 0

    def _exit(self, args: list[str]) -> int:
        """exit [CODE]"""
        self.running = False
        if args:
            try:
                return int(args[0])
            except ValueError:
                return EXIT_USAGE
        return self.last_exit_code

    def _help(self, args: list[str]) -> int:
        """List builtin commands."""
        for name in sorted(self.builtins):
            doc = (self.builtins[name].__doc__ or "").strip().splitlines()
            self.console.print(f"  [cyan]{name:<12}[/cyan] {escape(doc[0]) if doc else ''}")
        return 0

    def _history(self, args: list[str]) -> int:
        """Lines entered this session."""
        for index, line in enumerate(self.history, start=1):
            self.console.print(f"{index:>5}  {escape(line)}")
        return 0

    def _source(self, args: list[str]) -> int:
        """source FILE: run each line of FILE one frame deeper."""
        if not args:
            self.console.print("[red]source: filename argument required[/red]")
            return EXIT_USAGE
        path = Path(args[0]).expanduser()
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            self.console.print(f"[red]source: {escape(str(e))}[/red]")
            return 1

        status = 0
        for line in lines:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            status = self._run_line(line)
        return status
