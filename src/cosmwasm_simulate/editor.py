"""
Line-oriented value sources for the session loop and message constructor.

Two implementations share one interface:
- `TerminalEditor`: prompts on a rich console and reads with `input()`; when
  the platform `readline` module is available, the current suggestion list is
  offered through tab completion and up-arrow history.
- `ScriptedSource`: replays a fixed list of answers (a script file or a test
  fixture) and raises `EOFError` once exhausted, just like `input()` at EOF.

Both keep an input history: raw values typed with ``store_input=True`` are
remembered so they can be offered again when the next message is built.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Protocol

from rich.console import Console
from rich.markup import escape

try:
    import readline  # type: ignore
except ImportError:  # pragma: no cover - Windows without pyreadline
    readline = None  # type: ignore

logger = logging.getLogger(__name__)


class ValueSource(Protocol):
    console: Console

    def announce(self, markup: str) -> None: ...

    def read(self, *, store_input: bool = True) -> str: ...

    def set_suggestions(self, entries: Iterable[str]) -> None: ...

    def add_input_history(self, entry: str) -> None: ...

    def restore_input_suggestions(self) -> None: ...


class _SuggestionState:
    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console(highlight=False)
        self.suggestions: list[str] = []
        self.input_history: list[str] = []

    def announce(self, markup: str) -> None:
        self.console.print(markup)

    def set_suggestions(self, entries: Iterable[str]) -> None:
        self.suggestions = list(dict.fromkeys(entries))
        self._sync_history()

    def add_input_history(self, entry: str) -> None:
        if entry and entry not in self.input_history:
            self.input_history.append(entry)

    def restore_input_suggestions(self) -> None:
        """Offer previously typed raw values while fields are being collected."""
        self.set_suggestions(self.input_history)

    def _remember(self, line: str, store_input: bool) -> str:
        # Raw values keep their surrounding whitespace; selectors are trimmed.
        value = line.rstrip("\r\n") if store_input else line.strip()
        if store_input:
            self.add_input_history(value)
        return value

    def _sync_history(self) -> None:
        pass


class TerminalEditor(_SuggestionState):
    def __init__(self, console: Console | None = None, *, prompt: str = "> ") -> None:
        super().__init__(console)
        self.prompt = prompt
        self._setup_readline()

    def _setup_readline(self) -> None:
        if readline is None:
            logger.debug("readline unavailable; tab completion disabled")
            return
        readline.set_completer(self._complete)
        readline.set_completer_delims("")
        if readline.__doc__ and "libedit" in readline.__doc__:
            readline.parse_and_bind("bind ^I rl_complete")
        else:
            readline.parse_and_bind("tab: complete")

    def _complete(self, text: str, state: int) -> str | None:
        matches = [s for s in self.suggestions if s.startswith(text)]
        if state < len(matches):
            return matches[state]
        return None

    def _sync_history(self) -> None:
        if readline is None:
            return
        readline.clear_history()
        for entry in self.suggestions:
            readline.add_history(entry)

    def read(self, *, store_input: bool = True) -> str:
        return self._remember(self.console.input(self.prompt), store_input)


class ScriptedSource(_SuggestionState):
    def __init__(self, lines: Iterable[str], console: Console | None = None, *, echo: bool = True) -> None:
        super().__init__(console)
        self._lines: Iterator[str] = iter(lines)
        self.echo = echo

    @classmethod
    def from_file(cls, path: Path, console: Console | None = None) -> ScriptedSource:
        """One answer per line; lines starting with ``#`` are comments. Blank lines are answers."""
        lines = [ln for ln in path.read_text(encoding="utf-8").splitlines() if not ln.startswith("#")]
        return cls(lines, console)

    def read(self, *, store_input: bool = True) -> str:
        try:
            line = next(self._lines)
        except StopIteration:
            raise EOFError("script exhausted") from None
        value = self._remember(line, store_input)
        if self.echo:
            self.console.print(f"[dim]> {escape(value)}[/dim]")
        return value
