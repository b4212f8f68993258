"""Confirmation prompts injected into the orchestrator."""

from __future__ import annotations

import sys
from typing import Protocol

from rich.console import Console
from rich.prompt import Confirm, Prompt


class Confirmer(Protocol):
    def confirm(self, message: str) -> bool: ...

    def confirm_with_text(self, message: str, required_text: str) -> bool: ...


class ConsoleConfirmer:
    """Asks on the terminal; without an interactive stdin every question is declined."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def _interactive(self) -> bool:
        stdin = sys.stdin
        return stdin is not None and stdin.isatty()

    def confirm(self, message: str) -> bool:
        if not self._interactive():
            return False
        try:
            return Confirm.ask(message, console=self.console, default=False)
        except (EOFError, KeyboardInterrupt):
            return False

    def confirm_with_text(self, message: str, required_text: str) -> bool:
        if not self._interactive():
            return False
        self.console.print(message)
        try:
            answer = Prompt.ask(f"Type '{required_text}' to confirm", console=self.console, default="")
        except (EOFError, KeyboardInterrupt):
            return False
        return answer.strip() == required_text


class StaticConfirmer:
    """Gives the same answer to every question."""

    def __init__(self, answer: bool = True) -> None:
        self.answer = answer
        self.asked: list[str] = []

    def confirm(self, message: str) -> bool:
        self.asked.append(message)
        return self.answer

    def confirm_with_text(self, message: str, required_text: str) -> bool:
        self.asked.append(message)
        return self.answer
