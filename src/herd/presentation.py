"""Presentation event sinks.

The cluster core never touches screens or windows. It reports what happened
through a :class:`Presentation`, and the implementation decides how to show it.
"""

from __future__ import annotations

import sys
from typing import TextIO

from .session import Session

PROMPT = "herd> "

# ANSI colors for different sessions
COLORS = [
    "\033[36m",  # Cyan
    "\033[33m",  # Yellow
    "\033[35m",  # Magenta
    "\033[32m",  # Green
    "\033[34m",  # Blue
    "\033[91m",  # Light Red
    "\033[96m",  # Light Cyan
    "\033[93m",  # Light Yellow
]
RESET = "\033[0m"


class Presentation:
    """Receives cluster events. Every method is a no-op here."""

    def display(self, session: Session) -> None:
        """A new session needs a surface."""

    def session_output(self, session: Session, text: str) -> None:
        """Remote output for a session's surface."""

    def session_status(self, session: Session) -> None:
        """A session's status changed."""

    def relayout(self, sessions: list[Session]) -> None:
        """Re-tile the surfaces of ``sessions``, in order, dropping any others."""

    def close_all_surfaces(self) -> None:
        """The cluster is gone, including its control surface."""

    def control_write(self, text: str) -> None:
        """Informational text for the control surface."""

    def control_prompt(self) -> None:
        """The control surface is ready for the next line."""


class LineBuffer:
    """Turns a stream of output chunks into complete lines."""

    def __init__(self) -> None:
        self._partial = ""

    def feed(self, text: str) -> list[str]:
        lines = (self._partial + text.replace("\r\n", "\n")).split("\n")
        self._partial = lines.pop()
        return [line.rstrip("\r") for line in lines]

    def flush(self) -> list[str]:
        partial, self._partial = self._partial, ""
        return [partial.rstrip("\r")] if partial.strip() else []


class ConsolePresentation(Presentation):
    """Headless presentation: one colored output stream for everything."""

    def __init__(self, stream: TextIO | None = None, color: bool = True) -> None:
        self.stream = stream or sys.stdout
        self.color = color
        self.closed = False
        self._buffers: dict[int, LineBuffer] = {}
        self._count = 0

    def _print(self, text: str, end: str = "\n") -> None:
        print(text, end=end, file=self.stream, flush=True)

    def _prefix(self, session: Session) -> str:
        if not self.color or session.surface is None:
            return f"[{session.endpoint}]"
        return f"{session.surface}[{session.endpoint}]{RESET}"

    def display(self, session: Session) -> None:
        session.surface = COLORS[self._count % len(COLORS)]
        self._count += 1
        self._buffers[session.id] = LineBuffer()

    def session_output(self, session: Session, text: str) -> None:
        buffer = self._buffers.setdefault(session.id, LineBuffer())
        for line in buffer.feed(text):
            self._print(f"{self._prefix(session)} {line}")

    def session_status(self, session: Session) -> None:
        if session.is_alive():
            return
        buffer = self._buffers.pop(session.id, None)
        if buffer is not None:
            for line in buffer.flush():
                self._print(f"{self._prefix(session)} {line}")

    def close_all_surfaces(self) -> None:
        self._buffers.clear()
        self.closed = True

    def control_write(self, text: str) -> None:
        self._print(text)

    def control_prompt(self) -> None:
        if not self.closed:
            self._print(PROMPT, end="")
