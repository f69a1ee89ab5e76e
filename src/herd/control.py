"""Interpretation of lines typed on a cluster's control channel."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Mapping, Union

from .broadcast import BroadcastResult

logger = logging.getLogger(__name__)

SENTINEL = ","


class CommandKind(Enum):
    """Control commands, keyed by the word after the sentinel."""

    TILE = "tile"
    QUIT = "quit"
    BUFS = "bufs"
    UNRECOGNIZED = ""

    @property
    def keyword(self) -> str:
        return SENTINEL + self.value


@dataclass(frozen=True)
class Command:
    kind: CommandKind
    text: str


@dataclass(frozen=True)
class Data:
    text: str


Classified = Union[Command, Data]


def classify(line: str) -> Classified:
    """Decide whether ``line`` is a control command or data for the sessions.

    Non-empty lines starting with the sentinel are commands. Those naming no
    known command come back as ``CommandKind.UNRECOGNIZED``.
    """
    if line and line[0] == SENTINEL:
        word = line.strip()[len(SENTINEL):]
        try:
            kind = CommandKind(word)
        except ValueError:
            kind = CommandKind.UNRECOGNIZED
        return Command(kind, line)
    return Data(line)


@dataclass
class Outcome:
    """What happened to one control line."""

    item: Classified
    handled: bool
    broadcast: BroadcastResult | None = None


class Interpreter:
    """Routes control lines to command handlers or to the data sink.

    Unrecognized commands are ignored. A prompt is rendered after every line,
    whether or not handling it succeeded.
    """

    def __init__(
        self,
        handlers: Mapping[CommandKind, Callable[[], None]],
        on_data: Callable[[str], BroadcastResult],
        prompt: Callable[[], None],
    ) -> None:
        missing = [
            kind.keyword
            for kind in CommandKind
            if kind is not CommandKind.UNRECOGNIZED and kind not in handlers
        ]
        if missing:
            raise ValueError(f"No handler for {', '.join(missing)}")
        self._handlers = dict(handlers)
        self._on_data = on_data
        self._prompt = prompt

    def feed(self, line: str) -> Outcome:
        try:
            item = classify(line)
            if isinstance(item, Data):
                return Outcome(item, handled=True, broadcast=self._on_data(item.text))
            if item.kind is CommandKind.UNRECOGNIZED:
                logger.debug("Ignoring unrecognized command %r", line)
                return Outcome(item, handled=False)
            self._handlers[item.kind]()
            return Outcome(item, handled=True)
        finally:
            self._prompt()
