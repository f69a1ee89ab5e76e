"""Fan a line of input out to every live session of a cluster."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .registry import SessionRegistry

logger = logging.getLogger(__name__)

# What the Enter key sends to a terminal
LINE_TERMINATOR = "\r"


@dataclass
class BroadcastResult:
    """Per-session outcome of one broadcast, by session id."""

    delivered: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.delivered) + len(self.failed)


def broadcast(registry: SessionRegistry, line: str) -> BroadcastResult:
    """Send ``line`` as typed input to each live session, in registry order.

    A session that is dead is skipped and one whose send raises is recorded
    as failed; neither stops the remaining sessions from receiving the line.
    """
    result = BroadcastResult()
    data = line + LINE_TERMINATOR

    for session in registry:
        if not session.is_alive():
            result.skipped.append(session.id)
            continue
        try:
            sent = session.send(data)
        except Exception:
            logger.debug("Send to %s failed", session, exc_info=True)
            result.failed.append(session.id)
            continue
        if sent:
            result.delivered.append(session.id)
        else:
            result.skipped.append(session.id)

    return result
