"""One interactive remote shell and its I/O."""

from __future__ import annotations

import asyncio
import itertools
import logging
from enum import Enum
from typing import Any, Callable

from .endpoints import Endpoint
from .errors import SpawnError
from .transport import Channel, Transport

logger = logging.getLogger(__name__)

_session_ids = itertools.count(1)


class SessionStatus(Enum):
    """Where a session is in its life."""

    CONNECTING = "connecting"
    RUNNING = "running"
    EXITED = "exited"
    FAILED = "failed"


# Type aliases for session callbacks
OutputCallback = Callable[["Session", str], None]  # (session, text) -> None
ExitCallback = Callable[["Session"], None]


class Session:
    """A remote shell owned by one cluster.

    The session is usable as soon as it is constructed: input sent while the
    connection is still being negotiated is queued and written once the
    shell is open. Liveness only ever goes from alive to dead.
    """

    def __init__(
        self,
        endpoint: Endpoint,
        transport: Transport,
        on_output: OutputCallback | None = None,
        on_exit: ExitCallback | None = None,
        terminate_grace: float = 5,
    ) -> None:
        self.id = next(_session_ids)
        self.endpoint = endpoint
        self.status = SessionStatus.CONNECTING
        self.error: SpawnError | None = None
        self.surface: Any = None  # owned by the presentation layer
        self.on_output = on_output
        self.on_exit = on_exit
        self.terminate_grace = terminate_grace

        self._transport = transport
        self._alive = True
        self._terminating = False
        self._channel: Channel | None = None
        self._pending: asyncio.Queue[str] = asyncio.Queue()
        self._ready = asyncio.Event()
        self._task: asyncio.Task | None = None
        self._writer: asyncio.Task | None = None
        self._reaper: asyncio.TimerHandle | None = None

    def __str__(self) -> str:
        return f"{self.endpoint} #{self.id}"

    def __repr__(self) -> str:
        return f"<Session {self} {self.status.value}>"

    def start(self) -> None:
        """Begin connecting in the background."""
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name=f"herd-session-{self.id}")

    def is_alive(self) -> bool:
        return self._alive

    async def wait_ready(self) -> None:
        """Wait until the shell is open, raising ``SpawnError`` if it never opens."""
        await self._ready.wait()
        if self.error is not None:
            raise self.error

    async def wait_closed(self) -> None:
        """Wait until the session's background work has finished."""
        if self._task is not None:
            await asyncio.wait([self._task])

    def send(self, data: str) -> bool:
        """Queue input for the shell. Returns False if the session is dead."""
        if not self._alive:
            return False
        self._pending.put_nowait(data)
        return True

    def terminate(self) -> None:
        """Ask the shell to close and return immediately.

        If the shell is still alive once the grace period has passed, its
        tasks are cancelled and the session is marked dead.
        """
        if not self._alive or self._terminating:
            return
        self._terminating = True
        logger.debug("Terminating %s", self)

        if self._channel is None:
            self._mark_dead(SpawnError(self.endpoint, "terminated while connecting"))
            if self._task is not None:
                self._task.cancel()
            return

        loop = asyncio.get_running_loop()
        self._reaper = loop.call_later(self.terminate_grace, self._reap)
        self._channel.close()

    async def _run(self) -> None:
        try:
            channel = await self._transport.open(self.endpoint)
        except SpawnError as e:
            logger.warning("Could not open %s: %s", self.endpoint, e.reason)
            self._mark_dead(e)
            return
        except asyncio.CancelledError:
            self._mark_dead(SpawnError(self.endpoint, "cancelled while connecting"))
            raise
        except Exception as e:
            logger.warning("Could not open %s", self.endpoint, exc_info=True)
            self._mark_dead(SpawnError(self.endpoint, str(e) or type(e).__name__))
            return

        if not self._alive:
            channel.close()
            return

        self._channel = channel
        self.status = SessionStatus.RUNNING
        self._ready.set()
        self._writer = asyncio.create_task(self._drain(channel))

        try:
            while True:
                data = await channel.read()
                if not data:
                    break
                if self.on_output:
                    self.on_output(self, data)
        finally:
            self._mark_dead()

    async def _drain(self, channel: Channel) -> None:
        while True:
            data = await self._pending.get()
            try:
                await channel.write(data)
            except OSError as e:
                logger.debug("Write to %s failed: %s", self, e)

    def _reap(self) -> None:
        if not self._alive:
            return
        logger.warning(
            "%s did not exit within %ss of terminate, reclaiming it", self, self.terminate_grace
        )
        if self._task is not None:
            self._task.cancel()
        self._mark_dead()

    def _mark_dead(self, error: SpawnError | None = None) -> None:
        if not self._alive:
            return
        self._alive = False
        if error is not None:
            self.error = error
            self.status = SessionStatus.FAILED
        else:
            self.status = SessionStatus.EXITED
        self._ready.set()

        if self._writer is not None:
            self._writer.cancel()
        if self._reaper is not None:
            self._reaper.cancel()

        logger.info("%s is %s", self, self.status.value)
        if self.on_exit:
            self.on_exit(self)


def spawn(
    endpoint: Endpoint,
    transport: Transport,
    on_output: OutputCallback | None = None,
    on_exit: ExitCallback | None = None,
    terminate_grace: float = 5,
) -> Session:
    """Create a session for ``endpoint`` and start connecting it."""
    session = Session(
        endpoint,
        transport,
        on_output=on_output,
        on_exit=on_exit,
        terminate_grace=terminate_grace,
    )
    session.start()
    return session
