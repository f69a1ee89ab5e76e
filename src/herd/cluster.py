"""Cluster lifecycle: open a group of sessions, drive them, tear them down."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable, Sequence

from .broadcast import BroadcastResult, broadcast
from .config import Config
from .control import CommandKind, Interpreter, Outcome
from .endpoints import Endpoint, Resolver, make_resolver, resolve_all
from .errors import SpawnError
from .history import History, get_history
from .presentation import Presentation
from .registry import SessionRegistry
from .session import Session, spawn
from .transport import SSHTransport, Transport

logger = logging.getLogger(__name__)


class ClusterState(Enum):
    OPENING = "opening"
    OPEN = "open"
    CLOSED = "closed"


class ClusterController:
    """One cluster: its sessions, its control channel and its teardown."""

    def __init__(
        self,
        destination: str,
        presentation: Presentation,
        terminate_grace: float = 5,
        on_closed: Callable[["ClusterController"], None] | None = None,
    ) -> None:
        self.destination = destination
        self.presentation = presentation
        self.terminate_grace = terminate_grace
        self.registry = SessionRegistry()
        self.state = ClusterState.OPENING
        self._on_closed = on_closed
        self._spawned: list[Session] = []
        self._opened = asyncio.Event()
        self._closed = asyncio.Event()
        self.interpreter = Interpreter(
            {
                CommandKind.TILE: self.tile,
                CommandKind.QUIT: self.close,
                CommandKind.BUFS: self.list_sessions,
            },
            on_data=self.broadcast,
            prompt=presentation.control_prompt,
        )

    def __repr__(self) -> str:
        return f"<ClusterController {self.destination!r} {self.state.value} sessions={len(self.registry)}>"

    @property
    def closed(self) -> bool:
        return self.state is ClusterState.CLOSED

    async def populate(self, endpoints: Sequence[Endpoint], transport: Transport) -> None:
        """Spawn one session per endpoint and register the ones that connect.

        Sessions are registered in endpoint order. Endpoints that fail to
        connect are reported once on the control surface and left out.
        """
        for endpoint in endpoints:
            session = spawn(
                endpoint,
                transport,
                on_output=self._on_output,
                on_exit=self._on_exit,
                terminate_grace=self.terminate_grace,
            )
            self._spawned.append(session)
            self.presentation.display(session)

        results = await asyncio.gather(
            *(session.wait_ready() for session in self._spawned), return_exceptions=True
        )
        if self.closed:
            # Closed while connecting
            self._terminate_all(self._spawned)
            return

        failed = []
        for session, result in zip(self._spawned, results):
            if isinstance(result, BaseException) or not session.is_alive():
                failed.append(session)
                continue
            self.registry.add(session)
            self.presentation.session_status(session)

        if failed:
            self.presentation.control_write(
                "Could not open: "
                + ", ".join(f"{s.endpoint} ({_failure_reason(s)})" for s in failed)
            )

        self.state = ClusterState.OPEN
        self._opened.set()
        logger.info("Cluster %s open with %d session(s)", self.destination, len(self.registry))

        self.presentation.relayout(self.registry.snapshot())
        self.list_sessions()
        self.presentation.control_prompt()

    async def wait_open(self) -> None:
        await self._opened.wait()

    async def wait_closed(self) -> None:
        await self._closed.wait()

    async def drain(self) -> None:
        """Wait for close, then give the sessions their grace period to exit."""
        await self._closed.wait()
        if not self._spawned:
            return
        try:
            await asyncio.wait_for(
                asyncio.gather(*(s.wait_closed() for s in self._spawned)),
                timeout=self.terminate_grace,
            )
        except asyncio.TimeoutError:
            logger.warning("Sessions of %s still running after close", self.destination)

    def handle_line(self, line: str) -> Outcome:
        """Interpret one line typed on the control surface."""
        return self.interpreter.feed(line)

    def broadcast(self, line: str) -> BroadcastResult:
        result = broadcast(self.registry, line)
        if result.failed:
            logger.debug("Broadcast to %s failed for sessions %s", self.destination, result.failed)
        return result

    def list_sessions(self) -> None:
        lines = self.registry.listing()
        header = f"{len(lines)} session(s) in {self.destination}:"
        self.presentation.control_write("\n".join([header, *lines]))

    def tile(self) -> None:
        try:
            self.presentation.relayout(self.registry.snapshot())
        except Exception:
            logger.warning("Relayout of %s failed", self.destination, exc_info=True)

    def close(self) -> None:
        """Terminate every session and release the cluster. Safe to repeat."""
        if self.closed:
            return
        self.state = ClusterState.CLOSED
        logger.info("Closing cluster %s", self.destination)

        sessions = self.registry.snapshot()
        sessions += [s for s in self._spawned if s not in sessions]
        self._terminate_all(sessions)
        self.registry.clear()
        self._opened.set()
        self._closed.set()

        self.presentation.close_all_surfaces()
        if self._on_closed:
            self._on_closed(self)

    def abort(self) -> None:
        """Drop a cluster whose open failed, leaving nothing behind."""
        self.state = ClusterState.CLOSED
        self._terminate_all(self._spawned)
        self.registry.clear()
        self._opened.set()
        self._closed.set()

    def _terminate_all(self, sessions: list[Session]) -> None:
        for session in sessions:
            try:
                session.terminate()
            except Exception:
                logger.warning("Terminating %s failed", session, exc_info=True)

    def _on_output(self, session: Session, text: str) -> None:
        self.presentation.session_output(session, text)

    def _on_exit(self, session: Session) -> None:
        self.presentation.session_status(session)
        if self.closed or not self.registry.remove(session):
            return
        self.presentation.control_write(f"{session.endpoint} exited")
        if self.state is ClusterState.OPEN and not self.registry:
            logger.info("All sessions of %s have exited", self.destination)
            self.close()


def _failure_reason(session: Session) -> str:
    if isinstance(session.error, SpawnError):
        return session.error.reason
    return "exited before the cluster opened"


class ClusterManager:
    """Opens clusters and keeps at most one live controller per destination."""

    def __init__(
        self,
        config: Config | None = None,
        presentation: Presentation | None = None,
        transport: Transport | None = None,
        resolver: Resolver | None = None,
        history: History | None = None,
    ) -> None:
        self.config = config or Config()
        self.presentation = presentation or Presentation()
        self.transport = transport or SSHTransport(self.config.defaults)
        self.resolver = resolver or make_resolver(self.config.resolver)
        self.history = history if history is not None else get_history()
        self._controllers: dict[str, ClusterController] = {}

    @property
    def controllers(self) -> list[ClusterController]:
        return list(self._controllers.values())

    async def open(
        self, destinations: str | Sequence[str], single: bool = False
    ) -> ClusterController:
        """Open a cluster, or return the live one already open for these destinations.

        With ``single`` set, each destination is used literally instead of
        being expanded into every address it resolves to.
        """
        if isinstance(destinations, str):
            destinations = [destinations]
        key = " ".join(destinations)

        existing = self._controllers.get(key)
        if existing is not None:
            await existing.wait_open()
            if not existing.closed:
                return existing

        self.history.append(key)
        controller = ClusterController(
            key,
            self.presentation,
            terminate_grace=self.config.terminate_grace,
            on_closed=self._forget,
        )
        self._controllers[key] = controller

        try:
            endpoints = await resolve_all(
                destinations,
                None if single else self.resolver,
                self.config.defaults.user,
            )
            logger.info("%s resolved to %s", key, ", ".join(map(str, endpoints)))
            await controller.populate(endpoints, self.transport)
        except BaseException:
            self._forget(controller)
            controller.abort()
            raise

        return controller

    def close(self, controller: ClusterController) -> None:
        controller.close()

    def close_all(self) -> None:
        for controller in self.controllers:
            controller.close()

    def _forget(self, controller: ClusterController) -> None:
        if self._controllers.get(controller.destination) is controller:
            del self._controllers[controller.destination]
