"""
Shared pytest fixtures for herd tests.

Provides in-memory stand-ins for the collaborators of the cluster core:
- a fake shell transport whose channels record what they are sent
- a fake resolver backed by a dict
- a presentation that records every event
"""
import asyncio
from typing import Dict, List

import pytest

from herd.endpoints import Endpoint, Resolver
from herd.errors import SpawnError
from herd.history import History
from herd.presentation import Presentation


class FakeChannel:
    """Channel whose output is pushed by the test."""

    def __init__(self, honour_close: bool = True):
        self.written: List[str] = []
        self.closed = False
        self.honour_close = honour_close
        self._output: asyncio.Queue = asyncio.Queue()

    async def read(self) -> str:
        return await self._output.get()

    async def write(self, data: str) -> None:
        if self.closed:
            raise BrokenPipeError("channel closed")
        self.written.append(data)

    def close(self) -> None:
        self.closed = True
        if self.honour_close:
            self._output.put_nowait("")

    def emit(self, text: str) -> None:
        self._output.put_nowait(text)

    def hang_up(self) -> None:
        """Simulate the remote shell exiting."""
        self._output.put_nowait("")


class FakeTransport:
    """Opens FakeChannels; hosts listed in ``fail`` refuse to connect."""

    def __init__(self, fail=(), honour_close: bool = True):
        self.fail = set(fail)
        self.honour_close = honour_close
        self.opened: List[Endpoint] = []
        self.channels: Dict[Endpoint, FakeChannel] = {}
        self.gate: asyncio.Event = None

    async def open(self, endpoint: Endpoint) -> FakeChannel:
        self.opened.append(endpoint)
        if self.gate is not None:
            await self.gate.wait()
        if endpoint.host in self.fail:
            raise SpawnError(endpoint, "connection refused")
        channel = FakeChannel(honour_close=self.honour_close)
        self.channels[endpoint] = channel
        return channel


class FakeResolver(Resolver):
    def __init__(self, records: Dict[str, List[str]]):
        super().__init__(timeout=1)
        self.records = records
        self.lookups: List[str] = []

    async def lookup(self, host: str) -> List[str]:
        self.lookups.append(host)
        return list(self.records.get(host, []))


class RecordingPresentation(Presentation):
    def __init__(self):
        self.events = []
        self.control_text: List[str] = []
        self.prompts = 0
        self.output: Dict[int, str] = {}

    def display(self, session):
        self.events.append(("display", session.id))

    def session_output(self, session, text):
        self.output[session.id] = self.output.get(session.id, "") + text

    def session_status(self, session):
        self.events.append(("status", session.id, session.status))

    def relayout(self, sessions):
        self.events.append(("relayout", [s.id for s in sessions]))

    def close_all_surfaces(self):
        self.events.append(("close_all",))

    def control_write(self, text):
        self.control_text.append(text)

    def control_prompt(self):
        self.prompts += 1


async def settle(rounds: int = 10) -> None:
    """Let background session tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def presentation():
    return RecordingPresentation()


@pytest.fixture
def history():
    return History()


@pytest.fixture
def resolver():
    return FakeResolver({
        "cluster.example": ["10.0.0.1", "10.0.0.2"],
        "trio.example": ["10.0.1.1", "10.0.1.2", "10.0.1.3"],
    })
