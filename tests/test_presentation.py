"""
Tests for the headless console presentation.
"""
import io

import pytest

from herd.endpoints import Endpoint
from herd.errors import SpawnError
from herd.presentation import PROMPT, ConsolePresentation, LineBuffer
from herd.session import Session

from conftest import FakeTransport


def test_line_buffer_joins_chunks():
    buffer = LineBuffer()
    assert buffer.feed("up") == []
    assert buffer.feed("time\r\n 10:00 up") == ["uptime"]
    assert buffer.feed(" 3 days\n") == [" 10:00 up 3 days"]
    assert buffer.flush() == []


def test_line_buffer_flushes_partial_line():
    buffer = LineBuffer()
    buffer.feed("$ ")
    buffer.feed("prompt")
    assert buffer.flush() == ["$ prompt"]
    assert buffer.flush() == []


@pytest.mark.asyncio
async def test_console_prefixes_output_per_session():
    stream = io.StringIO()
    console = ConsolePresentation(stream=stream, color=False)
    session = Session(Endpoint("alice", "10.0.0.1"), FakeTransport())

    console.display(session)
    console.session_output(session, "Linux\r\nhost")
    console.session_status(session)
    assert stream.getvalue().splitlines() == ["[alice@10.0.0.1] Linux"]

    session._mark_dead()
    console.session_status(session)

    assert stream.getvalue().splitlines() == [
        "[alice@10.0.0.1] Linux",
        "[alice@10.0.0.1] host",
    ]


@pytest.mark.asyncio
async def test_console_colors_sessions_differently():
    console = ConsolePresentation(stream=io.StringIO())
    first = Session(Endpoint("alice", "10.0.0.1"), FakeTransport())
    second = Session(Endpoint("alice", "10.0.0.2"), FakeTransport())
    console.display(first)
    console.display(second)
    assert first.surface != second.surface


@pytest.mark.asyncio
async def test_failed_session_is_reported_once_through_the_cluster():
    stream = io.StringIO()
    console = ConsolePresentation(stream=stream, color=False)
    session = Session(Endpoint("alice", "10.0.0.9"), FakeTransport())
    console.display(session)
    session._mark_dead(SpawnError(session.endpoint, "connection refused"))

    console.session_status(session)

    # The cluster writes the "Could not open" notice
    assert stream.getvalue() == ""


def test_console_stops_prompting_after_close():
    stream = io.StringIO()
    console = ConsolePresentation(stream=stream)
    console.control_prompt()
    console.close_all_surfaces()
    console.control_prompt()
    assert stream.getvalue() == PROMPT
