"""
Tests for the TUI dashboard.
"""
import asyncio

import pytest
from textual.widgets import Input

from herd.config import Config
from herd.dashboard import Dashboard, SessionPanel, grid_columns
from herd.session import SessionStatus

from conftest import FakeTransport, settle


@pytest.mark.parametrize("count, columns", [(0, 1), (1, 1), (2, 2), (4, 2), (5, 3), (9, 3), (10, 4)])
def test_grid_columns(count, columns):
    assert grid_columns(count) == columns


@pytest.mark.asyncio
async def test_dashboard_shows_one_panel_per_session(resolver):
    transport = FakeTransport(fail={"10.0.1.3"})
    app = Dashboard(["alice@trio.example"], Config(), transport=transport, resolver=resolver)

    async with app.run_test() as pilot:
        await app.workers.wait_for_complete()
        await pilot.pause()

        assert app.controller is not None
        assert sorted(app.panels) == sorted(s.id for s in app.controller.registry)
        assert len(app.query(SessionPanel)) == 2
        assert all(p.status is SessionStatus.RUNNING for p in app.panels.values())

        app.controller.handle_line("uptime")
        await settle()
        for endpoint, channel in transport.channels.items():
            assert channel.written == ["uptime\r"]

        app.controller.handle_line(",quit")
        await pilot.pause()

    assert app.controller.closed


@pytest.mark.asyncio
async def test_lines_typed_while_opening_are_sent_once_open(resolver):
    transport = FakeTransport()
    transport.gate = asyncio.Event()
    app = Dashboard(["alice@cluster.example"], Config(), transport=transport, resolver=resolver)

    async with app.run_test() as pilot:
        await pilot.pause()
        assert app.controller is None

        app.query_one("#control-input", Input).value = "hostname"
        await pilot.press("enter")
        await pilot.pause()
        assert app.pending_lines == ["hostname"]

        transport.gate.set()
        await app.workers.wait_for_complete()
        await settle()

        assert app.pending_lines == []
        for channel in transport.channels.values():
            assert channel.written == ["hostname\r"]

        app.controller.handle_line(",quit")
        await pilot.pause()
