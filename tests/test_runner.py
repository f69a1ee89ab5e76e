"""
Tests for the command line entry point and the headless control loop.
"""
import asyncio
from unittest.mock import patch

import pytest

from herd.cluster import ClusterManager
from herd.config import Config
from herd.runner import build_parser, control_loop, main, run_headless

from conftest import settle


def feed(lines, eof=True):
    reader = asyncio.StreamReader()
    for line in lines:
        reader.feed_data(line.encode() + b"\n")
    if eof:
        reader.feed_eof()
    return reader


@pytest.fixture
def manager(transport, presentation, resolver, history):
    return ClusterManager(
        Config(), presentation=presentation, transport=transport,
        resolver=resolver, history=history,
    )


@pytest.mark.asyncio
async def test_control_loop_feeds_lines_until_quit(manager, transport, presentation):
    controller = await manager.open("alice@cluster.example")

    await control_loop(controller, feed(["uptime", ",bufs", ",quit", "never sent"]))
    await settle()

    assert controller.closed
    for channel in transport.channels.values():
        assert channel.written == ["uptime\r"]


@pytest.mark.asyncio
async def test_end_of_input_quits(manager):
    controller = await manager.open("alice@cluster.example")

    await control_loop(controller, feed(["hostname"]))

    assert controller.closed


@pytest.mark.asyncio
async def test_control_loop_stops_when_cluster_closes_itself(manager, transport):
    controller = await manager.open("alice@cluster.example")
    reader = feed([], eof=False)

    loop_task = asyncio.ensure_future(control_loop(controller, reader))
    await settle()
    for channel in list(transport.channels.values()):
        channel.hang_up()

    await asyncio.wait_for(loop_task, timeout=1)
    assert controller.closed


@pytest.mark.asyncio
async def test_run_headless_returns_zero_after_quit(manager):
    code = await run_headless(
        Config(), ["alice@cluster.example"], reader=feed([",quit"]), manager=manager
    )
    assert code == 0


@pytest.mark.asyncio
async def test_run_headless_reports_bad_destination(manager, capsys):
    code = await run_headless(Config(), ["alice@"], reader=feed([]), manager=manager)
    assert code == 1
    assert "Error:" in capsys.readouterr().err


def test_parser_accepts_several_destinations():
    args = build_parser().parse_args(["--single", "--headless", "a@x", "b@y"])
    assert args.destinations == ["a@x", "b@y"]
    assert args.single and args.headless


def test_main_missing_config(tmp_path, capsys):
    code = main(["--config", str(tmp_path / "missing.yaml"), "host"])
    assert code == 1
    assert "Config file not found" in capsys.readouterr().err


def test_main_bad_config(tmp_path, capsys):
    path = tmp_path / "bad.yaml"
    path.write_text("resolver:\n  backend: nope\n")
    assert main(["--config", str(path), "host"]) == 1
    assert "Configuration error" in capsys.readouterr().err


def test_main_missing_key(tmp_path, capsys):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    code = main(["--config", str(path), "--key", str(tmp_path / "id_none"), "host"])
    assert code == 1
    assert "SSH key not found" in capsys.readouterr().err


def test_main_headless_applies_overrides(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    seen = {}

    async def fake_run(config, destinations, single=False):
        seen.update(config=config, destinations=destinations, single=single)
        return 0

    with patch("herd.runner.run_headless", fake_run), patch("herd.runner.setup_logging"):
        code = main([
            "--config", str(path), "--headless", "--single",
            "--user", "ops", "--port", "2200", "--resolver", "getaddrinfo",
            "web1", "web2",
        ])

    assert code == 0
    assert seen["destinations"] == ["web1", "web2"]
    assert seen["single"] is True
    assert seen["config"].defaults.user == "ops"
    assert seen["config"].defaults.port == 2200
    assert seen["config"].resolver.backend == "getaddrinfo"
