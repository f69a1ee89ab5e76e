#!/usr/bin/env python3
"""Main entry point for herd."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

import yaml
from textual.logging import TextualHandler

from .cluster import ClusterController, ClusterManager
from .config import RESOLVER_BACKENDS, Config, load_config
from .control import CommandKind
from .dashboard import Dashboard
from .errors import ResolutionError
from .log import setup_logging
from .presentation import ConsolePresentation


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="herd",
        description="Open one shell per address of a cluster and type into all of them at once",
    )
    parser.add_argument(
        "destinations",
        nargs="+",
        metavar="DESTINATION",
        help="[user@]host; a host resolving to several addresses opens one shell per address",
    )
    parser.add_argument("--config", type=Path, help="Path to YAML configuration file")
    parser.add_argument(
        "--single",
        action="store_true",
        help="Use each destination as one host instead of resolving it",
    )
    parser.add_argument("--user", help="Default remote user")
    parser.add_argument("--port", type=int, help="SSH port")
    parser.add_argument("--key", type=Path, help="Override SSH key path from config")
    parser.add_argument(
        "--resolver", choices=RESOLVER_BACKENDS, help="How cluster hostnames are resolved"
    )
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--log-file", type=Path, help="Also write logs to this file")
    parser.add_argument(
        "--headless",
        action="store_true",
        help="Run without the TUI dashboard, reading control lines from stdin",
    )
    return parser


def _apply_overrides(config: Config, args: argparse.Namespace) -> None:
    if args.user:
        config.defaults.user = args.user
    if args.port:
        config.defaults.port = args.port
    if args.key:
        config.defaults.ssh_key = args.key.expanduser()
    if args.resolver:
        config.resolver.backend = args.resolver
    if args.log_level:
        config.log_level = args.log_level.upper()
    if args.log_file:
        config.log_file = args.log_file


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    # Load configuration
    try:
        config = load_config(args.config)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except (ValueError, yaml.YAMLError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    _apply_overrides(config, args)

    if args.key and not config.defaults.ssh_key.exists():
        print(f"Error: SSH key not found: {config.defaults.ssh_key}", file=sys.stderr)
        return 1

    try:
        if args.headless:
            setup_logging(config.log_level, config.log_file)
        else:
            setup_logging(
                config.log_level, config.log_file, console=False, handler=TextualHandler()
            )
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    if args.headless:
        return asyncio.run(run_headless(config, args.destinations, single=args.single))

    app = Dashboard(args.destinations, config, single=args.single)
    app.run()
    return app.return_code or 0


async def _stdin_reader() -> asyncio.StreamReader:
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)
    return reader


async def run_headless(
    config: Config,
    destinations: list[str],
    single: bool = False,
    reader: asyncio.StreamReader | None = None,
    manager: ClusterManager | None = None,
) -> int:
    """Run one cluster without the dashboard. Returns the exit code."""
    manager = manager or ClusterManager(config, presentation=ConsolePresentation())

    try:
        controller = await manager.open(destinations, single=single)
    except (ResolutionError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if reader is None:
        reader = await _stdin_reader()

    await control_loop(controller, reader)
    await controller.drain()
    return 0


async def control_loop(controller: ClusterController, reader: asyncio.StreamReader) -> None:
    """Feed lines from ``reader`` to the controller until the cluster closes.

    End of input quits the cluster.
    """
    closed = asyncio.ensure_future(controller.wait_closed())
    try:
        while not controller.closed:
            next_line = asyncio.ensure_future(reader.readline())
            done, _ = await asyncio.wait(
                {next_line, closed}, return_when=asyncio.FIRST_COMPLETED
            )
            if next_line not in done:
                next_line.cancel()
                break

            raw = next_line.result()
            if not raw:
                controller.handle_line(CommandKind.QUIT.keyword)
                break
            controller.handle_line(raw.decode("utf-8", errors="replace").rstrip("\r\n"))
    finally:
        closed.cancel()


if __name__ == "__main__":
    sys.exit(main())
