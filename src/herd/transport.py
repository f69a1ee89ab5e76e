"""SSH transport: opens one interactive shell per endpoint."""

from __future__ import annotations

import asyncio
import codecs
import logging
import threading
from typing import Protocol

import paramiko

from .config import Defaults
from .endpoints import Endpoint
from .errors import SpawnError

logger = logging.getLogger(__name__)

READ_SIZE = 4096


class Channel(Protocol):
    """An open interactive shell."""

    async def read(self) -> str:
        """Return the next chunk of output, or an empty string at EOF."""

    async def write(self, data: str) -> None:
        """Send input to the shell, raising ``OSError`` on failure."""

    def close(self) -> None:
        """Ask the shell to close without waiting for it."""


class Transport(Protocol):
    async def open(self, endpoint: Endpoint) -> Channel:
        """Open a shell on ``endpoint``, raising ``SpawnError`` on failure."""


class SSHChannel:
    """Interactive shell on a paramiko channel.

    A daemon thread blocks on ``recv`` and hands decoded output to the event
    loop, so reading never ties up the loop or the default executor.
    """

    def __init__(
        self,
        client: paramiko.SSHClient,
        channel: paramiko.Channel,
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        self._client = client
        self._channel = channel
        self._loop = loop
        self._output: asyncio.Queue[str] = asyncio.Queue()
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._thread = threading.Thread(
            target=self._pump, name=f"herd-recv-{channel.get_id()}", daemon=True
        )
        self._thread.start()

    def _pump(self) -> None:
        while True:
            try:
                data = self._channel.recv(READ_SIZE)
            except (paramiko.SSHException, OSError) as e:
                logger.debug("Read failed: %s", e)
                data = b""

            text = self._decoder.decode(data, final=not data)
            try:
                if text:
                    self._loop.call_soon_threadsafe(self._output.put_nowait, text)
                if not data:
                    self._loop.call_soon_threadsafe(self._output.put_nowait, "")
            except RuntimeError:
                # Event loop already closed
                return
            if not data:
                return

    async def read(self) -> str:
        return await self._output.get()

    async def write(self, data: str) -> None:
        # sendall blocks while the remote window is full
        try:
            await asyncio.to_thread(self._channel.sendall, data.encode("utf-8"))
        except paramiko.SSHException as e:
            raise BrokenPipeError(str(e)) from e

    def close(self) -> None:
        self._channel.close()
        self._client.close()


class SSHTransport:
    """Opens shells with paramiko using the configured defaults."""

    def __init__(self, defaults: Defaults, term_size: tuple[int, int] = (80, 24)) -> None:
        self.defaults = defaults
        self.term_size = term_size

    def _connect_options(self, endpoint: Endpoint) -> dict:
        options = {
            "hostname": endpoint.host,
            "port": self.defaults.port,
            "username": endpoint.user,
            "timeout": self.defaults.connect_timeout,
            "allow_agent": True,
            "look_for_keys": True,
        }
        if self.defaults.ssh_key and self.defaults.ssh_key.exists():
            options["key_filename"] = str(self.defaults.ssh_key)
        return options

    def _connect(self, endpoint: Endpoint) -> tuple[paramiko.SSHClient, paramiko.Channel]:
        client = paramiko.SSHClient()
        try:
            if self.defaults.known_hosts:
                client.load_host_keys(str(self.defaults.known_hosts))
                client.set_missing_host_key_policy(paramiko.RejectPolicy())
            else:
                client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
            client.connect(**self._connect_options(endpoint))
            width, height = self.term_size
            channel = client.invoke_shell(
                term=self.defaults.term_type, width=width, height=height
            )
        except (paramiko.SSHException, OSError, EOFError, ValueError) as e:
            client.close()
            raise SpawnError(endpoint, str(e) or type(e).__name__) from e
        return client, channel

    async def open(self, endpoint: Endpoint) -> SSHChannel:
        logger.info("Connecting to %s:%s", endpoint, self.defaults.port)
        client, channel = await asyncio.to_thread(self._connect, endpoint)
        logger.info("Shell open on %s", endpoint)
        return SSHChannel(client, channel, asyncio.get_running_loop())
