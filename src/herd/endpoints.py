"""Destination parsing and cluster name resolution."""

from __future__ import annotations

import asyncio
import getpass
import ipaddress
import logging
import socket
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, Sequence

from .config import ResolverConfig
from .errors import ResolutionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Endpoint:
    """One remote shell target."""

    user: str
    host: str

    def __str__(self) -> str:
        return f"{self.user}@{self.host}"


def parse_destination(destination: str, default_user: str | None = None) -> tuple[str, str]:
    """Split ``[user@]host`` into a ``(user, host)`` pair."""
    user, sep, host = destination.strip().rpartition("@")
    if not sep:
        user, host = "", destination.strip()
    if not host:
        raise ValueError(f"No host in destination {destination!r}")
    return user or default_user or getpass.getuser(), host


def parse_addresses(output: str) -> list[str]:
    """Extract IP addresses from lookup output, one per line.

    Anything that is not an address on its own (CNAME targets, comments,
    truncated lines) is skipped.
    """
    addresses = []
    for line in output.splitlines():
        token = line.strip()
        if not token or token.startswith(";"):
            continue
        try:
            address = str(ipaddress.ip_address(token))
        except ValueError:
            logger.debug("Ignoring lookup output line %r", line)
            continue
        if address not in addresses:
            addresses.append(address)
    return addresses


def is_address(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


class Resolver(ABC):
    """Looks up the addresses behind a hostname."""

    def __init__(self, timeout: float = 5) -> None:
        self.timeout = timeout

    @abstractmethod
    async def lookup(self, host: str) -> list[str]:
        """Return the addresses for ``host``, or an empty list if it has none."""


class DigResolver(Resolver):
    """Resolve with ``dig +short``, which lists every A/AAAA record."""

    def __init__(self, command: str = "dig", timeout: float = 5) -> None:
        super().__init__(timeout)
        self.command = command

    async def lookup(self, host: str) -> list[str]:
        try:
            proc = await asyncio.create_subprocess_exec(
                self.command,
                "+short",
                host,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            raise ResolutionError(f"Cannot run {self.command!r}: {e}") from e

        try:
            stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            logger.warning("Lookup of %s timed out after %ss", host, self.timeout)
            return []

        return parse_addresses(stdout.decode("utf-8", errors="replace"))


class SocketResolver(Resolver):
    """Resolve through the system resolver (``getaddrinfo``)."""

    async def lookup(self, host: str) -> list[str]:
        loop = asyncio.get_running_loop()
        try:
            infos = await asyncio.wait_for(
                loop.getaddrinfo(host, None, type=socket.SOCK_STREAM),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Lookup of %s timed out after %ss", host, self.timeout)
            return []
        except socket.gaierror as e:
            logger.info("Lookup of %s failed: %s", host, e)
            return []

        return parse_addresses("\n".join(str(info[4][0]) for info in infos))


def make_resolver(config: ResolverConfig) -> Resolver:
    """Build the resolver selected by the configuration."""
    if config.backend == "getaddrinfo":
        return SocketResolver(timeout=config.timeout)
    return DigResolver(command=config.command, timeout=config.timeout)


def dedupe(endpoints: Iterable[Endpoint]) -> list[Endpoint]:
    """Drop repeated endpoints, keeping the first occurrence."""
    seen: set[Endpoint] = set()
    result = []
    for endpoint in endpoints:
        if endpoint not in seen:
            seen.add(endpoint)
            result.append(endpoint)
    return result


async def resolve(
    destination: str,
    resolver: Resolver | None = None,
    default_user: str | None = None,
) -> list[Endpoint]:
    """Expand a destination into its endpoints.

    Without a resolver (single-host mode) the destination maps to exactly one
    endpoint. A lookup returning nothing falls back to the literal host.
    """
    user, host = parse_destination(destination, default_user)
    if resolver is None or is_address(host):
        return [Endpoint(user, host)]

    addresses = await resolver.lookup(host)
    if not addresses:
        logger.info("No addresses for %s, using it as a single host", host)
        return [Endpoint(user, host)]

    return dedupe(Endpoint(user, address) for address in addresses)


async def resolve_all(
    destinations: Sequence[str],
    resolver: Resolver | None = None,
    default_user: str | None = None,
) -> list[Endpoint]:
    """Resolve several destinations into one ordered endpoint list."""
    endpoints: list[Endpoint] = []
    for destination in destinations:
        endpoints.extend(await resolve(destination, resolver, default_user))
    return dedupe(endpoints)
