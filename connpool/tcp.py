"""TCP stream connections for the generic connection pool."""

from __future__ import annotations

import asyncio
import contextlib
import ipaddress
import logging
from dataclasses import dataclass
from datetime import timedelta

from .pool import CleanupConfig, ConnectionManager, ConnectionPool

log = logging.getLogger(__name__)

Address = tuple[str, int]


def _check_port(port: object) -> int:
    if isinstance(port, bool) or not isinstance(port, int):
        raise ValueError(f"invalid port: {port!r}")
    if not 0 <= port <= 65535:
        raise ValueError(f"port out of range: {port}")
    return port


def parse_address(address) -> Address:
    """Normalise an address to a ``(host, port)`` tuple.

    Accepts ``"host:port"``, ``"[v6-address]:port"`` and ``(host, port)`` pairs
    where the host is a string or an ``ipaddress`` address object.
    """
    if isinstance(address, (tuple, list)):
        if len(address) != 2:
            raise ValueError(f"invalid socket address: {address!r}")
        host, port = address
        if isinstance(host, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
            host = str(host)
        if not isinstance(host, str) or not host:
            raise ValueError(f"invalid host: {host!r}")
        return host, _check_port(port)

    if not isinstance(address, str):
        raise TypeError(f"unsupported address type: {type(address).__name__}")

    text = address.strip()
    if text.startswith("["):
        host, sep, rest = text[1:].partition("]")
        if not sep or not rest.startswith(":"):
            raise ValueError(f"invalid socket address: {address!r}")
        port_text = rest[1:]
    else:
        host, sep, port_text = text.rpartition(":")
        if not sep or ":" in host:
            raise ValueError(f"invalid socket address: {address!r}")
    if not host:
        raise ValueError(f"invalid socket address: {address!r}")
    if not port_text.isdigit():
        raise ValueError(f"invalid port in address: {address!r}")
    return host, _check_port(int(port_text))


@dataclass
class TcpConnection:
    """An open TCP stream as a reader/writer pair."""

    reader: asyncio.StreamReader
    writer: asyncio.StreamWriter

    async def close(self) -> None:
        """Close the stream and wait until it is shut down."""
        self.writer.close()
        with contextlib.suppress(OSError):
            await self.writer.wait_closed()


class TcpConnectionManager(ConnectionManager[TcpConnection]):
    """Opens TCP connections to one address and checks that they are still up."""

    def __init__(self, address) -> None:
        self.address: Address = parse_address(address)

    async def create_connection(self) -> TcpConnection:
        host, port = self.address
        reader, writer = await asyncio.open_connection(host, port)
        return TcpConnection(reader, writer)

    async def is_valid(self, connection: TcpConnection) -> bool:
        writer = connection.writer
        if writer.is_closing():
            return False
        if writer.get_extra_info("peername") is None:
            return False
        reader = connection.reader
        if reader.exception() is not None:
            return False
        # Buffered but unread data is fine; only a finished stream is not.
        return not reader.at_eof()

    def __repr__(self) -> str:
        host, port = self.address
        return f"TcpConnectionManager({host!r}, {port})"


def new_tcp_pool(
    address,
    max_size: int | None = None,
    max_idle_time: float | timedelta | None = None,
    connection_timeout: float | timedelta | None = None,
    cleanup_config: CleanupConfig | None = None,
) -> ConnectionPool[TcpConnection]:
    """Create a connection pool of TCP streams to ``address``."""
    log.info("Creating TCP connection pool")
    manager = TcpConnectionManager(address)
    return ConnectionPool(
        manager,
        max_size=max_size,
        max_idle_time=max_idle_time,
        connection_timeout=connection_timeout,
        cleanup_config=cleanup_config,
    )