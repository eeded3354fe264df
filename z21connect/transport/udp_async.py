"""
Async UDP transport using asyncio datagram endpoints.

This module provides the transport used with real command stations. A Z21
listens on UDP port 21105 and answers to the source address of each request,
so the transport "connects" the socket to the command station and receives
on the same socket.

UDP carries no request identifier. The transport hands out datagrams in
arrival order and leaves correlation to the session.

Example:
    >>> transport = AsyncUDPTransport("192.168.0.111")
    >>> async with transport:
    ...     await transport.send(frame)
    ...     response = await transport.receive(timeout=2.0)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Final, Union

from z21connect.exceptions import TimeoutError, TransportError
from z21connect.protocol.constants import ProtocolConstants
from z21connect.transport.abc import AbstractTransport

logger = logging.getLogger(__name__)

_CLOSED: Final[object] = object()

_QueueItem = Union[bytes, Exception, object]


class _DatagramQueueProtocol(asyncio.DatagramProtocol):
    """Feeds received datagrams and socket errors into a queue."""

    def __init__(self, queue: asyncio.Queue[_QueueItem]) -> None:
        self._queue = queue

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        self._queue.put_nowait(bytes(data))

    def error_received(self, exc: Exception) -> None:
        self._queue.put_nowait(TransportError(f"Socket error: {exc}"))

    def connection_lost(self, exc: Exception | None) -> None:
        if exc is not None:
            self._queue.put_nowait(TransportError(f"Connection lost: {exc}"))
        self._queue.put_nowait(_CLOSED)


class AsyncUDPTransport(AbstractTransport):
    """
    Async UDP transport bound to one command station.

    Attributes:
        endpoint: "host:port" of the command station.
        is_open: Whether the socket is open.

    Example:
        >>> transport = AsyncUDPTransport("192.168.0.111", port=21105)
        >>> await transport.open()
        >>> try:
        ...     await transport.send(build_track_power_on())
        ... finally:
        ...     await transport.close()
    """

    def __init__(
        self,
        host: str,
        port: int = ProtocolConstants.DEFAULT_PORT,
        default_timeout: float = ProtocolConstants.DEFAULT_TIMEOUT,
    ) -> None:
        """
        Initialize the UDP transport.

        Args:
            host: Command station IP address or host name.
            port: Command station UDP port (default: 21105).
            default_timeout: Default receive timeout in seconds.
        """
        self._host = host
        self._port = port
        self._default_timeout = default_timeout
        self._transport: asyncio.DatagramTransport | None = None
        self._queue: asyncio.Queue[_QueueItem] = asyncio.Queue()

    @property
    def is_open(self) -> bool:
        """Check if the socket is open."""
        return self._transport is not None and not self._transport.is_closing()

    @property
    def endpoint(self) -> str:
        """Get "host:port" of the command station."""
        return f"{self._host}:{self._port}"

    async def open(self) -> None:
        """
        Create the datagram endpoint.

        Raises:
            TransportError: If the socket cannot be created.
        """
        if self.is_open:
            return

        loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        queue = self._queue
        try:
            self._transport, _ = await loop.create_datagram_endpoint(
                lambda: _DatagramQueueProtocol(queue),
                remote_addr=(self._host, self._port),
            )
        except OSError as e:
            raise TransportError(f"Failed to open UDP socket to {self.endpoint}: {e}") from e
        logger.info("Opened UDP transport to %s", self.endpoint)

    async def close(self) -> None:
        """
        Close the socket.

        A receive that is waiting fails with TransportError. Safe to call
        multiple times.
        """
        if self._transport is None:
            return
        self._transport.close()
        self._transport = None
        self._queue.put_nowait(_CLOSED)
        logger.info("Closed UDP transport to %s", self.endpoint)

    async def send(self, data: bytes) -> None:
        """
        Send one datagram to the command station.

        Raises:
            TransportError: If the socket is not open or sending fails.
        """
        if not self.is_open:
            raise TransportError("UDP transport is not open")

        try:
            self._transport.sendto(data)
        except OSError as e:
            raise TransportError(f"Send failed: {e}") from e

    async def receive(self, timeout: float | None = None) -> bytes:
        """
        Wait for the next datagram.

        Raises:
            TimeoutError: If nothing arrives within ``timeout``.
            TransportError: If the socket is closed or reports an error.
        """
        if not self.is_open:
            raise TransportError("UDP transport is not open")

        effective_timeout = timeout if timeout is not None else self._default_timeout

        try:
            item = await asyncio.wait_for(self._queue.get(), timeout=effective_timeout)
        except asyncio.TimeoutError:
            raise TimeoutError(
                "Timeout waiting for datagram",
                timeout_seconds=effective_timeout,
            ) from None

        if item is _CLOSED:
            raise TransportError("UDP transport closed while waiting for a datagram")
        if isinstance(item, Exception):
            raise item
        return item  # type: ignore[return-value]

    def discard_buffers(self) -> None:
        """Drop datagrams that have been received but not consumed."""
        dropped = 0
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if item is _CLOSED:
                # keep the close marker for a pending reader
                self._queue.put_nowait(item)
                break
            dropped += 1
        if dropped:
            logger.debug("Discarded %d pending datagram(s)", dropped)

    def __repr__(self) -> str:
        status = "open" if self.is_open else "closed"
        return f"AsyncUDPTransport({self.endpoint!r}, {status})"
