"""
Abstract transport interface for Z21 LAN communication.

Transports move whole datagrams. They know nothing about LAN_X framing; the
session on top of them decides which datagram answers which request.

The transport layer is responsible for:
- Opening/closing the socket
- Sending and receiving single datagrams
- Receive timeouts

Implementations:
- AsyncUDPTransport: asyncio datagram endpoint
- MockTransport: for testing without a command station
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from types import TracebackType


class AbstractTransport(ABC):
    """
    Abstract base class for datagram transports.

    Transports support the async context manager protocol:

        async with AsyncUDPTransport("192.168.0.111") as transport:
            await transport.send(frame)
            response = await transport.receive(timeout=2.0)

    Attributes:
        is_open: Whether the transport is ready for I/O.
        endpoint: Identifier of the remote side (e.g. "192.168.0.111:21105").
    """

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """
        Check if the transport is currently open.

        Returns:
            True if ready for I/O, False otherwise.
        """
        ...

    @property
    @abstractmethod
    def endpoint(self) -> str:
        """
        Get the transport identifier.

        Returns:
            Remote endpoint as "host:port" or a mock identifier.
        """
        ...

    @abstractmethod
    async def open(self) -> None:
        """
        Open the transport.

        Raises:
            TransportError: If the socket cannot be created or is already open.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """
        Close the transport.

        Safe to call multiple times. A pending `receive` fails immediately
        with TransportError.
        """
        ...

    @abstractmethod
    async def send(self, data: bytes) -> None:
        """
        Send one datagram.

        Args:
            data: Complete LAN datagram.

        Raises:
            TransportError: If the transport is not open or sending fails.
        """
        ...

    @abstractmethod
    async def receive(self, timeout: float | None = None) -> bytes:
        """
        Receive the next datagram.

        Args:
            timeout: Seconds to wait. None uses the transport default.

        Returns:
            Raw datagram bytes.

        Raises:
            TimeoutError: If nothing arrives in time.
            TransportError: If the transport is not open, is closed while
                waiting, or the socket reports an error.
        """
        ...

    @abstractmethod
    def discard_buffers(self) -> None:
        """
        Drop datagrams received but not yet consumed.
        """
        ...

    async def __aenter__(self) -> AbstractTransport:
        """Async context manager entry - opens the transport."""
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Async context manager exit - closes the transport."""
        await self.close()
