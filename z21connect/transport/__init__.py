"""
Transport layer for Z21 LAN communication.

This package provides datagram transports for talking to a command station.

Available transports:
- AsyncUDPTransport: asyncio UDP socket
- MockTransport: Mock transport for testing without hardware

Example:
    >>> from z21connect.transport import AsyncUDPTransport
    >>> async with AsyncUDPTransport("192.168.0.111") as transport:
    ...     await transport.send(frame)
    ...     response = await transport.receive(timeout=2.0)

Testing Example:
    >>> from z21connect.transport import MockTransport
    >>> mock = MockTransport()
    >>> mock.add_response(bytes.fromhex("07004000611372"))  # LAN_X_CV_NACK
"""

from z21connect.transport.abc import AbstractTransport
from z21connect.transport.mock import MockTransport, ScriptedMockTransport
from z21connect.transport.udp_async import AsyncUDPTransport

__all__ = [
    "AbstractTransport",
    "AsyncUDPTransport",
    "MockTransport",
    "ScriptedMockTransport",
]
