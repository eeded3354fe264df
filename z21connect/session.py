"""
Request/response session over a datagram transport.

UDP carries no correlation identifier, so the session allows exactly one
outstanding request: `send_and_await` holds a lock from the moment the
request is sent until a matching response arrives or the deadline passes.
Concurrent callers queue on the lock instead of reading each other's replies.

Datagrams left unread from an earlier request are discarded before each send.
Datagrams that do not parse, or parse but do not match what the caller is
waiting for (broadcasts, late replies to an earlier attempt), are logged and
dropped; polling continues until the deadline.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Callable, Optional

from z21connect.exceptions import TimeoutError
from z21connect.protocol.constants import ProtocolConstants
from z21connect.protocol.frame_reader import DEFAULT_FRAME_READER, FrameParseResult, FrameReader

if TYPE_CHECKING:
    from z21connect.protocol.frame_reader import Response
    from z21connect.transport.abc import AbstractTransport

logger = logging.getLogger(__name__)

ResponseMatcher = Callable[["Response"], bool]


class Session:
    """
    Serialised send/await primitive over one transport.

    Attributes:
        transport: The underlying datagram transport.
        timeout: Default response timeout in seconds.
    """

    def __init__(
        self,
        transport: AbstractTransport,
        timeout: float = ProtocolConstants.DEFAULT_TIMEOUT,
        frame_reader: FrameReader = DEFAULT_FRAME_READER,
    ) -> None:
        self._transport = transport
        self._timeout = timeout
        self._frame_reader = frame_reader
        self._lock = asyncio.Lock()

    @property
    def transport(self) -> AbstractTransport:
        return self._transport

    @property
    def timeout(self) -> float:
        return self._timeout

    async def send(self, frame: bytes) -> None:
        """
        Send a request that has no response.

        Waits for any in-flight `send_and_await` so a fire-and-forget command
        never lands between a request and its reply.
        """
        async with self._lock:
            logger.debug("send: %s", frame.hex(" "))
            await self._transport.send(frame)

    async def send_and_await(
        self,
        frame: bytes,
        timeout: float | None = None,
        match: Optional[ResponseMatcher] = None,
    ) -> Response:
        """
        Send a request and wait for the first matching response.

        Args:
            frame: Complete request datagram.
            timeout: Seconds until the deadline. None uses the session default.
            match: Predicate selecting the response; None accepts any
                recognised LAN_X response.

        Returns:
            The parsed response.

        Raises:
            TimeoutError: If no matching response arrives before the deadline.
            TransportError: If sending or receiving fails.
        """
        effective_timeout = timeout if timeout is not None else self._timeout

        async with self._lock:
            self._transport.discard_buffers()
            logger.debug("send_and_await: %s", frame.hex(" "))
            await self._transport.send(frame)

            loop = asyncio.get_running_loop()
            deadline = loop.time() + effective_timeout
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    raise TimeoutError(
                        "No matching response", timeout_seconds=effective_timeout
                    )

                try:
                    datagram = await self._transport.receive(remaining)
                except TimeoutError:
                    raise TimeoutError(
                        "No matching response", timeout_seconds=effective_timeout
                    ) from None
                result, response = self._frame_reader.parse(datagram)
                if result is not FrameParseResult.SUCCESS:
                    logger.debug("Discarding datagram (%s): %s", result.name, datagram.hex(" "))
                    continue
                if match is not None and not match(response):
                    logger.debug("Discarding unrelated response: %s", datagram.hex(" "))
                    continue

                logger.debug("recv: %s", datagram.hex(" "))
                return response

    def __repr__(self) -> str:
        return f"Session({self._transport.endpoint!r}, timeout={self._timeout})"
