"""
Mock transport for testing.

This module provides a mock transport that lets the session, programmer and
command station be tested without a Z21 on the network. Responses can be
queued up front or produced by a callback for each datagram sent.

Example:
    >>> from z21connect.transport import MockTransport
    >>> from z21connect import CommandStation
    >>>
    >>> mock = MockTransport()
    >>> mock.add_response(bytes.fromhex("0a0040006414000105" "74"))  # cv2=5
    >>>
    >>> async with CommandStation(mock) as station:
    ...     await station.read_cv(Mode.MAIN, LocoCV.of(17, 2))
    5
"""

from __future__ import annotations

from collections import deque
from typing import Callable, Union

from z21connect.exceptions import TimeoutError, TransportError
from z21connect.transport.abc import AbstractTransport

_Reply = Union[bytes, Exception]
ResponseCallback = Callable[[bytes], Union[_Reply, list, None]]


class MockTransport(AbstractTransport):
    """
    Mock transport for testing without a command station.

    Every datagram sent is recorded. `receive` first returns datagrams that
    have already arrived (`add_received`), then queued replies in FIFO order,
    raises queued exceptions, and raises TimeoutError at once when both are
    empty. `discard_buffers` drops only the datagrams that have arrived.

    Attributes:
        written_data: List of all datagrams sent.
        receive_count: Number of `receive` calls made.

    Example:
        >>> mock = MockTransport()
        >>> mock.add_response(b"\\x07\\x00\\x40\\x00\\x61\\x13\\x72")  # NACK
        >>>
        >>> async with mock:
        ...     await mock.send(b"request")
        ...     assert await mock.receive() == b"\\x07\\x00\\x40\\x00\\x61\\x13\\x72"
        ...     assert mock.written_data == [b"request"]
    """

    def __init__(
        self,
        endpoint: str = "mock://z21",
        default_timeout: float = 1.0,
    ) -> None:
        """
        Initialize the mock transport.

        Args:
            endpoint: Identifier for the mock transport.
            default_timeout: Reported in TimeoutError when nothing is queued.
        """
        self._endpoint = endpoint
        self._default_timeout = default_timeout
        self._is_open = False
        self._responses: deque[_Reply] = deque()
        self._received: deque[bytes] = deque()
        self._written_data: list[bytes] = []
        self._response_callback: ResponseCallback | None = None
        self._send_error: Exception | None = None
        self.receive_count = 0

    @property
    def is_open(self) -> bool:
        """Check if the mock transport is open."""
        return self._is_open

    @property
    def endpoint(self) -> str:
        """Get the mock endpoint name."""
        return self._endpoint

    @property
    def written_data(self) -> list[bytes]:
        """Get all datagrams sent."""
        return self._written_data.copy()

    @property
    def last_written(self) -> bytes | None:
        """Get the most recently sent datagram."""
        return self._written_data[-1] if self._written_data else None

    def add_response(self, response: _Reply) -> None:
        """
        Queue a datagram (or an exception to raise) for the next receive.

        Args:
            response: Datagram bytes, or an exception instance.
        """
        self._responses.append(response)

    def add_responses(self, *responses: _Reply) -> None:
        """
        Queue several datagrams or exceptions.
        """
        for response in responses:
            self._responses.append(response)

    def add_received(self, *datagrams: bytes) -> None:
        """
        Deliver datagrams that arrived before the next request.

        Models late replies and broadcasts sitting unread on the socket.
        """
        self._received.extend(datagrams)

    def set_response_callback(self, callback: ResponseCallback | None) -> None:
        """
        Set a callback to generate responses from sent datagrams.

        The callback receives each sent datagram and returns a datagram, an
        exception, a list of those, or None for no reply.
        """
        self._response_callback = callback

    def set_send_error(self, error: Exception | None) -> None:
        """Make every following `send` raise ``error`` (None to stop)."""
        self._send_error = error

    def clear(self) -> None:
        """Clear all sent data and pending responses."""
        self._written_data.clear()
        self._responses.clear()
        self._received.clear()
        self.receive_count = 0

    def clear_written(self) -> None:
        """Clear only the sent data history."""
        self._written_data.clear()

    async def open(self) -> None:
        """Open the mock transport."""
        if self._is_open:
            raise TransportError("Mock transport already open")
        self._is_open = True

    async def close(self) -> None:
        """Close the mock transport."""
        self._is_open = False

    async def send(self, data: bytes) -> None:
        """
        Record a datagram and run the response callback.

        Raises:
            TransportError: If the transport is not open.
        """
        if not self._is_open:
            raise TransportError("Mock transport not open")
        if self._send_error is not None:
            raise self._send_error

        self._written_data.append(bytes(data))

        if self._response_callback:
            reply = self._response_callback(bytes(data))
            if isinstance(reply, list):
                self._responses.extend(reply)
            elif reply is not None:
                self._responses.append(reply)

    async def receive(self, timeout: float | None = None) -> bytes:
        """
        Return the next queued datagram.

        Raises:
            TimeoutError: If nothing is queued.
            TransportError: If the transport is not open.
            Exception: Any exception queued with `add_response`.
        """
        if not self._is_open:
            raise TransportError("Mock transport not open")

        self.receive_count += 1
        if self._received:
            return self._received.popleft()
        if not self._responses:
            raise TimeoutError(
                "No mock response available",
                timeout_seconds=timeout if timeout is not None else self._default_timeout,
            )

        reply = self._responses.popleft()
        if isinstance(reply, Exception):
            raise reply
        return reply

    def discard_buffers(self) -> None:
        """Drop datagrams that have arrived but not been received."""
        self._received.clear()

    def assert_written(self, expected: bytes, index: int = -1) -> None:
        """
        Assert that a specific datagram was sent.

        Args:
            expected: Expected bytes.
            index: Index in written_data list (-1 for last).

        Raises:
            AssertionError: If data doesn't match.
        """
        if not self._written_data:
            raise AssertionError("No data written to mock transport")

        actual = self._written_data[index]
        if actual != expected:
            raise AssertionError(f"Written data mismatch: expected {expected.hex()}, got {actual.hex()}")

    def assert_write_count(self, expected: int) -> None:
        """
        Assert number of datagrams sent.

        Raises:
            AssertionError: If count doesn't match.
        """
        actual = len(self._written_data)
        if actual != expected:
            raise AssertionError(f"Write count mismatch: expected {expected}, got {actual}")


class ScriptedMockTransport(MockTransport):
    """
    Mock transport with scripted request/response pairs.

    Each sent datagram consumes the next script step. A step's response of
    None means the command station stays silent for that request.

    Example:
        >>> mock = ScriptedMockTransport()
        >>> mock.expect(request=build_prog_read(1), response=cv_result_frame)
        >>> mock.expect(request=build_track_power_on(), response=None)
    """

    def __init__(self, endpoint: str = "mock://scripted") -> None:
        super().__init__(endpoint)
        self._script: list[tuple[bytes | None, _Reply | None]] = []
        self._script_index = 0

    def expect(
        self,
        response: _Reply | None,
        request: bytes | None = None,
    ) -> None:
        """
        Add an expected request/response pair.

        Args:
            response: Datagram or exception to return, None for no reply.
            request: Expected request (None to match any).
        """
        self._script.append((request, response))

    @property
    def remaining_steps(self) -> int:
        """Number of script steps not yet consumed."""
        return len(self._script) - self._script_index

    async def send(self, data: bytes) -> None:
        """Send with script validation."""
        if not self._is_open:
            raise TransportError("Mock transport not open")

        self._written_data.append(bytes(data))

        if self._script_index < len(self._script):
            expected_request, response = self._script[self._script_index]

            if expected_request is not None and data != expected_request:
                raise AssertionError(
                    f"Script mismatch at step {self._script_index}: "
                    f"expected {expected_request.hex()}, got {data.hex()}"
                )

            if response is not None:
                self._responses.append(response)
            self._script_index += 1

    def reset_script(self) -> None:
        """Reset script to beginning."""
        self._script_index = 0
        self._responses.clear()
        self._received.clear()

    def clear_script(self) -> None:
        """Clear all scripted expectations."""
        self._script.clear()
        self._script_index = 0
