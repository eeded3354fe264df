"""
Exception hierarchy for z21connect.

All exceptions inherit from Z21Error. The split follows how callers react:

1. Timeouts and transport failures are transient; CV reads retry them
2. Negative acknowledgements from the command station are final answers
3. Verify mismatches mean the decoder holds a different value than written
4. Framing problems never escape a polling read; they are logged and skipped

Invalid request arguments raise ValueError before anything is sent.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

from z21connect.protocol.constants import ResponseKind

if TYPE_CHECKING:
    from z21connect.protocol.frame_reader import CVResult


class Z21Error(Exception):
    """
    Base exception for all z21connect errors.

    Catch this to handle every library-specific failure in one place.
    """

    pass


class ProtocolError(Z21Error):
    """
    Protocol-level error.

    Raised when a datagram is required to parse but does not, for example
    by strict helpers used in tests and diagnostics.
    """

    pass


class ChecksumError(ProtocolError):
    """XOR checksum of a frame does not match its payload."""

    def __init__(
        self,
        message: str = "Checksum validation failed",
        *,
        expected: int | None = None,
        received: int | None = None,
    ) -> None:
        super().__init__(message)
        self.expected = expected
        self.received = received

    def __str__(self) -> str:
        base = super().__str__()
        if self.expected is not None and self.received is not None:
            return f"{base} (expected 0x{self.expected:02X}, got 0x{self.received:02X})"
        return base


class FrameError(ProtocolError):
    """Datagram has the wrong length, header or layout."""

    pass


class TimeoutError(Z21Error):  # noqa: A001 - intentionally shadows builtin
    """
    No matching response arrived before the deadline.

    UDP gives no delivery guarantee, so this is the normal symptom of a lost
    request or reply as well as of an unresponsive command station.
    """

    def __init__(
        self,
        message: str = "Response timeout",
        *,
        timeout_seconds: float | None = None,
    ) -> None:
        super().__init__(message)
        self.timeout_seconds = timeout_seconds

    def __str__(self) -> str:
        base = super().__str__()
        if self.timeout_seconds is not None:
            return f"{base} (after {self.timeout_seconds:.1f}s)"
        return base


class ConnectionError(Z21Error):  # noqa: A001 - intentionally shadows builtin
    """
    Command station used outside its open/clean-up lifetime.
    """

    pass


class TransportError(Z21Error):
    """
    Transport-level error.

    Raised for socket failures:
    - Endpoint cannot be created
    - Send or receive fails
    - Transport is closed (including while a read is pending)
    """

    pass


class CommandStationError(Z21Error):
    """
    Negative acknowledgement from the command station.

    The network round trip worked; the decoder side did not. These are not
    retried.
    """

    kind: ResponseKind = ResponseKind.NACK_NO_ACK

    def __init__(self, message: str | None = None) -> None:
        self.message = message or ERROR_MESSAGES[self.kind]
        super().__init__(f"{self.message} ({self.kind.value})")


class NoAcknowledgeError(CommandStationError):
    """LAN_X_CV_NACK: the decoder did not acknowledge (no RailCom answer)."""

    kind = ResponseKind.NACK_NO_ACK


class ShortCircuitError(CommandStationError):
    """LAN_X_CV_NACK_SC: the command station detected a short circuit."""

    kind = ResponseKind.NACK_SHORT_CIRCUIT


class VerifyError(Z21Error):
    """
    CV read back after a write differs from the value written.
    """

    def __init__(self, cv_number: int, expected: int, actual: int) -> None:
        self.cv_number = cv_number
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"CV{cv_number} verify failed: wrote {expected}, read back {actual}"
        )


ERROR_MESSAGES: Final[dict[ResponseKind, str]] = {
    ResponseKind.NACK_NO_ACK: "Missing RailCom acknowledgement",
    ResponseKind.NACK_SHORT_CIRCUIT: "Short circuit",
}

_NACK_ERRORS: Final[dict[ResponseKind, type[CommandStationError]]] = {
    ResponseKind.NACK_NO_ACK: NoAcknowledgeError,
    ResponseKind.NACK_SHORT_CIRCUIT: ShortCircuitError,
}


def raise_for_response(result: CVResult) -> None:
    """
    Raise the matching CommandStationError if ``result`` is a NACK.

    Args:
        result: Parsed CV response.

    Raises:
        NoAcknowledgeError: For LAN_X_CV_NACK.
        ShortCircuitError: For LAN_X_CV_NACK_SC.
    """
    error = _NACK_ERRORS.get(result.kind)
    if error is not None:
        raise error()
