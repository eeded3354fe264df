"""
LAN_X response frame parsing.

A datagram is accepted only when its length field equals the number of bytes
received and its header field is 0x0040. Accepted datagrams are then
classified by X-Header (and DB0 for the CV family):

1. **CV result**: ``64 14 CVhigh CVlow value``
2. **CV NACK**: ``61 13`` (no acknowledgement) or ``61 12`` (short circuit)
3. **Loco info**: ``EF MSB LSB DB2 DB3 DB4 [DB5..DB8]``, function bytes from
   DB6 onwards are optional (older firmware sends fewer)

Anything else is reported as UNKNOWN_COMMAND. Callers polling for a response
treat every non-SUCCESS result as "not for me" and keep waiting.

The trailing XOR byte is not checked on receive; `parse_frame(strict=True)`
does check it.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import Enum, auto
from typing import Union

from z21connect.models.function_state import FunctionState
from z21connect.protocol.checksums import calculate_checksum, validate_checksum
from z21connect.protocol.constants import (
    CV_RESULT_DB0,
    NACK_KINDS,
    ProtocolConstants,
    ResponseKind,
    SpeedSteps,
    XHeader,
)
from z21connect.protocol.encoding import decode_address, decode_speed, wire_to_cv


class FrameParseResult(Enum):
    """Result codes for frame parsing operations."""

    SUCCESS = auto()
    """Frame was recognised and decoded."""

    EMPTY_BUFFER = auto()
    """Datagram is empty."""

    INCOMPLETE_FRAME = auto()
    """Datagram is shorter than the recognised message requires."""

    LENGTH_MISMATCH = auto()
    """Length field does not match the received byte count."""

    INVALID_HEADER = auto()
    """Header field is not LAN_X (0x0040)."""

    UNKNOWN_COMMAND = auto()
    """LAN_X datagram that is neither a CV response nor loco info."""


@dataclass(frozen=True)
class CVResult:
    """
    Outcome of a CV read or write as reported by the command station.

    Attributes:
        wire_cv: 0-based CV number (only meaningful for RESULT).
        value: CV value (only meaningful for RESULT).
        kind: RESULT or one of the NACK kinds.
    """

    wire_cv: int
    value: int
    kind: ResponseKind

    @property
    def is_result(self) -> bool:
        return self.kind is ResponseKind.RESULT

    @property
    def cv_number(self) -> int:
        """1-based CV number as shown to users."""
        return wire_to_cv(self.wire_cv)

    def __str__(self) -> str:
        if self.is_result:
            return f"cv{self.cv_number}={self.value}"
        return self.kind.value


@dataclass(frozen=True)
class LocoInfo:
    """
    Decoded LAN_X_LOCO_INFO.

    Attributes:
        address: Locomotive address.
        busy: Another controller is driving this locomotive.
        speed_steps: Step mode the command station uses for it.
        speed: Speed on the `encode_speed` scale.
        forward: Direction bit.
        function_bytes: DB4-DB8, zero-padded to five bytes.
    """

    address: int
    busy: bool
    speed_steps: SpeedSteps
    speed: int
    forward: bool
    function_bytes: bytes

    @property
    def functions(self) -> FunctionState:
        """A fresh FunctionState built from DB4-DB8."""
        return FunctionState.from_bytes(self.function_bytes)


Response = Union[CVResult, LocoInfo]


@dataclass(frozen=True)
class FrameParseError:
    """Details about a rejected datagram."""

    result: FrameParseResult
    message: str
    raw_data: bytes = b""


class FrameReader:
    """
    LAN_X response parser.

    Stateless; one instance can be shared by any number of sessions.

    Example:
        >>> reader = FrameReader()
        >>> result, response = reader.parse(bytes.fromhex("0a00400064140001" "0574"))
        >>> result
        <FrameParseResult.SUCCESS: 1>
        >>> str(response)
        'cv2=5'
    """

    # X-Header + CV high/low + value
    _CV_RESULT_SIZE = ProtocolConstants.ENVELOPE_SIZE + 6
    # X-Header + DB0-DB3
    _LOCO_INFO_MIN_SIZE = ProtocolConstants.ENVELOPE_SIZE + 6

    def parse(
        self,
        buffer: bytes | bytearray | memoryview,
    ) -> tuple[FrameParseResult, Response | FrameParseError]:
        """
        Parse one datagram.

        Returns:
            Tuple of (result, response_or_error):
            - On success: (SUCCESS, CVResult | LocoInfo)
            - On failure: (error_code, FrameParseError)
        """
        data = bytes(buffer)
        if not data:
            return self._error(FrameParseResult.EMPTY_BUFFER, "Datagram is empty", data)

        if len(data) < ProtocolConstants.MIN_FRAME_SIZE:
            return self._error(
                FrameParseResult.INCOMPLETE_FRAME,
                f"Datagram too short: {len(data)} bytes",
                data,
            )

        length, header = struct.unpack_from("<HH", data)
        if length != len(data):
            return self._error(
                FrameParseResult.LENGTH_MISMATCH,
                f"Length field {length} != {len(data)} bytes received",
                data,
            )
        if header != ProtocolConstants.LAN_X_HEADER:
            return self._error(
                FrameParseResult.INVALID_HEADER,
                f"Not a LAN_X datagram (header 0x{header:04X})",
                data,
            )

        x_header = data[4]
        if x_header == XHeader.CV_RESULT and data[5] == CV_RESULT_DB0:
            return self._parse_cv_result(data)
        if x_header == XHeader.CV_NACK and data[5] in NACK_KINDS:
            return FrameParseResult.SUCCESS, CVResult(
                wire_cv=0, value=0, kind=NACK_KINDS[data[5]]
            )
        if x_header == XHeader.LOCO_INFO:
            return self._parse_loco_info(data)

        return self._error(
            FrameParseResult.UNKNOWN_COMMAND,
            f"Unhandled X-Header 0x{x_header:02X}",
            data,
        )

    def _parse_cv_result(self, data: bytes) -> tuple[FrameParseResult, Response | FrameParseError]:
        if len(data) < self._CV_RESULT_SIZE:
            return self._error(
                FrameParseResult.INCOMPLETE_FRAME,
                f"LAN_X_CV_RESULT too short: {len(data)} bytes",
                data,
            )
        return FrameParseResult.SUCCESS, CVResult(
            wire_cv=(data[6] << 8) | data[7],
            value=data[8],
            kind=ResponseKind.RESULT,
        )

    def _parse_loco_info(self, data: bytes) -> tuple[FrameParseResult, Response | FrameParseError]:
        if len(data) < self._LOCO_INFO_MIN_SIZE:
            return self._error(
                FrameParseResult.INCOMPLETE_FRAME,
                f"LAN_X_LOCO_INFO too short: {len(data)} bytes",
                data,
            )

        # DB0..DBn between X-Header and checksum
        dbs = data[5:-1]
        steps = SpeedSteps.from_loco_info(dbs[2])
        speed, forward = decode_speed(dbs[3], steps)
        return FrameParseResult.SUCCESS, LocoInfo(
            address=decode_address(dbs[0], dbs[1]),
            busy=bool(dbs[2] & 0x08),
            speed_steps=steps,
            speed=speed,
            forward=forward,
            function_bytes=FunctionState.from_bytes(dbs[4 : 4 + FunctionState.SIZE]).to_bytes(),
        )

    @staticmethod
    def _error(
        result: FrameParseResult,
        message: str,
        data: bytes,
    ) -> tuple[FrameParseResult, FrameParseError]:
        return result, FrameParseError(result=result, message=message, raw_data=data)


DEFAULT_FRAME_READER = FrameReader()


def parse_frame(
    buffer: bytes | bytearray | memoryview,
    strict: bool = False,
) -> Response | None:
    """
    Parse a datagram with the default reader.

    Args:
        buffer: One received datagram.
        strict: Raise instead of returning None, and check the trailing XOR.

    Returns:
        The decoded response, or None if the datagram is not recognised.

    Raises:
        FrameError: Datagram rejected (strict only).
        ChecksumError: Trailing XOR byte is wrong (strict only).
    """
    from z21connect.exceptions import ChecksumError, FrameError

    data = bytes(buffer)
    result, response = DEFAULT_FRAME_READER.parse(data)
    if result is not FrameParseResult.SUCCESS:
        if strict:
            raise FrameError(f"{result.name}: {response.message}")  # type: ignore[union-attr]
        return None

    if strict and not validate_checksum(data):
        raise ChecksumError(
            expected=calculate_checksum(data[ProtocolConstants.ENVELOPE_SIZE : -1]),
            received=data[-1],
        )
    return response  # type: ignore[return-value]
