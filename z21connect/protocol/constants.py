"""
Z21 LAN protocol constants.

Values follow the Roco/Fleischmann "Z21 LAN Protokoll Spezifikation". Only the
subset of LAN_X commands used for decoder programming and basic locomotive
control is listed here.
"""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Final


class XHeader(IntEnum):
    """
    First payload byte (X-Header) of LAN_X datagrams.

    Several commands share an X-Header and are told apart by the second
    payload byte (DB0), see `XCommand`.
    """

    # ===== Requests =====

    SET_TRACK_POWER = 0x21
    """LAN_X_SET_TRACK_POWER_ON / _OFF (DB0 selects)."""

    CV_READ = 0x23
    """LAN_X_CV_READ (programming track, direct mode)."""

    CV_WRITE = 0x24
    """LAN_X_CV_WRITE (programming track, direct mode)."""

    GET_LOCO_INFO = 0xE3
    """LAN_X_GET_LOCO_INFO."""

    LOCO_DRIVE = 0xE4
    """LAN_X_SET_LOCO_DRIVE and LAN_X_SET_LOCO_FUNCTION."""

    CV_POM = 0xE6
    """LAN_X_CV_POM_READ_BYTE / LAN_X_CV_POM_WRITE_BYTE."""

    # ===== Responses =====

    CV_NACK = 0x61
    """LAN_X_CV_NACK and LAN_X_CV_NACK_SC."""

    CV_RESULT = 0x64
    """LAN_X_CV_RESULT."""

    LOCO_INFO = 0xEF
    """LAN_X_LOCO_INFO."""


class XCommand(IntEnum):
    """Second payload byte (DB0) of the requests that carry one."""

    TRACK_POWER_ON = 0x81
    CV_READ = 0x11
    CV_WRITE = 0x12
    LOCO_INFO = 0xF0
    LOCO_FUNCTION = 0xF8
    CV_POM = 0x30


class Mode(str, Enum):
    """
    CV programming mode.

    MAIN ("pom") programs an addressed decoder on the main layout.
    PROG ("prog") programs the single decoder on the programming track in
    direct mode; the command station suspends normal track power while it does.
    """

    MAIN = "pom"
    PROG = "prog"


class ResponseKind(Enum):
    """Classification of a CV response datagram."""

    RESULT = "LAN_X_CV_RESULT"
    NACK_NO_ACK = "LAN_X_CV_NACK"
    NACK_SHORT_CIRCUIT = "LAN_X_CV_NACK_SC"


class FunctionAction(IntEnum):
    """Switch type in the top two bits of the LAN_X_SET_LOCO_FUNCTION control byte."""

    OFF = 0b00
    ON = 0b01


class SpeedSteps(IntEnum):
    """DCC speed step modes supported by LAN_X_SET_LOCO_DRIVE."""

    STEPS_14 = 14
    STEPS_28 = 28
    STEPS_128 = 128

    @property
    def drive_selector(self) -> int:
        """DB0 of LAN_X_SET_LOCO_DRIVE (0x1S)."""
        return _DRIVE_SELECTORS[self]

    @property
    def max_speed(self) -> int:
        """Largest user speed value accepted for this step mode."""
        return _MAX_SPEEDS[self]

    @classmethod
    def from_loco_info(cls, db2: int) -> SpeedSteps:
        """Decode the step mode from DB2 (bits 0-2) of LAN_X_LOCO_INFO."""
        code = db2 & 0x07
        if code == 0:
            return cls.STEPS_14
        if code == 2:
            return cls.STEPS_28
        return cls.STEPS_128


_DRIVE_SELECTORS: Final[dict[SpeedSteps, int]] = {
    SpeedSteps.STEPS_14: 0x10,
    SpeedSteps.STEPS_28: 0x12,
    SpeedSteps.STEPS_128: 0x13,
}

_MAX_SPEEDS: Final[dict[SpeedSteps, int]] = {
    SpeedSteps.STEPS_14: 15,
    SpeedSteps.STEPS_28: 28,
    SpeedSteps.STEPS_128: 127,
}


class ProtocolConstants:
    """Framing constants and library defaults."""

    LAN_X_HEADER: Final[int] = 0x0040
    """Header field value marking LAN_X datagrams."""

    ENVELOPE_SIZE: Final[int] = 4
    """Length field (2 bytes) plus header field (2 bytes)."""

    MIN_FRAME_SIZE: Final[int] = 6
    """Envelope, X-Header and checksum."""

    MAX_DATAGRAM_SIZE: Final[int] = 1500

    DEFAULT_PORT: Final[int] = 21105
    DEFAULT_ADDRESS: Final[str] = "192.168.0.111"

    DEFAULT_TIMEOUT: Final[float] = 10.0
    """Seconds to wait for a response datagram."""

    DEFAULT_RETRIES: Final[int] = 2
    """Additional read attempts after a timeout or transport failure."""

    DEFAULT_SETTLE: Final[float] = 0.2
    """Seconds to wait between a CV write and its verifying read."""

    RETRY_DELAY: Final[float] = 0.2
    """Seconds between read attempts."""

    MIN_LOCO_ADDRESS: Final[int] = 1
    MAX_LOCO_ADDRESS: Final[int] = 10239
    LONG_ADDRESS_THRESHOLD: Final[int] = 128

    MIN_CV: Final[int] = 1
    MAX_CV: Final[int] = 65536
    MAX_POM_CV: Final[int] = 1024
    """The POM option byte only carries CV bits 9-8."""

    MAX_FUNCTION: Final[int] = 31
    """Highest function number addressable over LAN_X (F0-F31)."""


# Option byte bases for LAN_X_CV_POM_* (CV bits 9-8 go into the low two bits)
POM_READ_OPTION: Final[int] = 0xE4
POM_WRITE_OPTION: Final[int] = 0xEC

# DB0 qualifiers of CV responses
CV_RESULT_DB0: Final[int] = 0x14
CV_NACK_DB0: Final[int] = 0x13
CV_NACK_SC_DB0: Final[int] = 0x12

NACK_KINDS: Final[dict[int, ResponseKind]] = {
    CV_NACK_DB0: ResponseKind.NACK_NO_ACK,
    CV_NACK_SC_DB0: ResponseKind.NACK_SHORT_CIRCUIT,
}
