"""
LAN_X request frame builders.

Every builder is a pure function returning a complete datagram:

    [length:2 LE][0x0040:2 LE][X-Header][DB0...][checksum]

``length`` counts the whole datagram including itself. The checksum is the XOR
of the X-Header and all data bytes.
"""

from __future__ import annotations

import struct

from z21connect.protocol.checksums import append_checksum
from z21connect.protocol.constants import ProtocolConstants, SpeedSteps, XCommand, XHeader
from z21connect.protocol.encoding import (
    cv_to_wire,
    encode_address,
    encode_cv_option,
    encode_function,
    encode_speed,
)


def build_frame(payload: bytes | bytearray) -> bytes:
    """
    Wrap a LAN_X payload (X-Header + data) into a datagram.

    Args:
        payload: X-Header followed by data bytes, without checksum.

    Returns:
        Complete datagram bytes.
    """
    body = append_checksum(payload)
    length = ProtocolConstants.ENVELOPE_SIZE + len(body)
    return struct.pack("<HH", length, ProtocolConstants.LAN_X_HEADER) + body


def build_pom_read(address: int, cv_number: int) -> bytes:
    """LAN_X_CV_POM_READ_BYTE: ``E6 30 MSB LSB 111001MM CV 00``."""
    msb, lsb = encode_address(address)
    option, cv_low = encode_cv_option(cv_to_wire(cv_number), write=False)
    return build_frame(bytes([XHeader.CV_POM, XCommand.CV_POM, msb, lsb, option, cv_low, 0x00]))


def build_pom_write(address: int, cv_number: int, value: int) -> bytes:
    """LAN_X_CV_POM_WRITE_BYTE: ``E6 30 MSB LSB 111011MM CV value``."""
    _check_value(value)
    msb, lsb = encode_address(address)
    option, cv_low = encode_cv_option(cv_to_wire(cv_number), write=True)
    return build_frame(bytes([XHeader.CV_POM, XCommand.CV_POM, msb, lsb, option, cv_low, value]))


def build_prog_read(cv_number: int) -> bytes:
    """LAN_X_CV_READ: ``23 11 CVhigh CVlow``."""
    wire_cv = cv_to_wire(cv_number)
    return build_frame(bytes([XHeader.CV_READ, XCommand.CV_READ, wire_cv >> 8, wire_cv & 0xFF]))


def build_prog_write(cv_number: int, value: int) -> bytes:
    """LAN_X_CV_WRITE: ``24 12 CVhigh CVlow value``."""
    _check_value(value)
    wire_cv = cv_to_wire(cv_number)
    return build_frame(
        bytes([XHeader.CV_WRITE, XCommand.CV_WRITE, wire_cv >> 8, wire_cv & 0xFF, value])
    )


def build_track_power_on() -> bytes:
    """LAN_X_SET_TRACK_POWER_ON: ``21 81``."""
    return build_frame(bytes([XHeader.SET_TRACK_POWER, XCommand.TRACK_POWER_ON]))


def build_get_loco_info(address: int) -> bytes:
    """LAN_X_GET_LOCO_INFO: ``E3 F0 MSB LSB``."""
    msb, lsb = encode_address(address)
    return build_frame(bytes([XHeader.GET_LOCO_INFO, XCommand.LOCO_INFO, msb, lsb]))


def build_set_loco_function(address: int, function: int, on: bool) -> bytes:
    """LAN_X_SET_LOCO_FUNCTION: ``E4 F8 MSB LSB TTNNNNNN``."""
    msb, lsb = encode_address(address)
    control = encode_function(function, on)
    return build_frame(bytes([XHeader.LOCO_DRIVE, XCommand.LOCO_FUNCTION, msb, lsb, control]))


def build_set_loco_drive(
    address: int,
    speed: int,
    forward: bool,
    steps: SpeedSteps | int = SpeedSteps.STEPS_128,
) -> bytes:
    """LAN_X_SET_LOCO_DRIVE: ``E4 1S MSB LSB RVVVVVVV``."""
    steps = SpeedSteps(steps)
    msb, lsb = encode_address(address)
    speed_byte = encode_speed(speed, forward, steps)
    return build_frame(bytes([XHeader.LOCO_DRIVE, steps.drive_selector, msb, lsb, speed_byte]))


def _check_value(value: int) -> None:
    if not 0 <= value <= 255:
        raise ValueError(f"CV value must be 0-255, got {value}")
