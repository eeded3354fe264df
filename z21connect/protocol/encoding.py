"""
Wire encodings for locomotive addresses, CV numbers and drive values.

All functions here are pure. Multi-byte payload fields are MSB first.

Address: two bytes. The high byte carries address bits 13-8; for addresses of
128 and above bits 7-6 are forced to ``11`` to mark the DCC long format.

CV numbers: users count from 1, the wire counts from 0. The translation is
done once, in `cv_to_wire`, when a request frame is built.

Speed byte (DB3 of LAN_X_SET_LOCO_DRIVE): bit 7 is the direction (1 = forward).
- 14 steps:  ``R000VVVV``, V = speed 0-15
- 28 steps:  ``R00CVVVV``, the DCC 5-bit step code split as C (LSB) + VVVV
- 128 steps: ``RVVVVVVV``, V = speed 0-127

In every mode speed 0 means stop and 1 means emergency stop.
"""

from __future__ import annotations

from z21connect.protocol.constants import (
    POM_READ_OPTION,
    POM_WRITE_OPTION,
    FunctionAction,
    ProtocolConstants,
    SpeedSteps,
)


def encode_address(address: int) -> tuple[int, int]:
    """
    Encode a locomotive address as (MSB, LSB).

    Args:
        address: DCC address (1-10239).

    Returns:
        Tuple of high and low address bytes.

    Raises:
        ValueError: If the address is out of range.

    Example:
        >>> encode_address(3)
        (0, 3)
        >>> encode_address(1234)
        (196, 210)
    """
    if not ProtocolConstants.MIN_LOCO_ADDRESS <= address <= ProtocolConstants.MAX_LOCO_ADDRESS:
        raise ValueError(
            f"Locomotive address must be {ProtocolConstants.MIN_LOCO_ADDRESS}-"
            f"{ProtocolConstants.MAX_LOCO_ADDRESS}, got {address}"
        )
    msb = (address >> 8) & 0x3F
    if address >= ProtocolConstants.LONG_ADDRESS_THRESHOLD:
        msb |= 0xC0
    return msb, address & 0xFF


def decode_address(msb: int, lsb: int) -> int:
    """Decode an address from its wire bytes, dropping the long-format marker."""
    return ((msb & 0x3F) << 8) | lsb


def cv_to_wire(cv_number: int) -> int:
    """
    Translate a 1-based CV number to the 0-based wire number.

    Raises:
        ValueError: If cv_number is outside 1-65536.
    """
    if not ProtocolConstants.MIN_CV <= cv_number <= ProtocolConstants.MAX_CV:
        raise ValueError(
            f"CV number must be {ProtocolConstants.MIN_CV}-{ProtocolConstants.MAX_CV}, got {cv_number}"
        )
    return cv_number - 1


def wire_to_cv(wire_cv: int) -> int:
    """Translate a 0-based wire CV number back to the user's 1-based number."""
    return wire_cv + 1


def encode_cv_option(wire_cv: int, write: bool) -> tuple[int, int]:
    """
    Encode a wire CV number for LAN_X_CV_POM_* as (option byte, CV low byte).

    The option byte is ``111001MM`` for reads and ``111011MM`` for byte writes,
    where MM are CV bits 9-8.

    Raises:
        ValueError: If the CV does not fit into 10 bits.
    """
    if not 0 <= wire_cv < ProtocolConstants.MAX_POM_CV:
        raise ValueError(
            f"POM supports CV 1-{ProtocolConstants.MAX_POM_CV}, got {wire_to_cv(wire_cv)}"
        )
    base = POM_WRITE_OPTION if write else POM_READ_OPTION
    return base | ((wire_cv >> 8) & 0x03), wire_cv & 0xFF


def encode_function(function: int, on: bool) -> int:
    """
    Encode the LAN_X_SET_LOCO_FUNCTION control byte ``TTNNNNNN``.

    Raises:
        ValueError: If function is not 0-31.
    """
    if not 0 <= function <= ProtocolConstants.MAX_FUNCTION:
        raise ValueError(f"Function must be 0-{ProtocolConstants.MAX_FUNCTION}, got {function}")
    action = FunctionAction.ON if on else FunctionAction.OFF
    return (int(action) << 6) | function


def max_speed(steps: SpeedSteps | int) -> int:
    """Largest speed value accepted for a step mode."""
    return SpeedSteps(steps).max_speed


def encode_speed(speed: int, forward: bool, steps: SpeedSteps | int = SpeedSteps.STEPS_128) -> int:
    """
    Encode speed and direction into the drive byte.

    Speeds above the step maximum are clamped; negative speeds are rejected.

    Example:
        >>> encode_speed(50, forward=True)
        178
        >>> encode_speed(10, forward=False, steps=SpeedSteps.STEPS_28)
        6
    """
    steps = SpeedSteps(steps)
    if speed < 0:
        raise ValueError(f"Speed must not be negative, got {speed}")
    speed = min(speed, steps.max_speed)
    direction = 0x80 if forward else 0x00

    if steps == SpeedSteps.STEPS_14:
        return direction | (speed & 0x0F)

    if steps == SpeedSteps.STEPS_28:
        # 0 -> stop (code 0), 1 -> e-stop (code 2), n >= 2 -> code n + 2
        if speed == 0:
            code = 0
        elif speed == 1:
            code = 2
        else:
            code = speed + 2
        return direction | ((code & 0x01) << 4) | (code >> 1)

    return direction | (speed & 0x7F)


def decode_speed(value: int, steps: SpeedSteps | int) -> tuple[int, bool]:
    """
    Decode a drive byte into (speed, forward) on the `encode_speed` scale.

    Example:
        >>> decode_speed(0xB2, SpeedSteps.STEPS_128)
        (50, True)
    """
    steps = SpeedSteps(steps)
    forward = bool(value & 0x80)

    if steps == SpeedSteps.STEPS_14:
        return value & 0x0F, forward

    if steps == SpeedSteps.STEPS_28:
        code = ((value & 0x0F) << 1) | ((value >> 4) & 0x01)
        if code < 2:
            return 0, forward
        if code < 4:
            return 1, forward
        return code - 2, forward

    return value & 0x7F, forward
