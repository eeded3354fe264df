"""
XOR checksum calculation and validation.

Every LAN_X datagram ends with a single checksum byte:
- XOR of all payload bytes from the X-Header through the last data byte
- The 4-byte envelope (length and header fields) is excluded
"""

from __future__ import annotations

from functools import reduce
from operator import xor


def calculate_checksum(data: bytes | bytearray | memoryview) -> int:
    """
    Calculate the XOR checksum over the specified payload.

    Args:
        data: Payload to checksum (X-Header and data bytes, no envelope).

    Returns:
        Checksum value (0-255).

    Example:
        >>> calculate_checksum(b"\\x21\\x81")
        160
    """
    return reduce(xor, data, 0)


def validate_checksum(frame: bytes | bytearray | memoryview, payload_offset: int = 4) -> bool:
    """
    Validate the trailing checksum byte of a complete frame.

    Args:
        frame: Complete frame including envelope and checksum.
        payload_offset: Offset of the X-Header in the frame.

    Returns:
        True if the last byte equals the XOR of the payload, False otherwise.
    """
    if len(frame) < payload_offset + 2:
        return False
    return calculate_checksum(frame[payload_offset:-1]) == frame[-1]


def append_checksum(data: bytes | bytearray) -> bytes:
    """
    Append the XOR checksum byte to a payload.

    Example:
        >>> append_checksum(b"\\x21\\x81")
        b'!\\x81\\xa0'
    """
    return bytes(data) + bytes([calculate_checksum(data)])
