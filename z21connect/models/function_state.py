"""
Function on/off bitfield for one locomotive.

The layout mirrors the function bytes DB4-DB8 of LAN_X_LOCO_INFO so that a
response can be copied in without translation.
"""

from __future__ import annotations

from typing import Final

MAX_FUNCTION: Final[int] = 31

# (byte index, first function, last function); the first function sits in bit 0
_FUNCTION_GROUPS: Final[tuple[tuple[int, int, int], ...]] = (
    (1, 5, 12),
    (2, 13, 20),
    (3, 21, 28),
    (4, 29, 31),
)

_F0_BIT: Final[int] = 4


class FunctionState:
    """
    On/off state of functions F0-F31 for one locomotive.

    Stored as the five function bytes of LAN_X_LOCO_INFO (DB4-DB8):

    ====  =====================================
    byte  contents
    ====  =====================================
    0     F0 in bit 4, F1-F4 in bits 0-3
    1     F5-F12
    2     F13-F20
    3     F21-F28
    4     F29-F31 in bits 0-2
    ====  =====================================

    `get` and `set` are the only methods that know this layout.

    Example:
        >>> state = FunctionState()
        >>> state.set(0, True)
        >>> state.get(0)
        True
        >>> state.to_bytes()
        b'\\x10\\x00\\x00\\x00\\x00'
    """

    SIZE: Final[int] = 5

    __slots__ = ("_bytes",)

    def __init__(self, data: bytes | bytearray = b"") -> None:
        if len(data) > self.SIZE:
            raise ValueError(f"Function state holds at most {self.SIZE} bytes, got {len(data)}")
        # Missing trailing bytes stay zero (older firmware omits DB6-DB8)
        self._bytes = bytearray(self.SIZE)
        self._bytes[: len(data)] = data

    @classmethod
    def from_bytes(cls, data: bytes | bytearray) -> FunctionState:
        return cls(data)

    def to_bytes(self) -> bytes:
        return bytes(self._bytes)

    def copy(self) -> FunctionState:
        return FunctionState(self._bytes)

    def get(self, function: int) -> bool:
        """Return whether ``function`` is on."""
        index, mask = self._locate(function)
        return bool(self._bytes[index] & mask)

    def set(self, function: int, on: bool) -> None:
        """Switch ``function`` on or off."""
        index, mask = self._locate(function)
        if on:
            self._bytes[index] |= mask
        else:
            self._bytes[index] &= ~mask & 0xFF

    def active(self) -> list[int]:
        """Ascending list of function numbers that are on."""
        return [fn for fn in range(MAX_FUNCTION + 1) if self.get(fn)]

    @staticmethod
    def _locate(function: int) -> tuple[int, int]:
        if function == 0:
            return 0, 1 << _F0_BIT
        if 1 <= function <= 4:
            return 0, 1 << (function - 1)
        for index, first, last in _FUNCTION_GROUPS:
            if first <= function <= last:
                return index, 1 << (function - first)
        raise ValueError(f"Function must be 0-{MAX_FUNCTION}, got {function}")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FunctionState):
            return NotImplemented
        return self._bytes == other._bytes

    def __repr__(self) -> str:
        return f"FunctionState({self.to_bytes().hex()}, active={self.active()})"
