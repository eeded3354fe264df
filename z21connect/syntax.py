"""
CV list syntax used on the command line and in CV files.

Entries are separated by ``separator`` (a newline when empty)::

    cv1=3, CV29=6, 17          # number only means value 0
    cv1-cv5=0                  # inclusive range
    # whole-line comments and inline comments are ignored

A later entry for the same CV replaces an earlier one. The result is sorted
by CV number.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from z21connect.protocol.constants import ProtocolConstants

_NUMBER = re.compile(r"^(?:cv)?(\d+)$", re.IGNORECASE)


@dataclass(frozen=True)
class CVEntry:
    """One CV number with the value to write (0 when only reading)."""

    number: int
    value: int = 0


def _parse_number(text: str) -> int:
    match = _NUMBER.match(text.strip())
    if match is None:
        raise ValueError(f"Invalid CV number: {text.strip()!r}")
    number = int(match.group(1))
    if not ProtocolConstants.MIN_CV <= number <= ProtocolConstants.MAX_CV:
        raise ValueError(
            f"CV number {number} out of range "
            f"({ProtocolConstants.MIN_CV}-{ProtocolConstants.MAX_CV})"
        )
    return number


def _parse_value(text: str) -> int:
    text = text.strip()
    if not text.isdigit():
        raise ValueError(f"Invalid CV value: {text!r}")
    value = int(text)
    if value > 255:
        raise ValueError(f"CV value {value} out of range (0-255)")
    return value


def parse_cv_string(text: str, separator: str = ",") -> list[CVEntry]:
    """
    Parse a CV list.

    Args:
        text: Entries such as ``"cv1=3, cv2-cv4=0, 29"``.
        separator: Entry separator; an empty string means newline.

    Returns:
        Entries sorted by CV number, one per CV.

    Raises:
        ValueError: If a CV number or value is malformed or out of range.

    Example:
        >>> parse_cv_string("cv3=1, cv1-cv2=7, #cv9=9")
        [CVEntry(number=1, value=7), CVEntry(number=2, value=7), CVEntry(number=3, value=1)]
    """
    entries: dict[int, int] = {}

    for raw in text.split(separator or "\n"):
        entry = raw.split("#", 1)[0].strip()
        if not entry:
            continue

        key, sep, value_text = entry.partition("=")
        value = _parse_value(value_text) if sep else 0

        first, dash, last = key.partition("-")
        start = _parse_number(first)
        end = _parse_number(last) if dash else start
        if end < start:
            raise ValueError(f"Invalid CV range: {key.strip()!r}")

        for number in range(start, end + 1):
            entries[number] = value

    return [CVEntry(number, entries[number]) for number in sorted(entries)]
