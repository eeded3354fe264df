"""
Protocol layer for Z21 LAN_X communication.

This module contains the low-level protocol handling:
- X-Header/DB0 codes and protocol constants
- XOR checksum calculation and validation
- Address, CV, function and speed encodings
- Request frame builders
- Response frame parsing
"""

from z21connect.protocol.checksums import append_checksum, calculate_checksum, validate_checksum
from z21connect.protocol.constants import (
    FunctionAction,
    Mode,
    ProtocolConstants,
    ResponseKind,
    SpeedSteps,
    XCommand,
    XHeader,
)
from z21connect.protocol.encoding import (
    cv_to_wire,
    decode_address,
    decode_speed,
    encode_address,
    encode_cv_option,
    encode_function,
    encode_speed,
    max_speed,
    wire_to_cv,
)
from z21connect.protocol.frame_reader import (
    DEFAULT_FRAME_READER,
    CVResult,
    FrameParseError,
    FrameParseResult,
    FrameReader,
    LocoInfo,
    Response,
    parse_frame,
)
from z21connect.protocol.frames import (
    build_frame,
    build_get_loco_info,
    build_pom_read,
    build_pom_write,
    build_prog_read,
    build_prog_write,
    build_set_loco_drive,
    build_set_loco_function,
    build_track_power_on,
)

__all__ = [
    # Constants
    "XHeader",
    "XCommand",
    "Mode",
    "ResponseKind",
    "FunctionAction",
    "SpeedSteps",
    "ProtocolConstants",
    # Checksums
    "calculate_checksum",
    "validate_checksum",
    "append_checksum",
    # Encoding
    "encode_address",
    "decode_address",
    "cv_to_wire",
    "wire_to_cv",
    "encode_cv_option",
    "encode_function",
    "encode_speed",
    "decode_speed",
    "max_speed",
    # Frame Building
    "build_frame",
    "build_pom_read",
    "build_pom_write",
    "build_prog_read",
    "build_prog_write",
    "build_track_power_on",
    "build_get_loco_info",
    "build_set_loco_function",
    "build_set_loco_drive",
    # Frame Parsing
    "FrameReader",
    "FrameParseResult",
    "FrameParseError",
    "CVResult",
    "LocoInfo",
    "Response",
    "parse_frame",
    "DEFAULT_FRAME_READER",
]
