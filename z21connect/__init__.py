"""
z21connect - Python library for programming DCC decoders through a Z21.

This library talks to a Roco/Fleischmann Z21 command station over its LAN
protocol (LAN_X over UDP), supporting CV reads and writes on the main track
and the programming track, decoder functions F0-F31, and speed/direction.

Example:
    >>> from z21connect import CommandStation, LocoCV, Mode, RequestContext
    >>> from z21connect.transport import AsyncUDPTransport
    >>>
    >>> async def main():
    ...     transport = AsyncUDPTransport("192.168.0.111")
    ...     async with CommandStation(transport) as station:
    ...         await station.write_cv(Mode.MAIN, LocoCV.of(3, 29, 6), RequestContext(verify=True))
    ...         await station.send_fn(Mode.MAIN, 3, 0, on=True)
    ...         print(await station.list_functions(3))
"""

from z21connect.client import CommandStation, StationState
from z21connect.config import StationConfig, load_config
from z21connect.exceptions import (
    ChecksumError,
    CommandStationError,
    ConnectionError,
    FrameError,
    NoAcknowledgeError,
    ProtocolError,
    ShortCircuitError,
    TimeoutError,
    TransportError,
    VerifyError,
    Z21Error,
)
from z21connect.models import CV, FunctionState, LocoCV, LocoSpeed, RequestContext
from z21connect.protocol.constants import Mode, SpeedSteps
from z21connect.syntax import CVEntry, parse_cv_string
from z21connect.transport import AbstractTransport, AsyncUDPTransport

__version__ = "0.1.0"
__all__ = [
    # Client
    "CommandStation",
    "StationState",
    "Mode",
    "SpeedSteps",
    # Models
    "CV",
    "LocoCV",
    "LocoSpeed",
    "RequestContext",
    "FunctionState",
    "CVEntry",
    "parse_cv_string",
    # Config
    "StationConfig",
    "load_config",
    # Exceptions
    "Z21Error",
    "ProtocolError",
    "ChecksumError",
    "FrameError",
    "TimeoutError",
    "ConnectionError",
    "TransportError",
    "CommandStationError",
    "NoAcknowledgeError",
    "ShortCircuitError",
    "VerifyError",
    # Transport
    "AbstractTransport",
    "AsyncUDPTransport",
    # Version
    "__version__",
]
