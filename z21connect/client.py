"""
Z21 command station client.

This module provides the public interface for programming decoders and
controlling locomotives through a Z21 command station.

Lifecycle:
    NEW -> open() -> OPEN -> clean_up() -> CLOSED

`clean_up()` must run on every exit path: it restores track power if the
programming track was used, then closes the transport. Using the station as
an async context manager guarantees that.

Example:
    >>> from z21connect import CommandStation, LocoCV, Mode
    >>>
    >>> async def main():
    ...     async with await CommandStation.connect("192.168.0.111") as station:
    ...         await station.write_cv(Mode.MAIN, LocoCV.of(3, 29, 6))
    ...         print(await station.read_cv(Mode.PROG, LocoCV.of(0, 1)))
"""

from __future__ import annotations

import logging
from enum import Enum, auto
from typing import TYPE_CHECKING

from z21connect.exceptions import ConnectionError
from z21connect.function_cache import FunctionStateCache
from z21connect.models.records import LocoSpeed, RequestContext
from z21connect.power import TrackPowerGuard
from z21connect.programming import CVProgrammer
from z21connect.protocol.constants import Mode, ProtocolConstants, SpeedSteps
from z21connect.protocol.frame_reader import LocoInfo
from z21connect.protocol.frames import (
    build_get_loco_info,
    build_set_loco_drive,
    build_set_loco_function,
)
from z21connect.session import Session
from z21connect.transport.udp_async import AsyncUDPTransport

if TYPE_CHECKING:
    from z21connect.models.function_state import FunctionState
    from z21connect.models.records import LocoCV
    from z21connect.protocol.frame_reader import Response
    from z21connect.transport.abc import AbstractTransport

# Module logger
logger = logging.getLogger(__name__)


class StationState(Enum):
    """Command station client lifecycle states."""

    NEW = auto()
    """Created, transport not opened yet."""

    OPEN = auto()
    """Transport open, ready for operations."""

    CLOSED = auto()
    """Cleaned up; the client cannot be reused."""


class CommandStation:
    """
    Client for one Z21 command station.

    Requests on one station are strictly sequential (see `Session`). The
    function-state cache may be read and updated from concurrent callers.

    Attributes:
        state: Current lifecycle state.
        transport: The underlying transport layer.
        power_cut: Whether track power will be restored at clean-up.

    Example:
        >>> station = CommandStation(AsyncUDPTransport("192.168.0.111"))
        >>> await station.open()
        >>> try:
        ...     await station.send_fn(Mode.MAIN, 3, 0, on=True)
        ...     print(await station.list_functions(3))
        ... finally:
        ...     await station.clean_up()
    """

    def __init__(
        self,
        transport: AbstractTransport,
        timeout: float = ProtocolConstants.DEFAULT_TIMEOUT,
        retry_delay: float = ProtocolConstants.RETRY_DELAY,
    ) -> None:
        """
        Initialize the command station client.

        Args:
            transport: Transport layer for communication.
            timeout: Default response timeout in seconds.
            retry_delay: Pause between CV read attempts in seconds.
        """
        self._transport = transport
        self._session = Session(transport, timeout=timeout)
        self._programmer = CVProgrammer(self._session, retry_delay=retry_delay)
        self._power = TrackPowerGuard()
        self._functions = FunctionStateCache()
        self._state = StationState.NEW

    @classmethod
    async def connect(
        cls,
        host: str,
        port: int = ProtocolConstants.DEFAULT_PORT,
        timeout: float = ProtocolConstants.DEFAULT_TIMEOUT,
    ) -> CommandStation:
        """
        Create a UDP-backed station and open it.

        Args:
            host: Command station address.
            port: Command station UDP port.
            timeout: Default response timeout in seconds.
        """
        station = cls(AsyncUDPTransport(host, port, default_timeout=timeout), timeout=timeout)
        await station.open()
        return station

    @property
    def state(self) -> StationState:
        """Get the current lifecycle state."""
        return self._state

    @property
    def transport(self) -> AbstractTransport:
        """Get the underlying transport."""
        return self._transport

    @property
    def session(self) -> Session:
        return self._session

    @property
    def timeout(self) -> float:
        return self._session.timeout

    @property
    def power_cut(self) -> bool:
        return self._power.power_cut

    async def open(self) -> None:
        """
        Open the transport.

        Raises:
            ConnectionError: If the station was already cleaned up.
            TransportError: If the transport cannot be opened.
        """
        if self._state is StationState.CLOSED:
            raise ConnectionError("Command station has been cleaned up")
        if not self._transport.is_open:
            await self._transport.open()
        self._state = StationState.OPEN
        logger.debug("Command station ready at %s", self._transport.endpoint)

    async def clean_up(self) -> None:
        """
        Restore track power if needed, then close the transport.

        Track power is restored best-effort and at most once. Calling this
        again after it completed does nothing.
        """
        if self._state is StationState.CLOSED:
            return

        try:
            if self._transport.is_open:
                await self._power.restore(self._session)
        finally:
            self._state = StationState.CLOSED
            if self._transport.is_open:
                await self._transport.close()
            logger.debug("Command station at %s cleaned up", self._transport.endpoint)

    # ===== CV programming =====

    async def write_cv(
        self,
        mode: Mode | str,
        lcv: LocoCV,
        ctx: RequestContext | None = None,
    ) -> None:
        """
        Write a CV.

        Args:
            mode: MAIN needs ``lcv.address``; PROG ignores it.
            lcv: Locomotive and CV number/value.
            ctx: Timeout, retry and verify options.

        Raises:
            ValueError: Invalid mode, address, CV or value.
            VerifyError: Read-back value differs (only with ``ctx.verify``).
            CommandStationError: NACK during the verify read.
            TimeoutError, TransportError: Network failures.
        """
        self._ensure_open()
        with self._power.track(mode):
            await self._programmer.write_cv(mode, lcv, ctx)

    async def read_cv(
        self,
        mode: Mode | str,
        lcv: LocoCV,
        ctx: RequestContext | None = None,
    ) -> int:
        """
        Read a CV and return its value.

        Raises:
            ValueError: Invalid mode, address or CV.
            CommandStationError: The command station answered with a NACK.
            TimeoutError, TransportError: All attempts failed.
        """
        self._ensure_open()
        with self._power.track(mode):
            result = await self._programmer.read_cv(mode, lcv, ctx)
        return result.value

    # ===== Functions =====

    async def send_fn(
        self,
        mode: Mode | str,
        address: int,
        function: int,
        on: bool = True,
    ) -> None:
        """
        Switch a decoder function on or off.

        Success means the frame was sent; the command station does not
        confirm function commands.

        Raises:
            ValueError: Mode is not MAIN, or function/address out of range.
        """
        if mode != Mode.MAIN:
            raise ValueError(f"Functions require mode 'pom', got {mode!r}")
        self._ensure_open()
        request = build_set_loco_function(address, function, on)

        logger.debug("Setting F%d %s on loco %d", function, "on" if on else "off", address)
        await self._session.send(request)
        self._functions.set_function(address, function, on)

    async def list_functions(self, address: int) -> list[int]:
        """
        Ask the command station which functions are on.

        Refreshes the cached state for ``address``.

        Returns:
            Ascending list of active function numbers (0-31).
        """
        info = await self._loco_info(address)
        state = info.functions
        self._functions.replace(address, state)
        return state.active()

    def function_state(self, address: int) -> FunctionState:
        """Copy of the cached function state for ``address``."""
        return self._functions.get(address)

    # ===== Driving =====

    async def set_speed(
        self,
        address: int,
        speed: int,
        forward: bool,
        steps: SpeedSteps | int = SpeedSteps.STEPS_128,
    ) -> None:
        """
        Set speed and direction.

        Args:
            address: Locomotive address.
            speed: 0 = stop, 1 = emergency stop, 2.. = running steps.
            forward: Direction.
            steps: 14, 28 or 128 speed steps.

        Raises:
            ValueError: Unsupported step mode or speed above its maximum.
        """
        try:
            steps = SpeedSteps(steps)
        except ValueError:
            raise ValueError(f"Invalid speed steps {steps} (must be 14, 28 or 128)") from None
        if not 0 <= speed <= steps.max_speed:
            raise ValueError(
                f"Speed {speed} exceeds maximum {steps.max_speed} for {int(steps)} speed steps"
            )
        self._ensure_open()
        request = build_set_loco_drive(address, speed, forward, steps)

        logger.debug("Setting loco %d speed=%d forward=%s steps=%d", address, speed, forward, steps)
        await self._session.send(request)

    async def get_speed(self, address: int) -> LocoSpeed:
        """
        Read speed and direction from the command station.
        """
        info = await self._loco_info(address)
        return LocoSpeed(
            address=info.address,
            speed=info.speed,
            forward=info.forward,
            steps=info.speed_steps,
        )

    async def _loco_info(self, address: int) -> LocoInfo:
        """Send LAN_X_GET_LOCO_INFO and wait once, without retry, for the reply."""
        request = build_get_loco_info(address)
        self._ensure_open()

        def is_answer(response: Response) -> bool:
            return isinstance(response, LocoInfo) and response.address == address

        return await self._session.send_and_await(request, match=is_answer)  # type: ignore[return-value]

    def _ensure_open(self) -> None:
        """Verify the station is open."""
        if self._state is not StationState.OPEN:
            raise ConnectionError(f"Command station not open (state: {self._state.name})")

    async def __aenter__(self) -> CommandStation:
        """Async context manager entry."""
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit - restore power and close transport."""
        await self.clean_up()

    def __repr__(self) -> str:
        return (
            f"CommandStation({self._transport.endpoint!r}, state={self._state.name}, "
            f"power_cut={self._power.power_cut})"
        )
