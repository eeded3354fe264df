"""
Data models for Z21 programming and locomotive control.

Value objects are immutable Pydantic models validated against the protocol's
ranges, so invalid requests fail before any datagram is built. `FunctionState`
lives in `function_state` as the one mutable structure.
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field

from z21connect.protocol.constants import ProtocolConstants, SpeedSteps

LocoAddress = Annotated[
    int,
    Field(
        ge=ProtocolConstants.MIN_LOCO_ADDRESS,
        le=ProtocolConstants.MAX_LOCO_ADDRESS,
        description="DCC locomotive address (1-10239)",
    ),
]


class CV(BaseModel):
    """
    A configuration variable number and value.

    Numbers are 1-based as printed in decoder manuals. The value is ignored
    for read requests.

    Example:
        >>> cv = CV(number=29, value=6)
        >>> cv.wire_number
        28
        >>> str(cv)
        'cv29=6'
    """

    model_config = ConfigDict(frozen=True)

    number: int = Field(ge=ProtocolConstants.MIN_CV, le=ProtocolConstants.MAX_CV)
    value: int = Field(default=0, ge=0, le=255)

    @property
    def wire_number(self) -> int:
        """0-based CV number used on the wire."""
        return self.number - 1

    def __str__(self) -> str:
        return f"cv{self.number}={self.value}"


class LocoCV(BaseModel):
    """
    A CV addressed to a specific locomotive.

    ``address`` may be 0 for programming-track requests, which are unaddressed.
    """

    model_config = ConfigDict(frozen=True)

    address: int = Field(default=0, ge=0, le=ProtocolConstants.MAX_LOCO_ADDRESS)
    cv: CV

    @classmethod
    def of(cls, address: int, number: int, value: int = 0) -> LocoCV:
        """Shorthand constructor."""
        return cls(address=address, cv=CV(number=number, value=value))


class RequestContext(BaseModel):
    """
    Per-call options for CV reads and writes.

    Attributes:
        timeout: Seconds to wait per attempt; None uses the station default.
        retries: Additional read attempts after a timeout or transport error.
        verify: Read the CV back after writing and compare.
        settle: Seconds to wait between a write and its verifying read.
    """

    model_config = ConfigDict(frozen=True)

    timeout: float | None = Field(default=None, gt=0)
    retries: int = Field(default=ProtocolConstants.DEFAULT_RETRIES, ge=0, le=255)
    verify: bool = False
    settle: float = Field(default=ProtocolConstants.DEFAULT_SETTLE, ge=0)

    def with_options(self, **changes: Any) -> RequestContext:
        """Return a validated copy with the given fields replaced."""
        return type(self).model_validate({**self.model_dump(), **changes})

    def resolve_timeout(self, default: float) -> float:
        """Per-attempt timeout, falling back to ``default``."""
        return self.timeout if self.timeout is not None else default


class LocoSpeed(BaseModel):
    """Speed and direction reported for a locomotive."""

    model_config = ConfigDict(frozen=True)

    address: LocoAddress
    speed: int = Field(ge=0, le=127)
    forward: bool
    steps: SpeedSteps = SpeedSteps.STEPS_128

    @property
    def direction(self) -> str:
        return "forward" if self.forward else "reverse"

    def __str__(self) -> str:
        return f"Locomotive {self.address}: speed={self.speed} direction={self.direction}"
