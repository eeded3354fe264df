"""
Data models for Z21 requests and responses.

- Value objects (CV, LocoCV, LocoSpeed, LocoAddress)
- Request options (RequestContext)
- Function bitfield (FunctionState)
"""

from z21connect.models.function_state import FunctionState
from z21connect.models.records import (
    CV,
    LocoAddress,
    LocoCV,
    LocoSpeed,
    RequestContext,
)

__all__ = [
    # Value Objects
    "CV",
    "LocoCV",
    "LocoAddress",
    "LocoSpeed",
    # Options
    "RequestContext",
    # State
    "FunctionState",
]
