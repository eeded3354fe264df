"""
Per-locomotive function state cache.

Entries are created on first use and live for the lifetime of the cache.
Callers only ever see copies; every read-modify-write happens under one lock,
so the cache may be shared between tasks and threads.
"""

from __future__ import annotations

import threading

from z21connect.models.function_state import FunctionState


class FunctionStateCache:
    """Mapping of locomotive address to its last known FunctionState."""

    def __init__(self) -> None:
        self._states: dict[int, FunctionState] = {}
        self._lock = threading.Lock()

    def get(self, address: int) -> FunctionState:
        """Copy of the cached state; all-off if the address is unknown."""
        with self._lock:
            state = self._states.get(address)
            return state.copy() if state is not None else FunctionState()

    def set_function(self, address: int, function: int, on: bool) -> FunctionState:
        """Switch one function in the cached state and return a copy of the result."""
        with self._lock:
            state = self._states.setdefault(address, FunctionState())
            state.set(function, on)
            return state.copy()

    def replace(self, address: int, state: FunctionState) -> None:
        """Overwrite the cached state with a copy of ``state``."""
        with self._lock:
            self._states[address] = state.copy()

    def __contains__(self, address: object) -> bool:
        with self._lock:
            return address in self._states

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)
