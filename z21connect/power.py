"""
Track power bookkeeping for programming-track operations.

Direct-mode programming makes the command station switch normal track power
off as a side effect, whether or not the CV operation succeeds. The guard
records that this happened and, at teardown, sends a single
LAN_X_SET_TRACK_POWER_ON. Delivery is not confirmed (UDP).
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from z21connect.exceptions import Z21Error
from z21connect.protocol.constants import Mode
from z21connect.protocol.frames import build_track_power_on

if TYPE_CHECKING:
    from z21connect.session import Session

logger = logging.getLogger(__name__)


class TrackPowerGuard:
    """
    Remembers whether track power must be restored before the session ends.

    Example:
        >>> guard = TrackPowerGuard()
        >>> with guard.track(Mode.PROG):
        ...     await programmer.read_cv(Mode.PROG, lcv)
        >>> await guard.restore(session)  # sends power-on once
    """

    def __init__(self) -> None:
        self._power_cut = False
        self._restored = False

    @property
    def power_cut(self) -> bool:
        """True once any programming-track operation has run."""
        return self._power_cut

    @property
    def needs_restore(self) -> bool:
        return self._power_cut and not self._restored

    def mark(self) -> None:
        """Record that the programming track was used."""
        if not self._power_cut:
            logger.debug("Marking track power for restore at clean-up")
        self._power_cut = True

    @contextmanager
    def track(self, mode: Mode | str) -> Iterator[None]:
        """
        Mark the flag after the wrapped operation if it ran on the programming track.

        The flag is set on success and on error alike.
        """
        try:
            yield
        finally:
            if mode == Mode.PROG:
                self.mark()

    async def restore(self, session: Session) -> bool:
        """
        Send track power on if needed. Runs at most once per guard.

        Failures are logged and swallowed.

        Returns:
            True if a power-on frame was sent.
        """
        if not self.needs_restore:
            return False
        self._restored = True

        logger.debug("Restoring track power after programming-track use")
        try:
            await session.send(build_track_power_on())
        except (Z21Error, OSError) as e:
            logger.warning("Could not restore track power: %s", e)
            return False
        return True
