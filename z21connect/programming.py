"""
CV read/write orchestration.

`CVProgrammer` turns a mode, locomotive and CV into the matching request
frame and interprets what comes back:

- CV reads are retried on timeouts and transport errors, up to
  ``ctx.retries`` extra attempts with a fixed pause between them.
- Negative acknowledgements are final answers and are raised at once.
- CV writes are sent once. With ``ctx.verify`` the CV is read back after
  ``ctx.settle`` seconds and compared.

Power bookkeeping for the programming track is the caller's job (see
`z21connect.power`).
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from z21connect.exceptions import TimeoutError, TransportError, VerifyError, raise_for_response
from z21connect.models.records import RequestContext
from z21connect.protocol.constants import Mode, ProtocolConstants
from z21connect.protocol.frame_reader import CVResult
from z21connect.protocol.frames import (
    build_pom_read,
    build_pom_write,
    build_prog_read,
    build_prog_write,
)

if TYPE_CHECKING:
    from z21connect.models.records import LocoCV
    from z21connect.protocol.frame_reader import Response
    from z21connect.session import Session

logger = logging.getLogger(__name__)


def build_cv_request(mode: Mode | str, lcv: LocoCV, write: bool) -> bytes:
    """
    Build the mode-specific CV read or write frame.

    Args:
        mode: MAIN (programming on main) or PROG (programming track).
        lcv: Locomotive and CV. The address is required for MAIN only.
        write: Build a write request instead of a read.

    Raises:
        ValueError: For an unknown mode or an invalid address/CV/value.
    """
    try:
        mode = Mode(mode)
    except ValueError:
        raise ValueError(f"Unsupported mode {mode!r}, expected 'pom' or 'prog'") from None

    if mode is Mode.MAIN:
        if write:
            return build_pom_write(lcv.address, lcv.cv.number, lcv.cv.value)
        return build_pom_read(lcv.address, lcv.cv.number)

    if write:
        return build_prog_write(lcv.cv.number, lcv.cv.value)
    return build_prog_read(lcv.cv.number)


class CVProgrammer:
    """
    Retrying CV reads and optionally verified CV writes.

    Attributes:
        session: Session used for all requests.
        retry_delay: Seconds to pause between read attempts.
    """

    def __init__(
        self,
        session: Session,
        retry_delay: float = ProtocolConstants.RETRY_DELAY,
    ) -> None:
        self._session = session
        self._retry_delay = retry_delay

    @property
    def session(self) -> Session:
        return self._session

    async def read_cv(
        self,
        mode: Mode | str,
        lcv: LocoCV,
        ctx: RequestContext | None = None,
    ) -> CVResult:
        """
        Read one CV.

        Args:
            mode: Programming mode.
            lcv: Locomotive and CV to read.
            ctx: Timeout and retry options.

        Returns:
            The LAN_X_CV_RESULT for the requested CV.

        Raises:
            NoAcknowledgeError: Decoder did not acknowledge.
            ShortCircuitError: Command station reported a short circuit.
            TimeoutError: Every attempt timed out (last error is raised).
            TransportError: Every attempt failed, the last one on the socket.
        """
        ctx = ctx or RequestContext()
        request = build_cv_request(mode, lcv, write=False)
        timeout = ctx.resolve_timeout(self._session.timeout)
        wire_cv = lcv.cv.wire_number

        def is_answer(response: Response) -> bool:
            if not isinstance(response, CVResult):
                return False
            return not response.is_result or response.wire_cv == wire_cv

        attempts = ctx.retries + 1
        last_error: Exception | None = None

        for attempt in range(attempts):
            if attempt > 0:
                await asyncio.sleep(self._retry_delay)
            logger.debug("Reading CV%d, attempt %d/%d", lcv.cv.number, attempt + 1, attempts)

            try:
                result = await self._session.send_and_await(request, timeout, match=is_answer)
            except (TimeoutError, TransportError) as e:
                last_error = e
                logger.warning(
                    "CV%d read failed (attempt %d/%d): %s", lcv.cv.number, attempt + 1, attempts, e
                )
                continue

            raise_for_response(result)  # type: ignore[arg-type]
            logger.info("Read %s", result)
            return result  # type: ignore[return-value]

        logger.error("CV%d read failed after %d attempts", lcv.cv.number, attempts)
        raise last_error or TimeoutError("CV read timed out")

    async def write_cv(
        self,
        mode: Mode | str,
        lcv: LocoCV,
        ctx: RequestContext | None = None,
    ) -> None:
        """
        Write one CV, optionally reading it back.

        The write itself is sent once and is not acknowledged on the wire.

        Raises:
            VerifyError: Verification read returned a different value.
            TransportError: The write could not be sent.
            Any error of `read_cv` while verifying.
        """
        ctx = ctx or RequestContext()
        request = build_cv_request(mode, lcv, write=True)

        logger.debug("Writing CV: loco=%d, %s", lcv.address, lcv.cv)
        await self._session.send(request)

        if not ctx.verify:
            return

        logger.debug("Verifying %s after %.3fs", lcv.cv, ctx.settle)
        await asyncio.sleep(ctx.settle)
        result = await self.read_cv(mode, lcv, ctx)
        if result.value != lcv.cv.value:
            logger.warning("Verify mismatch on CV%d: wrote %d, read %d", lcv.cv.number, lcv.cv.value, result.value)
            raise VerifyError(lcv.cv.number, lcv.cv.value, result.value)
        logger.info("Wrote and verified %s", lcv.cv)
