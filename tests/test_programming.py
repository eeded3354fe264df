"""Tests for CV read retries and verified writes."""

import pytest

from z21connect.exceptions import (
    NoAcknowledgeError,
    ShortCircuitError,
    TimeoutError,
    TransportError,
    VerifyError,
)
from z21connect.models import LocoCV, RequestContext
from z21connect.programming import CVProgrammer, build_cv_request
from z21connect.protocol.constants import Mode
from z21connect.protocol.frames import (
    build_frame,
    build_pom_read,
    build_pom_write,
    build_prog_read,
    build_prog_write,
)
from z21connect.session import Session
from z21connect.transport.mock import MockTransport


def cv_result(cv_number: int, value: int) -> bytes:
    wire = cv_number - 1
    return build_frame(bytes([0x64, 0x14, wire >> 8, wire & 0xFF, value]))


NACK = build_frame(bytes([0x61, 0x13]))
NACK_SC = build_frame(bytes([0x61, 0x12]))


class TestBuildCVRequest:
    """Tests for mode dispatch."""

    def test_main_read(self):
        """Test POM read frame."""
        assert build_cv_request(Mode.MAIN, LocoCV.of(17, 2), write=False) == build_pom_read(17, 2)

    def test_main_write(self):
        """Test POM write frame."""
        assert build_cv_request("pom", LocoCV.of(3, 29, 6), write=True) == build_pom_write(3, 29, 6)

    def test_prog_ignores_address(self):
        """Test that the programming track is unaddressed."""
        assert build_cv_request(Mode.PROG, LocoCV.of(3, 1), write=False) == build_prog_read(1)
        assert build_cv_request("prog", LocoCV.of(0, 1, 3), write=True) == build_prog_write(1, 3)

    def test_unknown_mode(self):
        """Test that unknown modes are rejected."""
        with pytest.raises(ValueError, match="Unsupported mode"):
            build_cv_request("service", LocoCV.of(3, 1), write=False)


class TestCVProgrammer:
    """Tests for CVProgrammer."""

    @pytest.fixture
    def mock_transport(self):
        return MockTransport()

    @pytest.fixture
    def programmer(self, mock_transport):
        return CVProgrammer(Session(mock_transport, timeout=0.1), retry_delay=0)

    @pytest.mark.asyncio
    async def test_read(self, programmer, mock_transport):
        """Test a successful POM read."""
        mock_transport.add_response(cv_result(2, 5))

        async with mock_transport:
            result = await programmer.read_cv(Mode.MAIN, LocoCV.of(17, 2))

        assert result.value == 5
        assert result.cv_number == 2
        mock_transport.assert_written(build_pom_read(17, 2))

    @pytest.mark.asyncio
    async def test_read_retries_until_exhausted(self, programmer, mock_transport):
        """Test that retries=2 means exactly three attempts."""
        async with mock_transport:
            with pytest.raises(TimeoutError):
                await programmer.read_cv(Mode.PROG, LocoCV.of(0, 1), RequestContext(retries=2))

        assert mock_transport.written_data == [build_prog_read(1)] * 3

    @pytest.mark.asyncio
    async def test_read_succeeds_after_retry(self, programmer, mock_transport):
        """Test a read answered on the second attempt."""
        mock_transport.add_responses(TimeoutError("lost"), cv_result(1, 3))

        async with mock_transport:
            result = await programmer.read_cv(Mode.PROG, LocoCV.of(0, 1))

        assert result.value == 3
        mock_transport.assert_write_count(2)

    @pytest.mark.asyncio
    async def test_read_retries_transport_errors(self, programmer, mock_transport):
        """Test that transport errors are retried and the last one is raised."""
        mock_transport.add_responses(TimeoutError("lost"), TransportError("refused"))

        async with mock_transport:
            with pytest.raises(TransportError, match="refused"):
                await programmer.read_cv(Mode.PROG, LocoCV.of(0, 1), RequestContext(retries=1))

        mock_transport.assert_write_count(2)

    @pytest.mark.asyncio
    async def test_read_without_retries(self, programmer, mock_transport):
        """Test retries=0 sends once."""
        async with mock_transport:
            with pytest.raises(TimeoutError):
                await programmer.read_cv(Mode.PROG, LocoCV.of(0, 1), RequestContext(retries=0))

        mock_transport.assert_write_count(1)

    @pytest.mark.asyncio
    async def test_nack_not_retried(self, programmer, mock_transport):
        """Test that a NACK ends the read at once."""
        mock_transport.add_response(NACK)

        async with mock_transport:
            with pytest.raises(NoAcknowledgeError) as exc_info:
                await programmer.read_cv(Mode.MAIN, LocoCV.of(3, 1))

        mock_transport.assert_write_count(1)
        assert "LAN_X_CV_NACK" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_late_nack_not_taken_for_next_read(self, programmer, mock_transport):
        """Test that a NACK arriving after a timed-out read is not the next read's answer."""
        async with mock_transport:
            with pytest.raises(TimeoutError):
                await programmer.read_cv(Mode.MAIN, LocoCV.of(3, 1), RequestContext(retries=0))

            mock_transport.add_received(NACK)
            mock_transport.add_response(cv_result(2, 5))
            result = await programmer.read_cv(Mode.MAIN, LocoCV.of(3, 2))

        assert result.value == 5
        assert result.cv_number == 2

    @pytest.mark.asyncio
    async def test_short_circuit(self, programmer, mock_transport):
        """Test LAN_X_CV_NACK_SC."""
        mock_transport.add_response(NACK_SC)

        async with mock_transport:
            with pytest.raises(ShortCircuitError):
                await programmer.read_cv(Mode.PROG, LocoCV.of(0, 1))

    @pytest.mark.asyncio
    async def test_read_ignores_other_cv(self, programmer, mock_transport):
        """Test that a result for another CV is not accepted."""
        mock_transport.add_responses(cv_result(9, 1), cv_result(2, 5))

        async with mock_transport:
            result = await programmer.read_cv(Mode.MAIN, LocoCV.of(17, 2))

        assert result.value == 5
        mock_transport.assert_write_count(1)

    @pytest.mark.asyncio
    async def test_read_invalid_cv_sends_nothing(self, programmer, mock_transport):
        """Test that invalid requests fail before I/O."""
        async with mock_transport:
            with pytest.raises(ValueError):
                await programmer.read_cv(Mode.MAIN, LocoCV.of(3, 2000))

        assert mock_transport.written_data == []

    @pytest.mark.asyncio
    async def test_write(self, programmer, mock_transport):
        """Test an unverified write sends one frame and waits for nothing."""
        async with mock_transport:
            await programmer.write_cv(Mode.MAIN, LocoCV.of(3, 29, 6))

        assert mock_transport.written_data == [build_pom_write(3, 29, 6)]
        assert mock_transport.receive_count == 0

    @pytest.mark.asyncio
    async def test_write_verify_success(self, programmer, mock_transport):
        """Test a verified write whose read-back matches."""
        mock_transport.add_response(cv_result(29, 6))

        async with mock_transport:
            await programmer.write_cv(
                Mode.PROG, LocoCV.of(0, 29, 6), RequestContext(verify=True, settle=0)
            )

        assert mock_transport.written_data == [build_prog_write(29, 6), build_prog_read(29)]

    @pytest.mark.asyncio
    async def test_write_verify_mismatch(self, programmer, mock_transport):
        """Test a verified write whose read-back differs."""
        mock_transport.add_response(cv_result(29, 2))

        async with mock_transport:
            with pytest.raises(VerifyError) as exc_info:
                await programmer.write_cv(
                    Mode.MAIN, LocoCV.of(3, 29, 6), RequestContext(verify=True, settle=0)
                )

        assert exc_info.value.expected == 6
        assert exc_info.value.actual == 2
        assert exc_info.value.cv_number == 29

    @pytest.mark.asyncio
    async def test_write_verify_nack(self, programmer, mock_transport):
        """Test that a NACK during verification is raised."""
        mock_transport.add_response(NACK)

        async with mock_transport:
            with pytest.raises(NoAcknowledgeError):
                await programmer.write_cv(
                    Mode.PROG, LocoCV.of(0, 1, 3), RequestContext(verify=True, settle=0)
                )
