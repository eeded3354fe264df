"""Tests for the mock transports."""

import pytest

from z21connect.exceptions import TimeoutError, TransportError
from z21connect.transport.mock import MockTransport, ScriptedMockTransport


class TestMockTransport:
    """Tests for MockTransport."""

    @pytest.fixture
    def mock(self):
        return MockTransport()

    @pytest.mark.asyncio
    async def test_open_close(self, mock):
        """Test lifecycle."""
        assert not mock.is_open
        await mock.open()
        assert mock.is_open
        await mock.close()
        assert not mock.is_open

    @pytest.mark.asyncio
    async def test_open_twice_raises(self, mock):
        """Test that opening an open transport fails."""
        await mock.open()
        with pytest.raises(TransportError):
            await mock.open()

    @pytest.mark.asyncio
    async def test_send_records_data(self, mock):
        """Test that sent datagrams are recorded."""
        async with mock:
            await mock.send(b"\x01")
            await mock.send(b"\x02")

        assert mock.written_data == [b"\x01", b"\x02"]
        assert mock.last_written == b"\x02"
        mock.assert_written(b"\x01", index=0)
        mock.assert_write_count(2)

    @pytest.mark.asyncio
    async def test_send_when_closed(self, mock):
        """Test that sending on a closed transport fails."""
        with pytest.raises(TransportError):
            await mock.send(b"\x01")

    @pytest.mark.asyncio
    async def test_receive_fifo(self, mock):
        """Test that queued responses come back in order."""
        mock.add_responses(b"a", b"b")
        async with mock:
            assert await mock.receive() == b"a"
            assert await mock.receive() == b"b"
        assert mock.receive_count == 2

    @pytest.mark.asyncio
    async def test_receive_empty_times_out(self, mock):
        """Test that an empty queue raises TimeoutError."""
        async with mock:
            with pytest.raises(TimeoutError) as exc_info:
                await mock.receive(0.5)
        assert exc_info.value.timeout_seconds == 0.5

    @pytest.mark.asyncio
    async def test_receive_queued_exception(self, mock):
        """Test that queued exceptions are raised."""
        mock.add_response(TransportError("boom"))
        async with mock:
            with pytest.raises(TransportError, match="boom"):
                await mock.receive()

    @pytest.mark.asyncio
    async def test_response_callback(self, mock):
        """Test generated responses."""
        mock.set_response_callback(lambda data: [data + b"!", data + b"?"])
        async with mock:
            await mock.send(b"x")
            assert await mock.receive() == b"x!"
            assert await mock.receive() == b"x?"

    @pytest.mark.asyncio
    async def test_send_error(self, mock):
        """Test injected send failures."""
        mock.set_send_error(TransportError("unreachable"))
        async with mock:
            with pytest.raises(TransportError):
                await mock.send(b"x")
        assert mock.written_data == []

    def test_assert_written_mismatch(self, mock):
        """Test assertion helpers report mismatches."""
        with pytest.raises(AssertionError):
            mock.assert_written(b"x")
        with pytest.raises(AssertionError):
            mock.assert_write_count(1)

    @pytest.mark.asyncio
    async def test_clear(self, mock):
        """Test clearing history and queue."""
        mock.add_response(b"a")
        async with mock:
            await mock.send(b"x")
        mock.clear()
        assert mock.written_data == []
        mock.discard_buffers()

    @pytest.mark.asyncio
    async def test_discard_drops_only_arrived_datagrams(self, mock):
        """Test that discard_buffers keeps replies still to come."""
        mock.add_received(b"late", b"broadcast")
        mock.add_response(b"reply")

        async with mock:
            assert await mock.receive() == b"late"
            mock.discard_buffers()
            assert await mock.receive() == b"reply"
            with pytest.raises(TimeoutError):
                await mock.receive()


class TestScriptedMockTransport:
    """Tests for ScriptedMockTransport."""

    @pytest.mark.asyncio
    async def test_script(self):
        """Test request/response pairs."""
        mock = ScriptedMockTransport()
        mock.expect(b"reply", request=b"req")
        mock.expect(None)

        async with mock:
            await mock.send(b"req")
            assert await mock.receive() == b"reply"
            await mock.send(b"anything")
            with pytest.raises(TimeoutError):
                await mock.receive()

        assert mock.remaining_steps == 0

    @pytest.mark.asyncio
    async def test_script_mismatch(self):
        """Test that an unexpected request fails."""
        mock = ScriptedMockTransport()
        mock.expect(b"reply", request=b"req")

        async with mock:
            with pytest.raises(AssertionError):
                await mock.send(b"other")

    def test_reset_and_clear(self):
        """Test script bookkeeping."""
        mock = ScriptedMockTransport()
        mock.expect(b"reply")
        mock.reset_script()
        assert mock.remaining_steps == 1
        mock.clear_script()
        assert mock.remaining_steps == 0
