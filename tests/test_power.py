"""Tests for track power restoration."""

import pytest

from z21connect.exceptions import TransportError
from z21connect.power import TrackPowerGuard
from z21connect.protocol.constants import Mode
from z21connect.protocol.frames import build_track_power_on
from z21connect.session import Session
from z21connect.transport.mock import MockTransport


class TestTrackPowerGuard:
    """Tests for TrackPowerGuard."""

    @pytest.fixture
    def mock_transport(self):
        return MockTransport()

    @pytest.fixture
    def session(self, mock_transport):
        return Session(mock_transport, timeout=0.1)

    def test_initial(self):
        """Test that nothing needs restoring at first."""
        guard = TrackPowerGuard()
        assert guard.power_cut is False
        assert guard.needs_restore is False

    def test_main_track_does_not_mark(self):
        """Test that POM operations leave power alone."""
        guard = TrackPowerGuard()
        with guard.track(Mode.MAIN):
            pass
        assert guard.power_cut is False

    def test_prog_track_marks(self):
        """Test that programming-track operations mark the flag."""
        guard = TrackPowerGuard()
        with guard.track("prog"):
            pass
        assert guard.power_cut is True

    def test_marks_on_error(self):
        """Test that failed programming-track operations also mark the flag."""
        guard = TrackPowerGuard()
        with pytest.raises(RuntimeError):
            with guard.track(Mode.PROG):
                raise RuntimeError("no answer")
        assert guard.needs_restore is True

    @pytest.mark.asyncio
    async def test_restore_sends_once(self, session, mock_transport):
        """Test that power-on is sent exactly once."""
        guard = TrackPowerGuard()
        guard.mark()

        async with mock_transport:
            assert await guard.restore(session) is True
            assert await guard.restore(session) is False

        assert mock_transport.written_data == [build_track_power_on()]
        assert guard.needs_restore is False

    @pytest.mark.asyncio
    async def test_restore_not_needed(self, session, mock_transport):
        """Test that nothing is sent when the programming track was unused."""
        async with mock_transport:
            assert await TrackPowerGuard().restore(session) is False

        assert mock_transport.written_data == []

    @pytest.mark.asyncio
    async def test_restore_failure_swallowed(self, session, mock_transport):
        """Test that a failed power-on is logged, not raised, and not retried."""
        guard = TrackPowerGuard()
        guard.mark()
        mock_transport.set_send_error(TransportError("network down"))

        async with mock_transport:
            assert await guard.restore(session) is False
            mock_transport.set_send_error(None)
            assert await guard.restore(session) is False

        assert mock_transport.written_data == []
