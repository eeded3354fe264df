"""Tests for CommandStation."""

import pytest

from z21connect import CommandStation, StationState
from z21connect.exceptions import (
    ConnectionError,
    NoAcknowledgeError,
    TimeoutError,
    TransportError,
)
from z21connect.models import LocoCV, RequestContext
from z21connect.protocol.constants import Mode, SpeedSteps
from z21connect.protocol.frames import (
    build_frame,
    build_get_loco_info,
    build_pom_read,
    build_prog_read,
    build_prog_write,
    build_set_loco_drive,
    build_set_loco_function,
    build_track_power_on,
)
from z21connect.transport.mock import MockTransport

NACK = build_frame(bytes([0x61, 0x13]))


def loco_info(address: int, db2: int = 0x04, speed: int = 0x00, *functions: int) -> bytes:
    msb = (address >> 8) & 0x3F
    if address >= 128:
        msb |= 0xC0
    return build_frame(bytes([0xEF, msb, address & 0xFF, db2, speed, *functions]))


class TestCommandStation:
    """Tests for CommandStation lifecycle."""

    @pytest.fixture
    def mock_transport(self):
        """Create a MockTransport instance."""
        return MockTransport()

    @pytest.fixture
    def station(self, mock_transport):
        """Create a CommandStation with mock transport."""
        return CommandStation(mock_transport, timeout=0.1, retry_delay=0)

    def test_initial_state(self, station):
        """Test station starts unopened."""
        assert station.state == StationState.NEW
        assert station.power_cut is False
        assert station.timeout == 0.1

    @pytest.mark.asyncio
    async def test_open(self, station, mock_transport):
        """Test opening the transport."""
        await station.open()
        assert station.state == StationState.OPEN
        assert mock_transport.is_open

    @pytest.mark.asyncio
    async def test_open_with_open_transport(self, station, mock_transport):
        """Test that an already open transport is reused."""
        await mock_transport.open()
        await station.open()
        assert station.state == StationState.OPEN

    @pytest.mark.asyncio
    async def test_operations_before_open(self, station, mock_transport):
        """Test that operations need an open station."""
        with pytest.raises(ConnectionError) as exc_info:
            await station.read_cv(Mode.MAIN, LocoCV.of(3, 1))
        assert "NEW" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_context_manager(self, mock_transport):
        """Test async context manager protocol."""
        async with CommandStation(mock_transport) as station:
            assert station.state == StationState.OPEN

        assert station.state == StationState.CLOSED
        assert not mock_transport.is_open
        assert mock_transport.written_data == []

    @pytest.mark.asyncio
    async def test_clean_up_idempotent(self, station, mock_transport):
        """Test repeated clean-up."""
        await station.open()
        await station.clean_up()
        await station.clean_up()
        assert station.state == StationState.CLOSED

    @pytest.mark.asyncio
    async def test_closed_station_unusable(self, station):
        """Test that a cleaned-up station rejects operations and reopening."""
        await station.open()
        await station.clean_up()

        with pytest.raises(ConnectionError):
            await station.send_fn(Mode.MAIN, 3, 0)
        with pytest.raises(ConnectionError):
            await station.open()

    @pytest.mark.asyncio
    async def test_transport_property(self, station, mock_transport):
        """Test transport property returns the transport."""
        assert station.transport is mock_transport
        assert station.session.transport is mock_transport

    @pytest.mark.asyncio
    async def test_repr(self, station):
        """Test string representation."""
        assert "NEW" in repr(station)
        await station.open()
        assert "OPEN" in repr(station)
        assert "mock://z21" in repr(station)


class TestCVOperations:
    """Tests for CV reads and writes through the station."""

    @pytest.fixture
    def mock_transport(self):
        return MockTransport()

    @pytest.fixture
    def station(self, mock_transport):
        return CommandStation(mock_transport, timeout=0.1, retry_delay=0)

    @pytest.mark.asyncio
    async def test_pom_read(self, station, mock_transport):
        """Test POM read of CV2 on locomotive 17."""
        mock_transport.add_response(build_frame(bytes([0x64, 0x14, 0x00, 0x01, 0x05])))

        async with station:
            assert await station.read_cv(Mode.MAIN, LocoCV.of(17, 2)) == 5

        sent = mock_transport.written_data[0]
        assert sent == build_pom_read(17, 2)
        assert sent[8] == 0xE4
        assert sent[9] == 0x01
        # POM never cuts track power
        assert mock_transport.written_data == [build_pom_read(17, 2)]

    @pytest.mark.asyncio
    async def test_read_retries(self, station, mock_transport):
        """Test the default three attempts on silence."""
        async with station:
            with pytest.raises(TimeoutError):
                await station.read_cv(Mode.MAIN, LocoCV.of(3, 1))

        assert mock_transport.written_data == [build_pom_read(3, 1)] * 3

    @pytest.mark.asyncio
    async def test_prog_nack_restores_power_once(self, station, mock_transport):
        """Test that a failed programming-track write still restores power once."""
        mock_transport.add_response(NACK)

        with pytest.raises(NoAcknowledgeError):
            async with station:
                await station.write_cv(
                    Mode.PROG, LocoCV.of(0, 1, 3), RequestContext(verify=True, settle=0)
                )

        assert mock_transport.written_data == [
            build_prog_write(1, 3),
            build_prog_read(1),
            build_track_power_on(),
        ]
        assert not mock_transport.is_open

    @pytest.mark.asyncio
    async def test_several_prog_operations_one_power_on(self, station, mock_transport):
        """Test that power is restored once however many operations ran."""
        mock_transport.add_responses(
            build_frame(bytes([0x64, 0x14, 0x00, 0x00, 0x03])),
            build_frame(bytes([0x64, 0x14, 0x00, 0x07, 0x91])),
        )

        async with station:
            assert await station.read_cv(Mode.PROG, LocoCV.of(0, 1)) == 3
            assert await station.read_cv(Mode.PROG, LocoCV.of(0, 8)) == 0x91
            await station.write_cv(Mode.PROG, LocoCV.of(0, 29, 6))
            assert station.power_cut is True

        assert mock_transport.written_data.count(build_track_power_on()) == 1
        assert mock_transport.last_written == build_track_power_on()

    @pytest.mark.asyncio
    async def test_clean_up_survives_power_on_failure(self, station, mock_transport):
        """Test that a failed power-on does not stop the transport closing."""
        async with station:
            await station.write_cv(Mode.PROG, LocoCV.of(0, 1, 3))
            mock_transport.set_send_error(TransportError("network down"))

        assert station.state == StationState.CLOSED
        assert not mock_transport.is_open

    @pytest.mark.asyncio
    async def test_invalid_mode(self, station, mock_transport):
        """Test unknown mode."""
        async with station:
            with pytest.raises(ValueError):
                await station.write_cv("direct", LocoCV.of(3, 1, 1))

        assert mock_transport.written_data == []


class TestFunctions:
    """Tests for decoder functions."""

    @pytest.fixture
    def mock_transport(self):
        return MockTransport()

    @pytest.fixture
    def station(self, mock_transport):
        return CommandStation(mock_transport, timeout=0.1, retry_delay=0)

    @pytest.mark.asyncio
    async def test_send_fn(self, station, mock_transport):
        """Test switching a function and the cached state."""
        async with station:
            await station.send_fn(Mode.MAIN, 3, 0, on=True)
            await station.send_fn(Mode.MAIN, 3, 29, on=True)
            await station.send_fn(Mode.MAIN, 3, 0, on=False)

            assert station.function_state(3).active() == [29]

        assert mock_transport.written_data[0] == build_set_loco_function(3, 0, True)
        assert mock_transport.receive_count == 0

    @pytest.mark.asyncio
    async def test_send_fn_requires_main(self, station, mock_transport):
        """Test that functions are only sent in POM mode."""
        async with station:
            with pytest.raises(ValueError):
                await station.send_fn(Mode.PROG, 3, 0)

        assert mock_transport.written_data == []

    @pytest.mark.asyncio
    async def test_send_fn_out_of_range(self, station, mock_transport):
        """Test that F32 is rejected before sending or caching."""
        async with station:
            with pytest.raises(ValueError):
                await station.send_fn(Mode.MAIN, 3, 32)
            assert 3 not in station._functions

        assert mock_transport.written_data == []

    @pytest.mark.asyncio
    async def test_list_functions(self, station, mock_transport):
        """Test listing with only F0 on."""
        mock_transport.add_response(loco_info(3, 0x04, 0x00, 0x10))

        async with station:
            assert await station.list_functions(3) == [0]
            assert station.function_state(3).active() == [0]

        assert mock_transport.written_data == [build_get_loco_info(3)]

    @pytest.mark.asyncio
    async def test_list_functions_replaces_cache(self, station, mock_transport):
        """Test that the command station's view wins over the cache."""
        mock_transport.add_response(loco_info(3, 0x04, 0x00, 0x00, 0x81, 0x00, 0x00, 0x05))

        async with station:
            await station.send_fn(Mode.MAIN, 3, 0, on=True)
            assert await station.list_functions(3) == [5, 12, 29, 31]
            assert station.function_state(3).active() == [5, 12, 29, 31]

    @pytest.mark.asyncio
    async def test_list_functions_skips_other_locos(self, station, mock_transport):
        """Test that loco info for another address is ignored."""
        mock_transport.add_responses(loco_info(4, 0x04, 0x00, 0x1F), loco_info(3, 0x04, 0x00, 0x00))

        async with station:
            assert await station.list_functions(3) == []

    @pytest.mark.asyncio
    async def test_list_functions_no_retry(self, station, mock_transport):
        """Test that a silent command station times out after one request."""
        async with station:
            with pytest.raises(TimeoutError):
                await station.list_functions(3)

        mock_transport.assert_write_count(1)


class TestDriving:
    """Tests for speed and direction."""

    @pytest.fixture
    def mock_transport(self):
        return MockTransport()

    @pytest.fixture
    def station(self, mock_transport):
        return CommandStation(mock_transport, timeout=0.1, retry_delay=0)

    @pytest.mark.asyncio
    async def test_set_speed(self, station, mock_transport):
        """Test driving forward."""
        async with station:
            await station.set_speed(3, 50, forward=True)

        assert mock_transport.written_data == [build_set_loco_drive(3, 50, True)]

    @pytest.mark.asyncio
    async def test_set_speed_28_steps(self, station, mock_transport):
        """Test 28-step selector."""
        async with station:
            await station.set_speed(3, 28, forward=False, steps=28)

        assert mock_transport.last_written[5] == 0x12

    @pytest.mark.asyncio
    @pytest.mark.parametrize("speed,steps", [(16, 14), (29, 28), (128, 128), (-1, 128), (1, 64)])
    async def test_set_speed_invalid(self, station, mock_transport, speed, steps):
        """Test speed and step validation before sending."""
        async with station:
            with pytest.raises(ValueError):
                await station.set_speed(3, speed, forward=True, steps=steps)

        assert mock_transport.written_data == []

    @pytest.mark.asyncio
    async def test_get_speed(self, station, mock_transport):
        """Test reading speed and direction."""
        mock_transport.add_response(loco_info(1234, 0x02, 0x12, 0x00))

        async with station:
            speed = await station.get_speed(1234)

        assert speed.address == 1234
        assert speed.speed == 3
        assert speed.forward is False
        assert speed.steps == SpeedSteps.STEPS_28
        assert str(speed) == "Locomotive 1234: speed=3 direction=reverse"
        assert mock_transport.written_data == [build_get_loco_info(1234)]

    @pytest.mark.asyncio
    async def test_get_speed_ignores_unread_loco_info(self, station, mock_transport):
        """Test that a loco info left from an earlier request is not reused."""
        mock_transport.add_received(loco_info(3, 0x04, 0x80 | 90))
        mock_transport.add_response(loco_info(3, 0x04, 20))

        async with station:
            speed = await station.get_speed(3)

        assert speed.speed == 20
        assert speed.forward is False
