"""
Tests for the hidapi report channel, with the hid module mocked.
"""

import asyncio
import sys
import time

import pytest
from unittest.mock import MagicMock, patch

from ft260_pmbus.transport.base import ChannelInfo, TransportError
from ft260_pmbus.transport.hid_channel import HidApiChannel


def make_device(reports=None) -> MagicMock:
    """Mock hid.device() whose read() yields ``reports`` then idles."""
    pending = list(reports or [])

    def read(size, timeout_ms):
        if pending:
            return pending.pop(0)
        time.sleep(timeout_ms / 1000.0)
        return []

    device = MagicMock()
    device.read.side_effect = read
    device.write.return_value = 8
    device.send_feature_report.return_value = 17
    return device


@pytest.fixture
def info() -> ChannelInfo:
    return ChannelInfo(path="/dev/hidraw0", vendor_id=0x0403, product_id=0x6030)


class TestHidApiChannel:
    """Tests for HidApiChannel."""

    @pytest.mark.asyncio
    async def test_open_and_write(self, info):
        """Test reports are written with the report id prepended."""
        device = make_device()
        mock_hid = MagicMock()
        mock_hid.device.return_value = device

        with patch.dict(sys.modules, {"hid": mock_hid}):
            channel = HidApiChannel(info)
            channel.open()
            try:
                assert channel.is_open()
                device.open_path.assert_called_once_with(b"/dev/hidraw0")

                channel.send_output_report(0xD0, bytes([0x50, 0x06, 0x01, 0x00]))
                device.write.assert_called_with(bytes([0xD0, 0x50, 0x06, 0x01, 0x00]))

                channel.send_feature_report(0xA1, b"\x02\x01")
                device.send_feature_report.assert_called_with(bytes([0xA1, 0x02, 0x01]))
            finally:
                channel.close()

        assert not channel.is_open()
        device.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_rejected_write(self, info):
        """Test a negative write count becomes a TransportError."""
        device = make_device()
        device.write.return_value = -1
        mock_hid = MagicMock()
        mock_hid.device.return_value = device

        with patch.dict(sys.modules, {"hid": mock_hid}):
            channel = HidApiChannel(info)
            channel.open()
            try:
                with pytest.raises(TransportError) as exc_info:
                    channel.send_output_report(0xD0, b"\x00")
                assert exc_info.value.code == "HID_WRITE_FAILED"
            finally:
                channel.close()

    @pytest.mark.asyncio
    async def test_open_failure(self, info):
        """Test an OSError from open_path becomes a TransportError."""
        device = make_device()
        device.open_path.side_effect = OSError("open failed")
        mock_hid = MagicMock()
        mock_hid.device.return_value = device

        with patch.dict(sys.modules, {"hid": mock_hid}):
            channel = HidApiChannel(info)
            with pytest.raises(TransportError) as exc_info:
                channel.open()

        assert exc_info.value.code == "HID_OPEN_FAILED"
        assert not channel.is_open()

    def test_open_requires_event_loop(self, info):
        """Test opening outside a running loop fails before touching the device."""
        device = make_device()
        mock_hid = MagicMock()
        mock_hid.device.return_value = device

        with patch.dict(sys.modules, {"hid": mock_hid}):
            channel = HidApiChannel(info)
            with pytest.raises(TransportError) as exc_info:
                channel.open()

        assert exc_info.value.code == "NO_EVENT_LOOP"
        device.open_path.assert_not_called()
        assert not channel.is_open()

    def test_send_when_closed(self, info):
        """Test sending on a closed channel fails."""
        channel = HidApiChannel(info)

        with pytest.raises(TransportError):
            channel.send_output_report(0xD0, b"\x00")

    @pytest.mark.asyncio
    async def test_input_reports_reach_loop(self, info):
        """Test reports read on the reader thread reach listeners on the loop."""
        device = make_device([[0xD0, 0x02, 0x34, 0x12]])
        mock_hid = MagicMock()
        mock_hid.device.return_value = device
        loop = asyncio.get_running_loop()
        received: asyncio.Future = loop.create_future()

        def listener(report_id, data):
            if not received.done():
                received.set_result((report_id, data))

        with patch.dict(sys.modules, {"hid": mock_hid}):
            channel = HidApiChannel(info)
            channel.add_input_listener(listener)
            channel.open()
            try:
                report_id, data = await asyncio.wait_for(received, timeout=2.0)
            finally:
                channel.close()

        assert report_id == 0xD0
        assert data == b"\x02\x34\x12"
