"""
Tests for bridge discovery and report descriptor parsing.
"""

import sys

import pytest
from unittest.mock import MagicMock, patch

from ft260_pmbus.core.discovery import HidDiscovery, parse_report_surface
from ft260_pmbus.transport.base import ChannelInfo, ReportSurface
from ft260_pmbus.transport.hid_channel import HidApiChannel

# Vendor page application collection with the FT260 I2C reports
I2C_DESCRIPTOR = bytes(
    [
        0x06, 0x00, 0xFF,  # Usage Page (vendor)
        0x09, 0x01,  # Usage
        0xA1, 0x01,  # Collection (Application)
        0x85, 0xA1,  # Report ID 0xA1
        0xB2, 0x02, 0x01,  # Feature
        0x85, 0xC0,  # Report ID 0xC0
        0xB1, 0x02,  # Feature
        0x85, 0xC2,  # Report ID 0xC2
        0x91, 0x02,  # Output
        0x85, 0xD0,  # Report ID 0xD0
        0x81, 0x02,  # Input
        0x91, 0x02,  # Output
        0xC0,  # End Collection
    ]
)

UART_DESCRIPTOR = bytes(
    [
        0x06, 0x00, 0xFF,
        0xA1, 0x01,
        0x85, 0xE1,
        0xB1, 0x02,
        0x85, 0xF0,
        0x81, 0x02,
        0x91, 0x02,
        0xC0,
    ]
)


def hid_entry(path: bytes, interface: int) -> dict:
    return {
        "path": path,
        "vendor_id": 0x0403,
        "product_id": 0x6030,
        "interface_number": interface,
        "serial_number": "",
        "manufacturer_string": "FTDI",
        "product_string": "FT260",
    }


class TestParseReportSurface:
    """Tests for parse_report_surface."""

    def test_i2c_interface(self):
        """Test the I2C report ids are collected by type."""
        surface = parse_report_surface(I2C_DESCRIPTOR)

        assert surface.feature_ids == {0xA1, 0xC0}
        assert surface.output_ids == {0xC2, 0xD0}
        assert surface.input_ids == {0xD0}
        assert surface.supports_i2c()

    def test_uart_interface(self):
        """Test a UART-only descriptor does not qualify."""
        surface = parse_report_surface(UART_DESCRIPTOR)

        assert surface.feature_ids == {0xE1}
        assert not surface.supports_i2c()

    def test_push_pop_restores_report_id(self):
        """Test Pop restores the report id saved by Push."""
        descriptor = bytes(
            [
                0x85, 0xD0,
                0xA4,  # Push
                0x85, 0xC0,
                0xB1, 0x02,  # Feature 0xC0
                0xB4,  # Pop
                0x81, 0x02,  # Input 0xD0
            ]
        )
        surface = parse_report_surface(descriptor)

        assert surface.feature_ids == {0xC0}
        assert surface.input_ids == {0xD0}

    def test_long_item_skipped(self):
        """Test long item data is not parsed as short items."""
        descriptor = bytes(
            [
                0x85, 0xD1,
                0xFE, 0x02, 0x10, 0x81, 0x02,  # Long item carrying input-like bytes
                0x91, 0x02,
            ]
        )
        surface = parse_report_surface(descriptor)

        assert surface.input_ids == set()
        assert surface.output_ids == {0xD1}

    def test_unnumbered_reports_ignored(self):
        """Test main items before any Report ID are not recorded."""
        surface = parse_report_surface(bytes([0x81, 0x02, 0x91, 0x02]))
        assert surface.is_empty

    def test_truncated_descriptor(self):
        """Test a truncated trailing item does not raise."""
        surface = parse_report_surface(bytes([0x85, 0xA1, 0xB2, 0x02]))
        assert surface.feature_ids == {0xA1}

        assert parse_report_surface(b"").is_empty


class TestHidDiscovery:
    """Tests for HidDiscovery."""

    def test_known_bridges(self):
        """Test the FT260 is a known bridge."""
        assert (0x0403, 0x6030) in HidDiscovery.KNOWN_BRIDGES

    def test_scoring(self):
        """Test I2C surface, interface 0 and last known path raise the score."""
        discovery = HidDiscovery(last_known_path="/dev/hidraw1")
        surfaces = {
            b"/dev/hidraw0": parse_report_surface(I2C_DESCRIPTOR),
            b"/dev/hidraw1": parse_report_surface(UART_DESCRIPTOR),
        }

        with patch.object(
            HidDiscovery, "_read_surface", side_effect=lambda path: surfaces.get(path)
        ):
            i2c = discovery._create_channel_info(hid_entry(b"/dev/hidraw0", 0))
            uart = discovery._create_channel_info(hid_entry(b"/dev/hidraw1", 1))
            unknown = discovery._create_channel_info(hid_entry(b"/dev/hidraw2", 1))

        assert i2c.path == "/dev/hidraw0"
        assert i2c.score == 100 + 50 + 20
        assert uart.score == 100 - 100 + 30
        assert unknown.score == 100
        assert unknown.surface is None
        assert i2c.product == "FT260"
        assert i2c.serial_number is None

    def test_discover_sorted(self):
        """Test discovered interfaces are sorted best first and cached."""
        mock_hid = MagicMock()
        mock_hid.enumerate.return_value = [
            hid_entry(b"/dev/hidraw1", 1),
            hid_entry(b"/dev/hidraw0", 0),
        ]
        surfaces = {
            b"/dev/hidraw0": parse_report_surface(I2C_DESCRIPTOR),
            b"/dev/hidraw1": parse_report_surface(UART_DESCRIPTOR),
        }

        with patch.dict(sys.modules, {"hid": mock_hid}), patch.object(
            HidDiscovery, "_read_surface", side_effect=lambda path: surfaces.get(path)
        ):
            discovery = HidDiscovery()
            channels = discovery.discover_channels()
            again = discovery.discover_channels()

        assert [c.path for c in channels] == ["/dev/hidraw0", "/dev/hidraw1"]
        assert again is channels
        mock_hid.enumerate.assert_called_once_with(0x0403, 0x6030)

    def test_discover_empty(self):
        """Test discovery with no devices."""
        mock_hid = MagicMock()
        mock_hid.enumerate.return_value = []

        with patch.dict(sys.modules, {"hid": mock_hid}):
            discovery = HidDiscovery()
            assert discovery.discover_channels() == []
            assert discovery.get_best_channel() is None

    def test_create_channels(self):
        """Test channels are built for the preferred path only."""
        discovery = HidDiscovery()
        discovery._cached = [
            ChannelInfo(path="/dev/hidraw0", vendor_id=0x0403, product_id=0x6030),
            ChannelInfo(path="/dev/hidraw1", vendor_id=0x0403, product_id=0x6030),
        ]

        all_channels = discovery.create_channels()
        preferred = discovery.create_channels("/dev/hidraw1")
        missing = discovery.create_channels("/dev/hidraw9")

        assert len(all_channels) == 2
        assert all(isinstance(c, HidApiChannel) for c in all_channels)
        assert [c.info.path for c in preferred] == ["/dev/hidraw1"]
        assert missing == []


class TestReportSurface:
    """Tests for ReportSurface qualification."""

    @pytest.mark.parametrize(
        "surface,expected",
        [
            (ReportSurface(feature_ids={0xA1}), True),
            (ReportSurface(output_ids={0xC2}), True),
            (ReportSurface(output_ids={0xDE}), True),
            (ReportSurface(input_ids={0xD0}), False),
            (ReportSurface(output_ids={0xDF}), False),
            (ReportSurface(), False),
        ],
    )
    def test_supports_i2c(self, surface, expected):
        assert surface.supports_i2c() is expected
