"""
Tests for FT260 report encoding and decoding.
"""

import pytest

from ft260_pmbus.protocol.codec import (
    check_address,
    clock_speed_args,
    decode_inbound,
    encode_clock_speed,
    encode_feature,
    encode_i2c_mode,
    encode_read_request,
    encode_write,
    write_report_id,
)
from ft260_pmbus.protocol.constants import ReportId, TransactionFlag
from ft260_pmbus.protocol.errors import RangeError


class TestWriteReportId:
    """Tests for the data slot report id formula."""

    def test_slot_boundaries(self):
        """Test report ids at 4-byte slot boundaries."""
        assert write_report_id(1) == 0xD0
        assert write_report_id(4) == 0xD0
        assert write_report_id(5) == 0xD1
        assert write_report_id(8) == 0xD1
        assert write_report_id(9) == 0xD2
        assert write_report_id(60) == 0xDE

    def test_empty_payload_uses_first_slot(self):
        """Test zero-length writes stay inside the data slot range."""
        assert write_report_id(0) == ReportId.I2C_REPORT_MIN


class TestEncodeWrite:
    """Tests for I2C write encoding."""

    def test_layout_for_every_length(self):
        """Test header and length for all payload sizes."""
        for length in range(1, 61):
            data = bytes(range(length))
            report_id, payload = encode_write(0x40, TransactionFlag.START_STOP, data)

            assert len(payload) == 3 + length
            assert payload[2] == length
            assert payload[3:] == data
            assert report_id == 0xD0 + (length - 1) // 4

    def test_header_bytes(self):
        """Test address and flag bytes."""
        report_id, payload = encode_write(0x5A, TransactionFlag.START, b"\x8B")

        assert report_id == 0xD0
        assert payload == bytes([0x5A, 0x02, 0x01, 0x8B])

    def test_address_masked_to_seven_bits(self):
        """Test the address byte never carries bit 7."""
        _, payload = encode_write(0xDA, TransactionFlag.START_STOP, b"\x00")
        assert payload[0] == 0x5A

    def test_oversized_payload_rejected(self):
        """Test writes above 60 bytes are refused."""
        with pytest.raises(RangeError):
            encode_write(0x40, TransactionFlag.START_STOP, bytes(61))

    def test_empty_payload(self):
        """Test zero-length write encoding."""
        report_id, payload = encode_write(0x40, TransactionFlag.START_STOP, b"")
        assert report_id == 0xD0
        assert payload == bytes([0x40, 0x06, 0x00])


class TestEncodeReadRequest:
    """Tests for read request encoding."""

    def test_layout(self):
        """Test read request bytes."""
        report_id, payload = encode_read_request(
            0x5A, TransactionFlag.START_STOP_REPEATED, 2
        )

        assert report_id == ReportId.I2C_READ_REQUEST == 0xC2
        assert payload == bytes([0x5A, 0x07, 0x02, 0x00])

    def test_max_length(self):
        """Test the 60-byte ceiling is accepted."""
        _, payload = encode_read_request(0x50, TransactionFlag.START_STOP, 60)
        assert payload[2:] == bytes([60, 0])

    def test_out_of_range_length(self):
        """Test lengths outside 0-60 are refused."""
        with pytest.raises(RangeError):
            encode_read_request(0x50, TransactionFlag.START_STOP, 61)
        with pytest.raises(RangeError):
            encode_read_request(0x50, TransactionFlag.START_STOP, -1)


class TestDecodeInbound:
    """Tests for input report decoding."""

    def test_length_prefix(self):
        """Test the chunk follows the length prefix."""
        report = decode_inbound(0xD0, bytes([0x02, 0x34, 0x12, 0x00, 0x00]))

        assert report.chunk == b"\x34\x12"
        assert report.declared_length == 2
        assert report.is_i2c_data

    def test_prefix_longer_than_report(self):
        """Test a prefix beyond the available bytes is clamped."""
        report = decode_inbound(0xD1, bytes([0x08, 0x01, 0x02, 0x03]))
        assert report.chunk == b"\x01\x02\x03"

    def test_non_data_report(self):
        """Test other report ids are passed through but flagged."""
        report = decode_inbound(0xC0, bytes([0x01, 0x20]))
        assert not report.is_i2c_data
        assert report.report_id == 0xC0

    def test_empty_report(self):
        """Test an empty report decodes to an empty chunk."""
        report = decode_inbound(0xD0, b"")
        assert report.chunk == b""


class TestEncodeFeature:
    """Tests for feature report encoding."""

    def test_padding(self):
        """Test payload is zero-padded to the requested size."""
        for size in (16, 64):
            payload = encode_i2c_mode(True, size)
            assert len(payload) == size
            assert payload[:2] == b"\x02\x01"
            assert payload[2:] == bytes(size - 2)

    def test_clock_speed_little_endian(self):
        """Test 400 kHz is encoded little-endian after the sub-command."""
        payload = encode_clock_speed(400, 16)

        assert payload[0] == 0x22
        assert payload[1:3] == bytes([0x90, 0x01])

    def test_clock_range(self):
        """Test clock bounds."""
        assert clock_speed_args(60) == bytes([60, 0])
        assert clock_speed_args(3400) == bytes([0x48, 0x0D])
        with pytest.raises(RangeError):
            clock_speed_args(59)
        with pytest.raises(RangeError):
            clock_speed_args(3401)

    def test_body_too_large(self):
        """Test a body that does not fit the padded size."""
        with pytest.raises(RangeError):
            encode_feature(0x22, bytes(16), 16)


class TestCheckAddress:
    """Tests for 7-bit address validation."""

    def test_valid(self):
        assert check_address(0x00) == 0x00
        assert check_address(0x7F) == 0x7F

    def test_invalid(self):
        with pytest.raises(RangeError):
            check_address(0x80)
        with pytest.raises(RangeError):
            check_address(-1)
