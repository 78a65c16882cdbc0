"""
FT260 Report Codec

Pure functions mapping I2C operations to HID report ids and payloads,
and decoding inbound I2C data reports. Report ids are passed separately
from the payload; payloads never include the id byte.
"""

from dataclasses import dataclass

from ft260_pmbus.protocol.constants import (
    ADDRESS_MASK,
    MAX_CLOCK_KHZ,
    MAX_READ_PAYLOAD,
    MAX_WRITE_PAYLOAD,
    MIN_CLOCK_KHZ,
    REPORT_SLOT_SIZE,
    ReportId,
    SystemSetting,
    TransactionFlag,
)
from ft260_pmbus.protocol.errors import RangeError


@dataclass(frozen=True)
class InboundReport:
    """Decoded input report."""

    report_id: int
    chunk: bytes
    declared_length: int
    is_i2c_data: bool

    def __str__(self) -> str:
        return (
            f"IN report=0x{self.report_id:02X} len={self.declared_length} "
            f"data={self.chunk.hex(' ').upper()}"
        )


def check_address(address: int) -> int:
    """Validate a 7-bit I2C address."""
    if not 0 <= address <= ADDRESS_MASK:
        raise RangeError(f"Invalid 7-bit address: 0x{address:X}")
    return address


def is_i2c_data_report(report_id: int) -> bool:
    """True for report ids in the I2C data slot range."""
    return ReportId.I2C_REPORT_MIN <= report_id <= ReportId.I2C_REPORT_MAX


def write_report_id(length: int) -> int:
    """
    Report id of the data slot that carries ``length`` payload bytes.

    Slots are 4 bytes wide: 1-4 bytes -> 0xD0, 5-8 -> 0xD1, ... 57-60 -> 0xDE.
    An empty payload uses the first slot.
    """
    return ReportId.I2C_REPORT_MIN + (max(length, 1) - 1) // REPORT_SLOT_SIZE


def encode_write(
    address: int, flag: TransactionFlag | int, data: bytes
) -> tuple[int, bytes]:
    """
    Encode an I2C write.

    Returns:
        (report_id, payload) where payload is [addr, flag, len, *data]
    """
    data = bytes(data)
    if len(data) > MAX_WRITE_PAYLOAD:
        raise RangeError(
            f"Write of {len(data)} bytes exceeds {MAX_WRITE_PAYLOAD}-byte report payload"
        )

    payload = bytes([address & ADDRESS_MASK, int(flag) & 0xFF, len(data)]) + data
    return write_report_id(len(data)), payload


def encode_read_request(
    address: int, flag: TransactionFlag | int, length: int
) -> tuple[int, bytes]:
    """
    Encode an I2C read request.

    Returns:
        (0xC2, [addr, flag, len_lo, len_hi])
    """
    if not 0 <= length <= MAX_READ_PAYLOAD:
        raise RangeError(f"Read length must be 0-{MAX_READ_PAYLOAD}, got {length}")

    payload = bytes(
        [
            address & ADDRESS_MASK,
            int(flag) & 0xFF,
            length & 0xFF,
            (length >> 8) & 0xFF,
        ]
    )
    return ReportId.I2C_READ_REQUEST, payload


def decode_inbound(report_id: int, raw: bytes) -> InboundReport:
    """
    Decode an input report.

    Byte 0 of an I2C data report is the payload length; the chunk is the
    following ``min(length, len(raw) - 1)`` bytes. Other report ids are
    decoded the same way but flagged as non-data.
    """
    raw = bytes(raw)
    if not raw:
        return InboundReport(report_id, b"", 0, is_i2c_data_report(report_id))

    declared = raw[0]
    chunk = raw[1 : 1 + min(declared, len(raw) - 1)]
    return InboundReport(report_id, chunk, declared, is_i2c_data_report(report_id))


def encode_feature(code: int, args: bytes, padded_length: int) -> bytes:
    """Zero-padded feature payload of ``padded_length`` with [code, *args] first."""
    body = bytes([code & 0xFF]) + bytes(args)
    if len(body) > padded_length:
        raise RangeError(
            f"Feature body of {len(body)} bytes does not fit {padded_length}-byte report"
        )
    return body + bytes(padded_length - len(body))


def clock_speed_args(khz: int) -> bytes:
    """Arguments of SET_I2C_CLOCK_SPEED: kHz as little-endian 16-bit."""
    if not MIN_CLOCK_KHZ <= khz <= MAX_CLOCK_KHZ:
        raise RangeError(
            f"Clock must be {MIN_CLOCK_KHZ}-{MAX_CLOCK_KHZ} kHz, got {khz}"
        )
    return bytes([khz & 0xFF, (khz >> 8) & 0xFF])


def encode_clock_speed(khz: int, padded_length: int) -> bytes:
    """Feature payload selecting the I2C clock."""
    return encode_feature(
        SystemSetting.SET_I2C_CLOCK_SPEED, clock_speed_args(khz), padded_length
    )


def encode_i2c_mode(enabled: bool, padded_length: int) -> bytes:
    """Feature payload enabling or disabling I2C mode."""
    return encode_feature(
        SystemSetting.SET_I2C_MODE, bytes([1 if enabled else 0]), padded_length
    )
