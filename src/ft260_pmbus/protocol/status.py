"""
I2C Bus Status Decoding

Turns the raw I2C_STATUS feature report into a BusStatus value.
"""

from dataclasses import dataclass

from ft260_pmbus.protocol.constants import BusStatusBit


@dataclass(frozen=True)
class BusStatus:
    """Decoded I2C controller status."""

    busy: bool
    error: bool
    address_nack: bool
    data_nack: bool
    arbitration_lost: bool
    idle: bool
    bus_busy: bool
    speed_khz: int
    raw_status: int = 0

    @property
    def has_fault(self) -> bool:
        """True if the last transfer ended in a NACK or controller error."""
        return self.error or self.address_nack or self.data_nack or self.arbitration_lost

    def describe(self) -> str:
        """Short human-readable flag summary for log lines."""
        names = [flag.name for flag in BusStatusBit if self.raw_status & flag]
        flags = "|".join(names) if names else "none"
        return f"status=0x{self.raw_status:02X} [{flags}] speed={self.speed_khz}kHz"


def _byte_at(raw: bytes, index: int) -> int:
    return raw[index] if len(raw) > index else 0


def decode_status(raw: bytes) -> BusStatus:
    """
    Decode an I2C_STATUS report.

    Byte 0 is the report id, byte 1 the status bitmask and bytes 2..3 the
    current clock in kHz (little-endian). Missing bytes read as zero, so
    this never raises on short input.
    """
    raw = bytes(raw or b"")
    status = _byte_at(raw, 1)
    speed = _byte_at(raw, 2) | (_byte_at(raw, 3) << 8)

    return BusStatus(
        busy=bool(status & BusStatusBit.BUSY),
        error=bool(status & BusStatusBit.ERROR),
        address_nack=bool(status & BusStatusBit.ADDRESS_NACK),
        data_nack=bool(status & BusStatusBit.DATA_NACK),
        arbitration_lost=bool(status & BusStatusBit.ARBITRATION_LOST),
        idle=bool(status & BusStatusBit.IDLE),
        bus_busy=bool(status & BusStatusBit.BUS_BUSY),
        speed_khz=speed,
        raw_status=status,
    )
