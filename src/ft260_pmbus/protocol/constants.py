"""
FT260 Protocol Constants

Report identifiers, feature sub-commands and I2C condition flags used
on the wire by the FT260 HID-class I2C bridge (FTDI AN_394).
"""

from enum import IntEnum, IntFlag

# USB identity
FT260_VID = 0x0403
FT260_PID = 0x6030


class ReportId(IntEnum):
    """HID report identifiers."""

    SYSTEM_SETTINGS = 0xA1  # Feature: carries SystemSetting sub-commands
    I2C_STATUS = 0xC0  # Feature: bus status query
    I2C_READ_REQUEST = 0xC2  # Output: addr, flag, len (LE16)
    I2C_REPORT_MIN = 0xD0  # Output/Input: first I2C data slot
    I2C_REPORT_MAX = 0xDE  # Output/Input: last I2C data slot


class SystemSetting(IntEnum):
    """Sub-commands sent through the SYSTEM_SETTINGS feature report."""

    SET_I2C_MODE = 0x02  # arg: enable flag
    SET_I2C_CLOCK_SPEED = 0x22  # arg: kHz, little-endian


class TransactionFlag(IntEnum):
    """I2C framing conditions accompanying a write or read."""

    NONE = 0x00
    START = 0x02
    START_STOP = 0x06
    START_STOP_REPEATED = 0x07


class BusStatusBit(IntFlag):
    """Bits of the I2C controller status byte."""

    BUSY = 0x01
    ERROR = 0x02
    ADDRESS_NACK = 0x04
    DATA_NACK = 0x08
    ARBITRATION_LOST = 0x10
    IDLE = 0x20
    BUS_BUSY = 0x40


# Bytes per I2C data report slot; report ids step by one per slot
REPORT_SLOT_SIZE = 4

# Single-report payload ceiling for writes and reads
MAX_WRITE_PAYLOAD = 60
MAX_READ_PAYLOAD = 60

# Supported I2C clock range (kHz)
MIN_CLOCK_KHZ = 60
MAX_CLOCK_KHZ = 3400

# 7-bit addressing
ADDRESS_MASK = 0x7F
SCAN_FIRST_ADDRESS = 0x03
SCAN_LAST_ADDRESS = 0x77

# Feature report sizes attempted in order; host HID stacks disagree on
# which one the bridge needs
FEATURE_REPORT_SIZES = (16, 64)

# Buffer length requested when reading the status feature report
STATUS_REPORT_LENGTH = 64

DEFAULT_READ_TIMEOUT_S = 1.5
