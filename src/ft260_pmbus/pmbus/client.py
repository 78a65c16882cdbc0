"""
PMBus Client

SMBus "read word" transactions over a bridge session. Values are
returned raw; LINEAR/DIRECT decoding is up to the caller.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum

from ft260_pmbus.core.app_logging import get_logger, log_bus_transaction
from ft260_pmbus.core.session import BridgeSession
from ft260_pmbus.protocol.codec import check_address
from ft260_pmbus.protocol.constants import TransactionFlag
from ft260_pmbus.protocol.errors import BusError, RangeError
from ft260_pmbus.protocol.status import BusStatus

logger = get_logger(__name__)


class PMBusCommand(IntEnum):
    """PMBus command codes (PMBus Part II, subset)."""

    PAGE = 0x00
    OPERATION = 0x01
    CLEAR_FAULTS = 0x03
    VOUT_MODE = 0x20
    VOUT_COMMAND = 0x21
    STATUS_BYTE = 0x78
    STATUS_WORD = 0x79
    STATUS_VOUT = 0x7A
    STATUS_IOUT = 0x7B
    STATUS_INPUT = 0x7C
    STATUS_TEMPERATURE = 0x7D
    READ_VIN = 0x88
    READ_IIN = 0x89
    READ_VOUT = 0x8B
    READ_IOUT = 0x8C
    READ_TEMPERATURE_1 = 0x8D
    READ_TEMPERATURE_2 = 0x8E
    READ_POUT = 0x96
    READ_PIN = 0x97
    PMBUS_REVISION = 0x98


@dataclass
class WordReading:
    """Result of a read-word transaction."""

    address: int
    command: int
    raw: bytes
    value: int
    status: BusStatus | None = None
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def bus_fault(self) -> bool:
        """True if the post-transaction status reported a NACK or error."""
        return self.status is not None and (
            self.status.address_nack or self.status.data_nack or self.status.error
        )

    def __str__(self) -> str:
        return (
            f"0x{self.address:02X} cmd=0x{self.command:02X} "
            f"raw=[{self.raw.hex(' ').upper()}] word=0x{self.value:04X} ({self.value})"
        )


class PMBusClient:
    """
    PMBus transactions on a BridgeSession.

    By default a NACK seen in the status after a transaction is logged
    and reported on the reading. With ``strict`` it raises BusError.
    """

    def __init__(self, session: BridgeSession, strict: bool | None = None) -> None:
        """
        Initialize PMBus client.

        Args:
            session: Connected bridge session
            strict: Raise BusError on NACK (default from config)
        """
        self._session = session
        self._strict = (
            session.config.bridge.strict_bus_errors if strict is None else strict
        )

    @property
    def strict(self) -> bool:
        return self._strict

    async def read_word(self, address: int, command: int) -> WordReading:
        """
        SMBus read word: command byte with no stop, then a 2-byte
        repeated-start read.

        Args:
            address: 7-bit device address
            command: PMBus command code

        Returns:
            WordReading with the little-endian value and bus status

        Raises:
            RangeError: Address above 0x7F or command above 0xFF
        """
        check_address(address)
        if not 0 <= command <= 0xFF:
            raise RangeError(f"PMBus command must be 0x00-0xFF, got 0x{command:X}")

        await self._session.write(address, bytes([command]), TransactionFlag.START)
        raw = await self._session.read(address, 2, TransactionFlag.START_STOP_REPEATED)
        status = await self._session.read_status()

        value = raw[0] | (raw[1] << 8)
        reading = WordReading(
            address=address,
            command=command,
            raw=bytes(raw),
            value=value,
            status=status,
        )

        if reading.bus_fault:
            message = (
                f"NACK/error after read word 0x{command:02X} @0x{address:02X}: "
                f"{status.describe()}"
            )
            log_bus_transaction(
                "read_word",
                address=address,
                success=False,
                error=message,
                details={"command": command, "raw": reading.raw.hex()},
            )
            if self._strict:
                raise BusError(message, status=status)
            logger.warning(message)
        else:
            log_bus_transaction(
                "read_word",
                address=address,
                details={"command": command, "value": value},
            )

        return reading

    async def read_vout_raw(self, address: int) -> WordReading:
        """READ_VOUT, undecoded. Scale with VOUT_MODE for volts."""
        return await self.read_word(address, PMBusCommand.READ_VOUT)

    async def read_status_word(self, address: int) -> WordReading:
        """STATUS_WORD."""
        return await self.read_word(address, PMBusCommand.STATUS_WORD)

    async def read_vout_mode(self, address: int) -> WordReading:
        """VOUT_MODE as a word; the mode is the low byte."""
        return await self.read_word(address, PMBusCommand.VOUT_MODE)
