"""
I2C Bus Scanner

Probes an address range with one-byte writes and reports which
addresses accepted them.

A probe counts as "present" when the write goes through without a
transport error. The write path does not expose per-byte ACK, so this
only detects devices on bridges that surface a NACK as a failed report.
``check_status`` additionally reads the bus status after each probe.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import Callable

from ft260_pmbus.core.app_logging import get_logger, log_bus_transaction
from ft260_pmbus.core.session import BridgeSession
from ft260_pmbus.protocol.constants import TransactionFlag
from ft260_pmbus.protocol.errors import NotConnectedError, RangeError
from ft260_pmbus.transport.base import TransportError

logger = get_logger(__name__)

PROBE_BYTE = b"\x00"


class ScanState(Enum):
    """Bus scan state."""

    IDLE = auto()
    SCANNING = auto()
    COMPLETE = auto()
    ABORTED = auto()


@dataclass
class ScanResult:
    """Complete scan result."""

    addresses: list[int] = field(default_factory=list)
    probed: int = 0
    start_time: datetime = field(default_factory=datetime.now)
    end_time: datetime | None = None
    aborted: bool = False

    def get_summary(self) -> str:
        """Get a human-readable summary."""
        duration = (
            (self.end_time - self.start_time).total_seconds()
            if self.end_time
            else 0
        )
        found = ", ".join(f"0x{a:02X}" for a in self.addresses) or "none"
        return (
            f"Probed {self.probed} addresses in {duration:.1f}s: "
            f"{len(self.addresses)} present ({found})"
        )


# Callback types
ScanProgressCallback = Callable[[int, int, int], None]  # current, total, address
ScanCompleteCallback = Callable[[ScanResult], None]


class BusScanner:
    """Sequential presence scan over a bridge session."""

    def __init__(
        self,
        session: BridgeSession,
        probe_delay: float | None = None,
        check_status: bool | None = None,
    ) -> None:
        """
        Initialize bus scanner.

        Args:
            session: Bridge session used for probes
            probe_delay: Seconds to wait before each probe (default from config)
            check_status: Treat an address NACK in the status as absent
        """
        scan_config = session.config.scan
        self._session = session
        self._probe_delay = scan_config.probe_delay if probe_delay is None else probe_delay
        self._check_status = (
            scan_config.check_status if check_status is None else check_status
        )
        self._state = ScanState.IDLE
        self._abort_requested = False
        self._progress_callbacks: list[ScanProgressCallback] = []
        self._complete_callbacks: list[ScanCompleteCallback] = []

    @property
    def state(self) -> ScanState:
        """Current scan state."""
        return self._state

    @property
    def is_scanning(self) -> bool:
        return self._state == ScanState.SCANNING

    def add_progress_callback(self, callback: ScanProgressCallback) -> None:
        """Add callback for scan progress updates."""
        self._progress_callbacks.append(callback)

    def add_complete_callback(self, callback: ScanCompleteCallback) -> None:
        """Add callback for scan completion."""
        self._complete_callbacks.append(callback)

    async def scan(
        self,
        first: int | None = None,
        last: int | None = None,
    ) -> ScanResult:
        """
        Probe ``first``..``last`` inclusive in ascending order.

        Args:
            first: Lowest address (default from config, 0x03)
            last: Highest address (default from config, 0x77)

        Returns:
            ScanResult with present addresses in ascending order

        Raises:
            NotConnectedError: If the session has no channel
        """
        if not self._session.is_connected:
            raise NotConnectedError()

        scan_config = self._session.config.scan
        first = scan_config.first_address if first is None else first
        last = scan_config.last_address if last is None else last
        if not 0 <= first <= last <= 0x7F:
            raise RangeError(f"Invalid scan range 0x{first:02X}-0x{last:02X}")

        self._state = ScanState.SCANNING
        self._abort_requested = False

        result = ScanResult()
        total = last - first + 1
        logger.info(f"Scanning I2C bus 0x{first:02X}-0x{last:02X}")

        finished = False
        try:
            for index, address in enumerate(range(first, last + 1)):
                if self._abort_requested:
                    result.aborted = True
                    break

                self._notify_progress(index, total, address)

                await asyncio.sleep(self._probe_delay)
                result.probed += 1
                if await self._probe(address):
                    logger.debug(f"Device present at 0x{address:02X}")
                    result.addresses.append(address)
            finished = True
        finally:
            result.end_time = datetime.now()
            if not finished:
                result.aborted = True
                logger.warning(f"Scan stopped at 0x{address:02X} after {result.probed} probes")
            self._state = ScanState.ABORTED if result.aborted else ScanState.COMPLETE

        log_bus_transaction(
            "bus_scan",
            details={
                "probed": result.probed,
                "present": [f"0x{a:02X}" for a in result.addresses],
                "aborted": result.aborted,
            },
        )
        logger.info(result.get_summary())

        self._notify_complete(result)
        return result

    async def scan_addresses(self) -> list[int]:
        """Scan the configured range and return present addresses."""
        result = await self.scan()
        return result.addresses

    def abort(self) -> None:
        """Request scan abort."""
        if self._state == ScanState.SCANNING:
            self._abort_requested = True
            logger.info("Scan abort requested")

    async def _probe(self, address: int) -> bool:
        try:
            await self._session.write(address, PROBE_BYTE, TransactionFlag.START_STOP)
            if self._check_status:
                status = await self._session.read_status()
                return not status.address_nack
        except TransportError as e:
            logger.debug(f"Probe 0x{address:02X} not acknowledged: {e}")
            return False
        return True

    def _notify_progress(self, current: int, total: int, address: int) -> None:
        """Notify progress callbacks."""
        for callback in self._progress_callbacks:
            try:
                callback(current, total, address)
            except Exception as e:
                logger.warning(f"Progress callback error: {e}")

    def _notify_complete(self, result: ScanResult) -> None:
        """Notify completion callbacks."""
        for callback in self._complete_callbacks:
            try:
                callback(result)
            except Exception as e:
                logger.warning(f"Complete callback error: {e}")
