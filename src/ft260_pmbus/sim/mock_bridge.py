"""
Simulated FT260 Bridge

Provides a deterministic FT260 report surface with simulated I2C
targets for testing and demonstration. Input reports are delivered
on the running event loop, after the call that triggered them.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any

from ft260_pmbus.core.app_logging import get_logger
from ft260_pmbus.protocol.codec import is_i2c_data_report, write_report_id
from ft260_pmbus.protocol.constants import (
    FEATURE_REPORT_SIZES,
    FT260_PID,
    FT260_VID,
    MAX_READ_PAYLOAD,
    BusStatusBit,
    ReportId,
    SystemSetting,
    TransactionFlag,
)
from ft260_pmbus.transport.base import (
    ChannelInfo,
    InputReportListener,
    ReportChannel,
    ReportSurface,
    TransportError,
)

logger = get_logger(__name__)


def ft260_i2c_surface() -> ReportSurface:
    """Report ids of the FT260 I2C interface."""
    data_ids = set(range(ReportId.I2C_REPORT_MIN, ReportId.I2C_REPORT_MAX + 1))
    return ReportSurface(
        input_ids=set(data_ids),
        output_ids=data_ids | {ReportId.I2C_READ_REQUEST},
        feature_ids={ReportId.SYSTEM_SETTINGS, ReportId.I2C_STATUS},
    )


def ft260_uart_surface() -> ReportSurface:
    """Report ids of the FT260 UART interface (no I2C reports)."""
    uart_ids = set(range(0xF0, 0xFF))
    return ReportSurface(
        input_ids=set(uart_ids),
        output_ids=set(uart_ids),
        feature_ids={0xE1},
    )


class SimulatedI2CDevice:
    """Byte-oriented I2C target: writes are recorded, reads return a fixed pattern."""

    def __init__(self, address: int, read_data: bytes = b"") -> None:
        self.address = address
        self.read_data = bytes(read_data)
        self.writes: list[bytes] = []

    def handle_write(self, data: bytes) -> None:
        self.writes.append(bytes(data))

    def handle_read(self, length: int) -> bytes:
        data = self.read_data[:length]
        return data + b"\xFF" * (length - len(data))


class SimulatedPMBusDevice(SimulatedI2CDevice):
    """
    PMBus target holding 16-bit registers.

    A one-byte write selects the command; the following read returns
    that register little-endian.
    """

    def __init__(self, address: int, registers: dict[int, int] | None = None) -> None:
        super().__init__(address)
        self.registers: dict[int, int] = dict(registers or {})
        self._command: int | None = None

    def handle_write(self, data: bytes) -> None:
        super().handle_write(data)
        if data:
            self._command = data[0]

    def handle_read(self, length: int) -> bytes:
        if self._command is None or self._command not in self.registers:
            return b"\xFF" * length
        word = self.registers[self._command] & 0xFFFF
        data = word.to_bytes(2, "little")[:length]
        return data + b"\xFF" * (length - len(data))


def default_pmbus_devices() -> list[SimulatedI2CDevice]:
    """A small demo bus: two PMBus regulators and an EEPROM."""
    return [
        SimulatedPMBusDevice(
            0x40,
            {0x20: 0x0017, 0x79: 0x0000, 0x8B: 0x0C00, 0x88: 0xD300, 0x8D: 0xE230},
        ),
        SimulatedPMBusDevice(
            0x5A,
            {0x20: 0x0014, 0x79: 0x0840, 0x8B: 0x1234, 0x88: 0xD2F0},
        ),
        SimulatedI2CDevice(0x50, bytes(range(16))),
    ]


@dataclass
class BridgeLogEntry:
    """One report sent to the simulated bridge."""

    kind: str  # "output" or "feature"
    report_id: int
    data: bytes


@dataclass
class SimulationOptions:
    """Behavior knobs for the simulated bridge."""

    accepted_feature_sizes: set[int] = field(
        default_factory=lambda: set(FEATURE_REPORT_SIZES)
    )
    raise_on_nack: bool = True  # surface address NACK as a failed write
    fail_open: bool = False
    chunk_size: int = MAX_READ_PAYLOAD  # bytes per input report
    silent_reads: bool = False  # never answer read requests
    extra_bytes: int = 0  # pad input reports beyond the request


class SimulatedBridge(ReportChannel):
    """
    FT260 stand-in for tests and ``--simulate``.

    Keeps a log of every report it receives so tests can check the
    exact wire bytes.
    """

    def __init__(
        self,
        devices: list[SimulatedI2CDevice] | None = None,
        options: SimulationOptions | None = None,
        info: ChannelInfo | None = None,
    ) -> None:
        self.devices: dict[int, SimulatedI2CDevice] = {
            d.address: d for d in (default_pmbus_devices() if devices is None else devices)
        }
        self.options = options or SimulationOptions()
        self._info = info or ChannelInfo(
            path="sim://ft260/if0",
            vendor_id=FT260_VID,
            product_id=FT260_PID,
            interface_number=0,
            product="Simulated FT260",
            surface=ft260_i2c_surface(),
        )
        self._is_open = False
        self._listeners: list[InputReportListener] = []
        self.sent: list[BridgeLogEntry] = []
        self.i2c_enabled = False
        self.clock_khz = 100
        self.status = BusStatusBit.IDLE
        self.open_count = 0
        self.close_count = 0

    @property
    def info(self) -> ChannelInfo:
        return self._info

    def open(self) -> None:
        if self.options.fail_open:
            raise TransportError(message="Simulated open failure", code="HID_OPEN_FAILED")
        logger.info(f"[SIM] Opening {self._info.path}")
        self._is_open = True
        self.open_count += 1

    def close(self) -> None:
        logger.info(f"[SIM] Closing {self._info.path}")
        self._is_open = False
        self.close_count += 1

    def is_open(self) -> bool:
        return self._is_open

    def add_input_listener(self, listener: InputReportListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_input_listener(self, listener: InputReportListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def send_feature_report(self, report_id: int, data: bytes) -> None:
        self._require_open()
        data = bytes(data)
        self.sent.append(BridgeLogEntry("feature", report_id, data))

        if len(data) not in self.options.accepted_feature_sizes:
            raise TransportError(
                message=f"Feature report of {len(data)} bytes rejected",
                code="HID_FEATURE_FAILED",
            )
        if report_id != ReportId.SYSTEM_SETTINGS or not data:
            raise TransportError(
                message=f"Unsupported feature report 0x{report_id:02X}",
                code="HID_FEATURE_FAILED",
            )

        if data[0] == SystemSetting.SET_I2C_MODE:
            self.i2c_enabled = bool(data[1])
        elif data[0] == SystemSetting.SET_I2C_CLOCK_SPEED:
            self.clock_khz = data[1] | (data[2] << 8)
        logger.debug(f"[SIM] Feature 0x{data[0]:02X} ({len(data)} bytes)")

    def get_feature_report(self, report_id: int, length: int) -> bytes:
        self._require_open()
        if report_id != ReportId.I2C_STATUS:
            raise TransportError(
                message=f"Unsupported feature report 0x{report_id:02X}",
                code="HID_FEATURE_FAILED",
            )
        report = bytes(
            [
                ReportId.I2C_STATUS,
                int(self.status),
                self.clock_khz & 0xFF,
                (self.clock_khz >> 8) & 0xFF,
                0x00,
                0x00,
            ]
        )
        return report[:length]

    def send_output_report(self, report_id: int, data: bytes) -> None:
        self._require_open()
        data = bytes(data)
        self.sent.append(BridgeLogEntry("output", report_id, data))

        if not self.i2c_enabled:
            raise TransportError(message="I2C mode not enabled", code="I2C_DISABLED")

        if report_id == ReportId.I2C_READ_REQUEST:
            self._handle_read_request(data)
        elif is_i2c_data_report(report_id):
            self._handle_write(report_id, data)
        else:
            raise TransportError(
                message=f"Unsupported output report 0x{report_id:02X}",
                code="HID_WRITE_FAILED",
            )

    def output_reports(self) -> list[BridgeLogEntry]:
        return [entry for entry in self.sent if entry.kind == "output"]

    def feature_reports(self) -> list[BridgeLogEntry]:
        return [entry for entry in self.sent if entry.kind == "feature"]

    def deliver_input_report(self, report_id: int, data: bytes) -> None:
        """Push an input report to listeners on the next loop iteration."""
        loop = asyncio.get_running_loop()
        loop.call_soon(self._dispatch, report_id, bytes(data))

    def get_info(self) -> dict[str, Any]:
        return {
            "type": "simulated",
            "path": self._info.path,
            "is_open": self._is_open,
            "devices": [f"0x{a:02X}" for a in sorted(self.devices)],
            "sent": len(self.sent),
        }

    def _handle_write(self, report_id: int, data: bytes) -> None:
        address, flag, length = data[0], data[1], data[2]
        payload = data[3 : 3 + length]
        if report_id != write_report_id(length):
            raise TransportError(
                message=f"Report 0x{report_id:02X} does not match length {length}",
                code="HID_WRITE_FAILED",
            )

        device = self.devices.get(address)
        if device is None:
            self._nack(address)
            return

        device.handle_write(payload)
        self._complete(flag)

    def _handle_read_request(self, data: bytes) -> None:
        address, flag = data[0], data[1]
        length = data[2] | (data[3] << 8)

        device = self.devices.get(address)
        if device is None:
            # A real bridge answers a NACKed read with no data reports
            self.status = BusStatusBit.ERROR | BusStatusBit.ADDRESS_NACK | BusStatusBit.IDLE
            logger.debug(f"[SIM] Read NACK @0x{address:02X}")
            return

        payload = device.handle_read(length) + b"\xEE" * self.options.extra_bytes
        self._complete(flag)
        if self.options.silent_reads:
            return

        step = max(1, self.options.chunk_size)
        for offset in range(0, len(payload), step):
            chunk = payload[offset : offset + step]
            self.deliver_input_report(
                write_report_id(len(chunk)), bytes([len(chunk)]) + chunk
            )

    def _nack(self, address: int) -> None:
        self.status = BusStatusBit.ERROR | BusStatusBit.ADDRESS_NACK | BusStatusBit.IDLE
        logger.debug(f"[SIM] Write NACK @0x{address:02X}")
        if self.options.raise_on_nack:
            raise TransportError(
                message=f"Address 0x{address:02X} not acknowledged",
                code="I2C_NACK",
            )

    def _complete(self, flag: int) -> None:
        # Bus stays held after a START without STOP
        if flag == TransactionFlag.START:
            self.status = BusStatusBit.BUS_BUSY
        else:
            self.status = BusStatusBit.IDLE

    def _dispatch(self, report_id: int, payload: bytes) -> None:
        for listener in list(self._listeners):
            listener(report_id, payload)

    def _require_open(self) -> None:
        if not self._is_open:
            raise TransportError(message="Simulated bridge not open", code="NOT_OPEN")
