"""
Base Report Channel Interface

Defines the abstract HID report channel the bridge session drives.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable

from ft260_pmbus.protocol.constants import ReportId

# Called with (report_id, payload) for every input report
InputReportListener = Callable[[int, bytes], None]


@dataclass
class TransportError(Exception):
    """Transport-level error."""

    message: str
    code: str
    recoverable: bool = True

    def __str__(self) -> str:
        return f"TransportError[{self.code}]: {self.message}"


@dataclass
class ReportSurface:
    """Report ids a HID interface declares in its report descriptor."""

    input_ids: set[int] = field(default_factory=set)
    output_ids: set[int] = field(default_factory=set)
    feature_ids: set[int] = field(default_factory=set)

    @property
    def is_empty(self) -> bool:
        return not (self.input_ids or self.output_ids or self.feature_ids)

    def supports_i2c(self) -> bool:
        """True if any I2C-related report id is advertised."""
        return (
            ReportId.SYSTEM_SETTINGS in self.feature_ids
            or ReportId.I2C_READ_REQUEST in self.output_ids
            or any(
                ReportId.I2C_REPORT_MIN <= rid <= ReportId.I2C_REPORT_MAX
                for rid in self.output_ids
            )
        )


@dataclass
class ChannelInfo:
    """Identity of a HID interface."""

    path: str
    vendor_id: int
    product_id: int
    interface_number: int = -1
    serial_number: str | None = None
    manufacturer: str | None = None
    product: str | None = None
    surface: ReportSurface | None = None  # None when the descriptor is unknown
    score: int = 0

    def __str__(self) -> str:
        return (
            f"{self.product or 'HID device'} [{self.vendor_id:04X}:{self.product_id:04X}"
            f" if{self.interface_number}] {self.path} - Score: {self.score}"
        )


class ReportChannel(ABC):
    """
    Abstract base class for HID report channels.

    Implementations raise TransportError on any send/receive failure and
    deliver input reports to registered listeners on the event loop thread.
    """

    @property
    @abstractmethod
    def info(self) -> ChannelInfo:
        """Identity of the underlying interface."""
        pass

    @abstractmethod
    def open(self) -> None:
        """Open the channel."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Close the channel."""
        pass

    @abstractmethod
    def is_open(self) -> bool:
        """Check if the channel is open."""
        pass

    @abstractmethod
    def send_output_report(self, report_id: int, data: bytes) -> None:
        """
        Send an output report.

        Args:
            report_id: Numeric report id
            data: Payload, excluding the report id
        """
        pass

    @abstractmethod
    def send_feature_report(self, report_id: int, data: bytes) -> None:
        """
        Send a feature report.

        Args:
            report_id: Numeric report id
            data: Payload, excluding the report id
        """
        pass

    @abstractmethod
    def get_feature_report(self, report_id: int, length: int) -> bytes:
        """
        Read a feature report.

        Returns:
            Report bytes, starting with the report id
        """
        pass

    @abstractmethod
    def add_input_listener(self, listener: InputReportListener) -> None:
        """Register a callback for input reports."""
        pass

    @abstractmethod
    def remove_input_listener(self, listener: InputReportListener) -> None:
        """Unregister an input report callback."""
        pass

    def get_info(self) -> dict[str, Any]:
        """Get channel information (optional implementation)."""
        return {"type": self.__class__.__name__, "path": self.info.path}
