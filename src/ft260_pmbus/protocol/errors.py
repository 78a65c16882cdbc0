"""
Bridge Error Taxonomy

Every failure raised by the session, PMBus and scanner layers derives
from BridgeError. Channel-level failures use TransportError instead.
"""

from dataclasses import dataclass

from ft260_pmbus.protocol.status import BusStatus


@dataclass
class BridgeError(Exception):
    """Base class for bridge protocol errors."""

    message: str
    code: str = "BRIDGE_ERROR"
    recoverable: bool = True

    def __str__(self) -> str:
        return f"{self.__class__.__name__}[{self.code}]: {self.message}"


@dataclass
class NotConnectedError(BridgeError):
    """Operation attempted without an active session."""

    message: str = "Not connected to a bridge"
    code: str = "NOT_CONNECTED"


@dataclass
class BridgeConnectionError(BridgeError):
    """Connection could not be established or was torn down."""

    code: str = "CONNECTION_FAILED"


@dataclass
class NoI2cInterfaceError(BridgeConnectionError):
    """No candidate channel exposes the I2C report surface."""

    message: str = (
        "Could not open a bridge interface that supports I2C reports"
    )
    code: str = "NO_I2C_INTERFACE"


@dataclass
class RangeError(BridgeError):
    """Address, length or clock outside protocol bounds."""

    code: str = "OUT_OF_RANGE"
    recoverable: bool = False


@dataclass
class ConflictError(BridgeError):
    """A read is already in flight."""

    message: str = "Another read is already pending"
    code: str = "READ_PENDING"


@dataclass
class ReadTimeoutError(BridgeError):
    """Not enough input report data arrived before the deadline."""

    message: str = "Read timeout waiting for input report(s)"
    code: str = "READ_TIMEOUT"


@dataclass
class BusError(BridgeError):
    """Bus status reported a NACK or controller error."""

    code: str = "BUS_ERROR"
    status: BusStatus | None = None
