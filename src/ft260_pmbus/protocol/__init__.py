"""
FT260 Protocol Layer

Report encoding/decoding, bus status decoding, the pending-read state
machine and the bridge error taxonomy.
"""

from ft260_pmbus.protocol.constants import ReportId, SystemSetting, TransactionFlag
from ft260_pmbus.protocol.errors import (
    BridgeError,
    BridgeConnectionError,
    BusError,
    ConflictError,
    NoI2cInterfaceError,
    NotConnectedError,
    RangeError,
    ReadTimeoutError,
)
from ft260_pmbus.protocol.pending import PendingReadTracker, ReadState
from ft260_pmbus.protocol.status import BusStatus, decode_status

__all__ = [
    "ReportId",
    "SystemSetting",
    "TransactionFlag",
    "BridgeError",
    "BridgeConnectionError",
    "BusError",
    "ConflictError",
    "NoI2cInterfaceError",
    "NotConnectedError",
    "RangeError",
    "ReadTimeoutError",
    "PendingReadTracker",
    "ReadState",
    "BusStatus",
    "decode_status",
]
