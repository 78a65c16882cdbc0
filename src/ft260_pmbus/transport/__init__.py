"""
FT260 Transport Layer

HID report channel abstraction and the hidapi implementation.
"""

from ft260_pmbus.transport.base import (
    ChannelInfo,
    ReportChannel,
    ReportSurface,
    TransportError,
)
from ft260_pmbus.transport.hid_channel import HidApiChannel

__all__ = [
    "ChannelInfo",
    "ReportChannel",
    "ReportSurface",
    "TransportError",
    "HidApiChannel",
]
