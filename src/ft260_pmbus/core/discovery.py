"""
Bridge Discovery

Enumerates FT260-class HID interfaces and ranks them for I2C use.
The FT260 exposes one HID interface per enabled function (I2C and/or
UART); only the one advertising the I2C report ids is usable here.
"""

import asyncio
from dataclasses import dataclass
from typing import Any

from ft260_pmbus.core.app_logging import get_logger
from ft260_pmbus.protocol.constants import FT260_PID, FT260_VID
from ft260_pmbus.transport.base import ChannelInfo, ReportSurface
from ft260_pmbus.transport.hid_channel import HidApiChannel

logger = get_logger(__name__)

# HID report descriptor item encoding (HID 1.11, section 6.2.2)
_LONG_ITEM_PREFIX = 0xFE
_SHORT_ITEM_SIZES = (0, 1, 2, 4)

_TYPE_MAIN = 0
_TYPE_GLOBAL = 1

_MAIN_INPUT = 0x8
_MAIN_OUTPUT = 0x9
_MAIN_FEATURE = 0xB

_GLOBAL_REPORT_ID = 0x8
_GLOBAL_PUSH = 0xA
_GLOBAL_POP = 0xB

MAX_DESCRIPTOR_SIZE = 4096


def parse_report_surface(descriptor: bytes) -> ReportSurface:
    """
    Collect the report ids declared by a HID report descriptor.

    Args:
        descriptor: Raw report descriptor bytes

    Returns:
        Input, output and feature report ids (unnumbered reports omitted)
    """
    surface = ReportSurface()
    report_id = 0
    stack: list[int] = []
    i = 0

    while i < len(descriptor):
        prefix = descriptor[i]

        if prefix == _LONG_ITEM_PREFIX:
            if i + 1 >= len(descriptor):
                break
            i += 3 + descriptor[i + 1]
            continue

        size = _SHORT_ITEM_SIZES[prefix & 0x03]
        item_type = (prefix >> 2) & 0x03
        tag = (prefix >> 4) & 0x0F
        value = int.from_bytes(descriptor[i + 1 : i + 1 + size], "little")
        i += 1 + size

        if item_type == _TYPE_GLOBAL:
            if tag == _GLOBAL_REPORT_ID:
                report_id = value
            elif tag == _GLOBAL_PUSH:
                stack.append(report_id)
            elif tag == _GLOBAL_POP and stack:
                report_id = stack.pop()

        elif item_type == _TYPE_MAIN and report_id:
            if tag == _MAIN_INPUT:
                surface.input_ids.add(report_id)
            elif tag == _MAIN_OUTPUT:
                surface.output_ids.add(report_id)
            elif tag == _MAIN_FEATURE:
                surface.feature_ids.add(report_id)

    return surface


@dataclass(frozen=True)
class BridgeModel:
    """Known bridge product."""

    name: str
    base_score: int


class HidDiscovery:
    """
    Discovers and ranks HID interfaces of supported I2C bridges.

    Prioritizes:
    1. Interfaces whose descriptor advertises the I2C report ids
    2. Interface 0 (the FT260 I2C function when both functions are on)
    3. The last interface that connected successfully
    """

    KNOWN_BRIDGES = {
        (FT260_VID, FT260_PID): BridgeModel("FTDI FT260", 100),
    }

    def __init__(
        self,
        vendor_id: int = FT260_VID,
        product_id: int = FT260_PID,
        last_known_path: str | None = None,
    ):
        """
        Initialize bridge discovery.

        Args:
            vendor_id: USB vendor id to enumerate
            product_id: USB product id to enumerate
            last_known_path: Previously successful hidraw path for bonus scoring
        """
        self.vendor_id = vendor_id
        self.product_id = product_id
        self.last_known_path = last_known_path
        self._cached: list[ChannelInfo] | None = None

    def discover_channels(self, force_rescan: bool = False) -> list[ChannelInfo]:
        """
        Enumerate candidate HID interfaces.

        Args:
            force_rescan: Force re-enumeration

        Returns:
            ChannelInfo list sorted by preference (best first)
        """
        if self._cached is not None and not force_rescan:
            return self._cached

        try:
            import hid
        except ImportError:
            logger.error("hidapi not installed")
            return []

        channels: list[ChannelInfo] = []

        for entry in hid.enumerate(self.vendor_id, self.product_id):
            try:
                channels.append(self._create_channel_info(entry))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Error processing HID entry {entry.get('path')}: {e}")

        channels.sort(key=lambda c: c.score, reverse=True)

        self._cached = channels
        logger.info(f"Discovered {len(channels)} bridge interface(s)")

        for channel in channels:
            logger.debug(f"  {channel}")

        return channels

    def _create_channel_info(self, entry: dict[str, Any]) -> ChannelInfo:
        """Create ChannelInfo from a hid.enumerate() entry."""
        raw_path = entry["path"]
        path = raw_path.decode("utf-8") if isinstance(raw_path, bytes) else str(raw_path)
        vid = entry.get("vendor_id", 0)
        pid = entry.get("product_id", 0)
        interface = entry.get("interface_number", -1)

        model = self.KNOWN_BRIDGES.get((vid, pid))
        score = model.base_score if model else 20

        surface = self._read_surface(raw_path)
        if surface is not None:
            score += 50 if surface.supports_i2c() else -100

        if interface == 0:
            score += 20

        if self.last_known_path and path == self.last_known_path:
            score += 30

        return ChannelInfo(
            path=path,
            vendor_id=vid,
            product_id=pid,
            interface_number=interface,
            serial_number=entry.get("serial_number") or None,
            manufacturer=entry.get("manufacturer_string") or None,
            product=entry.get("product_string") or (model.name if model else None),
            surface=surface,
            score=score,
        )

    def _read_surface(self, raw_path: bytes | str) -> ReportSurface | None:
        """Read and parse the report descriptor, if hidapi supports it."""
        import hid

        device = hid.device()
        path = raw_path.encode("utf-8") if isinstance(raw_path, str) else raw_path
        try:
            device.open_path(path)
        except (OSError, IOError, ValueError) as e:
            logger.debug(f"Cannot open {raw_path!r} for descriptor read: {e}")
            return None

        try:
            descriptor = device.get_report_descriptor(MAX_DESCRIPTOR_SIZE)
        except AttributeError:
            # hidapi < 0.14 has no descriptor access
            return None
        except (OSError, IOError, ValueError) as e:
            logger.debug(f"Report descriptor read failed for {raw_path!r}: {e}")
            return None
        finally:
            device.close()

        surface = parse_report_surface(bytes(descriptor))
        return None if surface.is_empty else surface

    def get_best_channel(self) -> ChannelInfo | None:
        """Get the highest-ranked interface."""
        channels = self.discover_channels()
        return channels[0] if channels else None

    def get_channel_by_path(self, path: str) -> ChannelInfo | None:
        """Find a specific interface by hidraw path."""
        for channel in self.discover_channels():
            if channel.path == path:
                return channel
        return None

    def create_channels(
        self,
        preferred_path: str | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> list[HidApiChannel]:
        """
        Build connect candidates in ranked order.

        Args:
            preferred_path: Restrict to this hidraw path when given
            loop: Event loop receiving input reports

        Returns:
            Unopened channels, best first
        """
        if preferred_path:
            info = self.get_channel_by_path(preferred_path)
            infos = [info] if info else []
        else:
            infos = self.discover_channels()
        return [HidApiChannel(info, loop=loop) for info in infos]

    def refresh(self) -> list[ChannelInfo]:
        """Force refresh of the interface list."""
        return self.discover_channels(force_rescan=True)
