"""
HIDAPI Report Channel

Real bridge access through the hidapi library (cython-hidapi).

Requirements:
- hidapi Python package (``pip install hidapi``)
- Read/write permission on the FT260 hidraw node (udev rule on Linux)

hidapi reads are blocking, so input reports are pulled on a daemon
thread and handed to the event loop with ``call_soon_threadsafe``.
"""

import asyncio
import threading
from typing import Any

from ft260_pmbus.core.app_logging import get_logger
from ft260_pmbus.transport.base import (
    ChannelInfo,
    InputReportListener,
    ReportChannel,
    TransportError,
)

logger = get_logger(__name__)

# FT260 interrupt reports are 64 bytes including the report id
MAX_REPORT_SIZE = 64
READ_POLL_MS = 50


def _import_hid() -> Any:
    try:
        import hid
    except ImportError:
        logger.error("hidapi not installed. Install with: pip install hidapi")
        raise TransportError(
            message="hidapi library not installed",
            code="MISSING_DEPENDENCY",
            recoverable=False,
        )
    return hid


class HidApiChannel(ReportChannel):
    """
    Report channel on one hidraw interface.

    Input reports are dispatched on the event loop passed in, or the one
    running when ``open()`` is called. Opening without a loop fails.
    """

    def __init__(
        self,
        info: ChannelInfo,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._info = info
        self._loop = loop
        self._device: Any = None
        self._is_open = False
        self._listeners: list[InputReportListener] = []
        self._reader: threading.Thread | None = None
        self._stop = threading.Event()

    @property
    def info(self) -> ChannelInfo:
        return self._info

    def open(self) -> None:
        """Open the hidraw interface and start the input reader."""
        hid = _import_hid()

        if self._is_open:
            logger.warning("HID channel already open, closing first")
            self.close()

        if self._loop is None:
            try:
                self._loop = asyncio.get_running_loop()
            except RuntimeError:
                raise TransportError(
                    message="HID channel must be opened from a running event loop",
                    code="NO_EVENT_LOOP",
                    recoverable=False,
                )

        try:
            device = hid.device()
            device.open_path(_path_bytes(self._info.path))
        except (OSError, IOError, ValueError) as e:
            logger.error(f"Failed to open HID device {self._info.path}: {e}")
            raise TransportError(
                message=f"Failed to open HID device {self._info.path}: {e}",
                code="HID_OPEN_FAILED",
                recoverable=True,
            )

        self._device = device
        self._is_open = True
        self._stop.clear()
        self._reader = threading.Thread(
            target=self._read_loop,
            name=f"hid-reader-{self._info.path}",
            daemon=True,
        )
        self._reader.start()
        logger.info(f"HID channel opened: {self._info}")

    def close(self) -> None:
        """Stop the reader and close the device."""
        self._stop.set()
        if self._reader is not None and self._reader is not threading.current_thread():
            self._reader.join(timeout=1.0)
        self._reader = None

        if self._device is not None:
            try:
                self._device.close()
                logger.info(f"HID channel closed: {self._info.path}")
            except (OSError, IOError, ValueError) as e:
                logger.warning(f"Error closing HID device: {e}")
            finally:
                self._device = None

        self._is_open = False

    def is_open(self) -> bool:
        return self._is_open and self._device is not None

    def send_output_report(self, report_id: int, data: bytes) -> None:
        self._require_open()
        report = bytes([report_id]) + bytes(data)
        try:
            written = self._device.write(report)
        except (OSError, IOError, ValueError) as e:
            raise TransportError(
                message=f"Output report 0x{report_id:02X} failed: {e}",
                code="HID_WRITE_FAILED",
            )
        if written is not None and written < 0:
            raise TransportError(
                message=f"Output report 0x{report_id:02X} rejected by device",
                code="HID_WRITE_FAILED",
            )

    def send_feature_report(self, report_id: int, data: bytes) -> None:
        self._require_open()
        report = bytes([report_id]) + bytes(data)
        try:
            written = self._device.send_feature_report(report)
        except (OSError, IOError, ValueError) as e:
            raise TransportError(
                message=f"Feature report 0x{report_id:02X} failed: {e}",
                code="HID_FEATURE_FAILED",
            )
        if written is not None and written < 0:
            raise TransportError(
                message=f"Feature report 0x{report_id:02X} rejected by device",
                code="HID_FEATURE_FAILED",
            )

    def get_feature_report(self, report_id: int, length: int) -> bytes:
        self._require_open()
        try:
            data = self._device.get_feature_report(report_id, length)
        except (OSError, IOError, ValueError) as e:
            raise TransportError(
                message=f"Get feature report 0x{report_id:02X} failed: {e}",
                code="HID_FEATURE_FAILED",
            )
        return bytes(data)

    def add_input_listener(self, listener: InputReportListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_input_listener(self, listener: InputReportListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def get_info(self) -> dict[str, Any]:
        return {
            "type": "hidapi",
            "path": self._info.path,
            "interface": self._info.interface_number,
            "is_open": self.is_open(),
        }

    def _require_open(self) -> None:
        if not self.is_open():
            raise TransportError(
                message="HID channel is not open",
                code="NOT_OPEN",
            )

    def _read_loop(self) -> None:
        """Pull input reports until close() is requested."""
        while not self._stop.is_set():
            device = self._device
            if device is None:
                break
            try:
                data = device.read(MAX_REPORT_SIZE, READ_POLL_MS)
            except (OSError, IOError, ValueError) as e:
                if not self._stop.is_set():
                    logger.error(f"HID read failed, stopping reader: {e}")
                break

            if not data:
                continue

            report_id, payload = data[0], bytes(data[1:])
            try:
                self._loop.call_soon_threadsafe(self._dispatch, report_id, payload)
            except RuntimeError:
                # Event loop already closed
                break

    def _dispatch(self, report_id: int, payload: bytes) -> None:
        for listener in list(self._listeners):
            try:
                listener(report_id, payload)
            except Exception as e:
                logger.error(f"Input report listener error: {e}")


def _path_bytes(path: str) -> bytes:
    return path.encode("utf-8") if isinstance(path, str) else path
