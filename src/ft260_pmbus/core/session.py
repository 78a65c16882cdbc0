"""
Bridge Session

Owns the open report channel and exposes the I2C primitives:
- Connection establishment across candidate interfaces
- I2C mode and clock configuration
- Write, read and bus status queries
- Teardown that never leaves a read waiting
"""

import asyncio
from enum import Enum, auto
from typing import Callable, Iterable

from ft260_pmbus.core.app_logging import get_logger, log_audit_event, log_hid_report
from ft260_pmbus.core.config import AppConfig
from ft260_pmbus.protocol.codec import (
    check_address,
    clock_speed_args,
    decode_inbound,
    encode_feature,
    encode_read_request,
    encode_write,
)
from ft260_pmbus.protocol.constants import (
    MAX_READ_PAYLOAD,
    MAX_WRITE_PAYLOAD,
    STATUS_REPORT_LENGTH,
    ReportId,
    SystemSetting,
    TransactionFlag,
)
from ft260_pmbus.protocol.errors import (
    BridgeConnectionError,
    BridgeError,
    ConflictError,
    NoI2cInterfaceError,
    NotConnectedError,
    RangeError,
)
from ft260_pmbus.protocol.pending import PendingReadTracker
from ft260_pmbus.protocol.status import BusStatus, decode_status
from ft260_pmbus.transport.base import ReportChannel, TransportError

logger = get_logger(__name__)


class ConnectionState(Enum):
    """Session state machine states."""

    DISCONNECTED = auto()
    CONNECTING = auto()
    CONNECTED = auto()
    ERROR = auto()


StateChangeCallback = Callable[[ConnectionState, ConnectionState], None]


class BridgeSession:
    """
    I2C session on one bridge interface.

    All methods run on a single event loop. Input reports are delivered
    by the channel on that loop and feed the pending-read tracker.
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self.config = config or AppConfig()
        self._channel: ReportChannel | None = None
        self._tracker = PendingReadTracker(loop)
        self._state = ConnectionState.DISCONNECTED
        self._state_callbacks: list[StateChangeCallback] = []
        self._feature_size: int | None = None

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        """Check if a channel is active."""
        return self._channel is not None

    @property
    def channel(self) -> ReportChannel | None:
        """Active channel, if connected."""
        return self._channel

    @property
    def tracker(self) -> PendingReadTracker:
        return self._tracker

    @property
    def feature_report_size(self) -> int | None:
        """Padded feature size the bridge last accepted."""
        return self._feature_size

    def add_state_callback(self, callback: StateChangeCallback) -> None:
        """Add a callback for state changes."""
        self._state_callbacks.append(callback)

    def remove_state_callback(self, callback: StateChangeCallback) -> None:
        """Remove a state change callback."""
        if callback in self._state_callbacks:
            self._state_callbacks.remove(callback)

    async def connect(self, candidates: Iterable[ReportChannel]) -> ReportChannel:
        """
        Open the first candidate that accepts I2C mode.

        Candidates advertising the I2C report ids are tried first, then
        those whose descriptor is unknown. Candidates known to lack the
        I2C reports are skipped.

        Args:
            candidates: Unopened channels

        Returns:
            The channel now owned by this session

        Raises:
            NoI2cInterfaceError: If no candidate could be brought up
            RangeError: If the configured clock is outside 60-3400 kHz
        """
        clock = self.config.bridge.clock_khz
        if clock is not None:
            clock_speed_args(int(clock))

        if self._channel is not None:
            logger.warning("Already connected, disconnecting first")
            await self.disconnect()

        self._set_state(ConnectionState.CONNECTING)

        for channel in self._order_candidates(list(candidates)):
            logger.info(f"Trying bridge interface {channel.info.path}...")
            try:
                channel.open()
                channel.add_input_listener(self._on_input_report)
                self._feature_size = self._send_system_setting(
                    channel, SystemSetting.SET_I2C_MODE, bytes([0x01])
                )
            except (TransportError, RangeError) as e:
                logger.warning(f"Interface {channel.info.path} rejected: {e}")
                self._release(channel)
                continue

            self._channel = channel
            self._set_state(ConnectionState.CONNECTED)
            self.config.last_known_path = channel.info.path

            log_audit_event(
                "bridge_connected",
                f"Connected to {channel.info.path}",
                {
                    "path": channel.info.path,
                    "interface": channel.info.interface_number,
                    "feature_report_size": self._feature_size,
                },
            )
            logger.info(f"Connected (I2C): {channel.info}")
            break
        else:
            self._set_state(ConnectionState.ERROR)
            logger.error("No bridge interface accepted I2C mode")
            raise NoI2cInterfaceError()

        if clock is not None:
            try:
                await self.set_clock(clock)
            except (BridgeError, TransportError):
                logger.error(f"Configured clock {clock} kHz not applied, disconnecting")
                await self.disconnect()
                raise

        return channel

    async def disconnect(self) -> None:
        """Tear down the session. Safe to call when not connected."""
        channel = self._channel
        if channel is None:
            return

        self._channel = None
        self._feature_size = None
        self._release(channel)

        self._tracker.cancel(
            BridgeConnectionError("Disconnected during read", code="DISCONNECTED")
        )
        self._set_state(ConnectionState.DISCONNECTED)

        log_audit_event("bridge_disconnected", f"Disconnected from {channel.info.path}")
        logger.info("Disconnected")

    async def set_clock(self, khz: int) -> None:
        """
        Set the I2C clock.

        Args:
            khz: Clock in kHz, 60-3400

        Raises:
            RangeError: Clock outside the supported range
        """
        channel = self._require_channel()
        self._require_idle()
        args = clock_speed_args(int(khz))

        self._feature_size = self._send_system_setting(
            channel, SystemSetting.SET_I2C_CLOCK_SPEED, args
        )
        log_audit_event("clock_set", f"I2C clock set to {khz} kHz", {"khz": khz})

    async def write(
        self,
        address: int,
        data: bytes,
        flag: TransactionFlag = TransactionFlag.START_STOP,
    ) -> None:
        """
        Write up to 60 bytes to a device.

        Args:
            address: 7-bit address
            data: Payload
            flag: I2C framing condition
        """
        channel = self._require_channel()
        self._require_idle()
        check_address(address)
        data = bytes(data)
        if len(data) > MAX_WRITE_PAYLOAD:
            raise RangeError(
                f"Write of {len(data)} bytes exceeds {MAX_WRITE_PAYLOAD}-byte limit"
            )

        report_id, payload = encode_write(address, flag, data)
        logger.debug(
            f"OUT write report=0x{report_id:02X} addr=0x{address:02X} "
            f"flag=0x{int(flag):02X} len={len(data)} data={data.hex(' ').upper()}"
        )
        self._trace("out", report_id, payload)
        channel.send_output_report(report_id, payload)

    async def read(
        self,
        address: int,
        length: int,
        flag: TransactionFlag = TransactionFlag.START_STOP,
        timeout: float | None = None,
    ) -> bytes:
        """
        Read ``length`` bytes from a device.

        Args:
            address: 7-bit address
            length: Byte count, 0-60
            flag: I2C framing condition
            timeout: Seconds to wait for input reports (default from config)

        Returns:
            Exactly ``length`` bytes

        Raises:
            ConflictError: A read is already pending
            ReadTimeoutError: Input reports did not arrive in time
        """
        channel = self._require_channel()
        check_address(address)
        if not 0 <= length <= MAX_READ_PAYLOAD:
            raise RangeError(f"Read length must be 0-{MAX_READ_PAYLOAD}, got {length}")
        if self._tracker.is_armed:
            raise ConflictError()

        if timeout is None:
            timeout = self.config.bridge.read_timeout

        report_id, payload = encode_read_request(address, flag, length)
        future = self._tracker.arm(length, timeout)

        logger.debug(
            f"OUT readReq report=0x{report_id:02X} addr=0x{address:02X} "
            f"flag=0x{int(flag):02X} len={length}"
        )
        self._trace("out", report_id, payload)
        try:
            channel.send_output_report(report_id, payload)
        except TransportError as e:
            self._tracker.cancel(e)
            raise

        try:
            return await future
        except asyncio.CancelledError:
            self._tracker.cancel(
                BridgeConnectionError("Read cancelled by caller", code="CANCELLED")
            )
            raise

    async def read_status(self) -> BusStatus:
        """Query and decode the I2C controller status."""
        channel = self._require_channel()
        raw = channel.get_feature_report(ReportId.I2C_STATUS, STATUS_REPORT_LENGTH)
        status = decode_status(raw)
        logger.debug(f"I2C {status.describe()}")
        return status

    def _send_system_setting(
        self, channel: ReportChannel, code: SystemSetting, args: bytes
    ) -> int:
        """
        Send a SYSTEM_SETTINGS sub-command.

        Each configured padded size is tried in order; the first one the
        bridge accepts wins.

        Returns:
            The accepted padded size
        """
        last_error: TransportError | None = None

        for size in self.config.bridge.feature_report_sizes:
            payload = encode_feature(code, args, size)
            self._trace("feature", ReportId.SYSTEM_SETTINGS, payload)
            try:
                channel.send_feature_report(ReportId.SYSTEM_SETTINGS, payload)
            except TransportError as e:
                logger.debug(f"Feature 0x{int(code):02X} rejected at {size} bytes: {e}")
                last_error = e
                continue

            logger.debug(f"Feature 0x{int(code):02X} sent with {size}-byte report")
            return size

        raise last_error or TransportError(
            message="No feature report sizes configured",
            code="NO_FEATURE_SIZE",
            recoverable=False,
        )

    def _on_input_report(self, report_id: int, data: bytes) -> None:
        """Input report listener registered on the channel."""
        self._trace("in", report_id, data)
        report = decode_inbound(report_id, data)

        if report.is_i2c_data:
            self._tracker.feed(report.chunk)

    def _trace(self, direction: str, report_id: int, data: bytes) -> None:
        if self.config.logging.log_raw_reports:
            log_hid_report(direction, report_id, data)

    def _order_candidates(self, candidates: list[ReportChannel]) -> list[ReportChannel]:
        qualified = []
        unknown = []
        for channel in candidates:
            surface = channel.info.surface
            if surface is None:
                unknown.append(channel)
            elif surface.supports_i2c():
                qualified.append(channel)
            else:
                logger.debug(f"Skipping {channel.info.path}: no I2C reports")
        return qualified + unknown

    def _release(self, channel: ReportChannel) -> None:
        """Unlisten and close, logging rather than raising."""
        channel.remove_input_listener(self._on_input_report)
        try:
            channel.close()
        except TransportError as e:
            logger.warning(f"Error closing channel: {e}")

    def _require_channel(self) -> ReportChannel:
        if self._channel is None:
            raise NotConnectedError()
        return self._channel

    def _require_idle(self) -> None:
        if self._tracker.is_armed:
            raise ConflictError("A read is pending; bus is busy")

    def _set_state(self, new_state: ConnectionState) -> None:
        """Update state and notify callbacks."""
        old_state = self._state
        self._state = new_state

        if old_state != new_state:
            logger.debug(f"Session state: {old_state.name} -> {new_state.name}")
            for callback in self._state_callbacks:
                try:
                    callback(old_state, new_state)
                except Exception as e:
                    logger.error(f"State callback error: {e}")
