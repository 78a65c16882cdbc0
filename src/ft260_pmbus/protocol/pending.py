"""
Pending Read Tracker

Holds the single in-flight I2C read. Input reports arrive through the
session's listener and are fed here; the caller awaits the future handed
out by ``arm``. The deadline runs on the event loop as a cancellable
timer bound to its own arm cycle.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum, auto

from ft260_pmbus.core.app_logging import get_logger
from ft260_pmbus.protocol.errors import ConflictError, ReadTimeoutError

logger = get_logger(__name__)


class ReadState(Enum):
    """Pending read state machine states."""

    IDLE = auto()
    ARMED = auto()
    FULFILLED = auto()
    TIMED_OUT = auto()
    CANCELLED = auto()


@dataclass
class PendingRead:
    """The one outstanding read."""

    wanted: int
    future: asyncio.Future
    deadline: float
    accumulated: bytearray = field(default_factory=bytearray)
    timer: asyncio.TimerHandle | None = None

    @property
    def remaining(self) -> int:
        return self.wanted - len(self.accumulated)


class PendingReadTracker:
    """
    Tracks at most one armed read.

    ``state`` is ARMED while a read is outstanding and IDLE otherwise;
    ``last_outcome`` keeps how the previous arm cycle ended.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._pending: PendingRead | None = None
        self._last_outcome: ReadState = ReadState.IDLE

    @property
    def state(self) -> ReadState:
        return ReadState.ARMED if self._pending is not None else ReadState.IDLE

    @property
    def is_armed(self) -> bool:
        return self._pending is not None

    @property
    def last_outcome(self) -> ReadState:
        return self._last_outcome

    @property
    def pending(self) -> PendingRead | None:
        return self._pending

    def arm(self, wanted: int, timeout: float) -> asyncio.Future:
        """
        Arm a read of ``wanted`` bytes.

        Args:
            wanted: Number of bytes to collect
            timeout: Seconds until the read fails with ReadTimeoutError

        Returns:
            Future resolved with exactly ``wanted`` bytes

        Raises:
            ConflictError: If a read is already armed
        """
        if self._pending is not None:
            raise ConflictError()

        loop = self._loop or asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()

        if wanted <= 0:
            future.set_result(b"")
            self._last_outcome = ReadState.FULFILLED
            return future

        pending = PendingRead(
            wanted=wanted,
            future=future,
            deadline=loop.time() + timeout,
        )
        pending.timer = loop.call_later(timeout, self._on_deadline, pending)
        self._pending = pending

        logger.debug(f"Read armed: want={wanted} timeout={timeout:.3f}s")
        return future

    def feed(self, chunk: bytes) -> bool:
        """
        Append input report data to the armed read.

        Bytes beyond what the read still needs are dropped.

        Returns:
            True if the chunk completed the read
        """
        pending = self._pending
        if pending is None:
            return False

        take = bytes(chunk[: pending.remaining])
        pending.accumulated.extend(take)

        if pending.remaining > 0:
            return False

        return self._resolve(
            pending, ReadState.FULFILLED, result=bytes(pending.accumulated)
        )

    def expire(self) -> bool:
        """Fail the armed read with a timeout. No-op when idle."""
        pending = self._pending
        if pending is None:
            return False

        logger.debug(
            f"Read timed out with {len(pending.accumulated)}/{pending.wanted} bytes"
        )
        return self._resolve(pending, ReadState.TIMED_OUT, error=ReadTimeoutError())

    def cancel(self, reason: BaseException) -> bool:
        """Fail the armed read with ``reason``. No-op when idle."""
        pending = self._pending
        if pending is None:
            return False

        return self._resolve(pending, ReadState.CANCELLED, error=reason)

    def _on_deadline(self, pending: PendingRead) -> None:
        # Timer of an earlier arm cycle
        if pending is not self._pending:
            return
        self.expire()

    def _resolve(
        self,
        pending: PendingRead,
        outcome: ReadState,
        result: bytes | None = None,
        error: BaseException | None = None,
    ) -> bool:
        if pending is not self._pending:
            return False

        self._pending = None
        self._last_outcome = outcome
        if pending.timer is not None:
            pending.timer.cancel()

        if pending.future.done():
            return False

        if error is not None:
            pending.future.set_exception(error)
        else:
            pending.future.set_result(result)
        return True
