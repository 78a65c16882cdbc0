"""
Structured Logging System

Every run gets a session id. Log records go to a colored console handler
and to ``session_<id>.jsonl`` in the log directory. Bus transactions,
session audit events and raw HID reports carry structured fields that
are written as top-level JSON keys.
"""

import json
import logging
import sys
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

_ROOT_NAMESPACE = "ft260_pmbus"

# Attribute on LogRecord holding structured fields
_FIELDS_ATTR = "fields"

# Structured keys rendered as 0xNN in both console and JSONL output
_HEX_KEYS = ("address", "report_id", "command")


def _new_session_id() -> str:
    return datetime.now().strftime("%Y%m%d_%H%M%S")


@dataclass
class _LogState:
    session_id: str = field(default_factory=_new_session_id)
    log_dir: Path | None = None
    log_file: Path | None = None


_state = _LogState()
_loggers: dict[str, logging.Logger] = {}


def _render(key: str, value: Any) -> Any:
    """Render one structured value for output."""
    if key in _HEX_KEYS and isinstance(value, int):
        return f"0x{value:02X}"
    if isinstance(value, (bytes, bytearray)):
        return value.hex(" ").upper()
    if isinstance(value, Enum):
        return value.name
    return value


def _json_default(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray, Enum)):
        return _render("", value)
    return str(value)


def _record_fields(record: logging.LogRecord) -> dict[str, Any]:
    fields = getattr(record, _FIELDS_ATTR, None) or {}
    return {key: _render(key, value) for key, value in fields.items()}


class JSONLFormatter(logging.Formatter):
    """One JSON object per record, structured fields merged at top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "session": _state.session_id,
        }
        entry.update(_record_fields(record))

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=_json_default)


class ConsoleFormatter(logging.Formatter):
    """Colored one-line output with the package prefix dropped from logger names."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        name = record.name.removeprefix(f"{_ROOT_NAMESPACE}.")
        line = f"{color}{clock} {record.levelname[0]}{self.RESET} {name}: {record.getMessage()}"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _console_level(debug: bool, level: str | None) -> int:
    if level is None:
        return logging.DEBUG if debug else logging.INFO
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(
    log_dir: Path | None = None,
    debug: bool = False,
    level: str | None = None,
) -> Path:
    """
    Install the console and JSONL handlers on the package logger.

    Calling it again starts a new session and replaces the handlers.

    Args:
        log_dir: Directory for session files (default: ./logs)
        debug: Console at DEBUG instead of INFO
        level: Console level name, takes precedence over ``debug``

    Returns:
        Path of the session JSONL file
    """
    log_dir = log_dir or Path("./logs")
    log_dir.mkdir(parents=True, exist_ok=True)

    _state.session_id = _new_session_id()
    _state.log_dir = log_dir
    _state.log_file = log_dir / f"session_{_state.session_id}.jsonl"

    package_logger = logging.getLogger(_ROOT_NAMESPACE)
    package_logger.setLevel(logging.DEBUG)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(_console_level(debug, level))
    console.setFormatter(ConsoleFormatter())
    package_logger.addHandler(console)

    # The session file always records everything, including raw reports
    session_file = logging.FileHandler(_state.log_file, encoding="utf-8")
    session_file.setLevel(logging.DEBUG)
    session_file.setFormatter(JSONLFormatter())
    package_logger.addHandler(session_file)

    package_logger.debug(f"Session {_state.session_id} logging to {_state.log_file}")
    return _state.log_file


def get_logger(name: str) -> logging.Logger:
    """Logger for ``name``, placed under the ft260_pmbus namespace."""
    logger = _loggers.get(name)
    if logger is None:
        qualified = name if name.startswith(_ROOT_NAMESPACE) else f"{_ROOT_NAMESPACE}.{name}"
        logger = _loggers[name] = logging.getLogger(qualified)
    return logger


def get_session_id() -> str:
    """Get the current session ID."""
    return _state.session_id


def get_log_dir() -> Path:
    """Get the log directory."""
    return _state.log_dir or Path("./logs")


def log_audit_event(
    event_type: str,
    description: str,
    details: dict[str, Any] | None = None,
) -> None:
    """
    Record a session-level change (connect, disconnect, clock change).

    Args:
        event_type: Event name, e.g. "bridge_connected"
        description: Human-readable description
        details: Extra structured values
    """
    get_logger("audit").info(
        description,
        extra={_FIELDS_ATTR: {"audit_event": event_type, "audit_details": details or {}}},
    )


def log_bus_transaction(
    action: str,
    address: int | None = None,
    success: bool = True,
    error: str | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    """
    Record the outcome of an I2C or PMBus operation.

    Failures are logged at ERROR, successes at INFO.

    Args:
        action: Operation name, e.g. "read_word" or "bus_scan"
        address: 7-bit target address, if the operation had one
        success: Whether the operation succeeded
        error: Failure description
        details: Extra structured values
    """
    fields = {
        "action": action,
        "address": address,
        "success": success,
        "error": error,
        "details": details or {},
    }
    target = "" if address is None else f" @0x{address:02X}"

    if success:
        get_logger("bus").info(f"{action}{target} ok", extra={_FIELDS_ATTR: fields})
    else:
        get_logger("bus").error(
            f"{action}{target} failed: {error}", extra={_FIELDS_ATTR: fields}
        )


def log_hid_report(direction: str, report_id: int, data: bytes) -> None:
    """
    Record one raw HID report at DEBUG.

    Args:
        direction: "in", "out" or "feature"
        report_id: HID report id
        data: Report payload without the id byte
    """
    get_logger("hid").debug(
        f"{direction} 0x{report_id:02X} [{bytes(data).hex(' ').upper()}]",
        extra={
            _FIELDS_ATTR: {
                "direction": direction,
                "report_id": report_id,
                "payload": bytes(data),
            }
        },
    )
