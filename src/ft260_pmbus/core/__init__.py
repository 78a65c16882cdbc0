"""
FT260 PMBus Core Package

Contains the bridge session, interface discovery, configuration
and logging.
"""

from ft260_pmbus.core.app_logging import get_logger, setup_logging
from ft260_pmbus.core.config import AppConfig, load_config
from ft260_pmbus.core.discovery import HidDiscovery
from ft260_pmbus.core.session import BridgeSession, ConnectionState

__all__ = [
    "get_logger",
    "setup_logging",
    "AppConfig",
    "load_config",
    "HidDiscovery",
    "BridgeSession",
    "ConnectionState",
]
