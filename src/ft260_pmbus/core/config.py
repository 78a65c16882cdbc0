"""
Application Configuration

Manages configuration loading, validation, and persistence.
Supports YAML/JSON configuration files and runtime overrides.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from platformdirs import user_config_dir

from ft260_pmbus.core.app_logging import get_logger
from ft260_pmbus.protocol.constants import (
    DEFAULT_READ_TIMEOUT_S,
    FEATURE_REPORT_SIZES,
    FT260_PID,
    FT260_VID,
    SCAN_FIRST_ADDRESS,
    SCAN_LAST_ADDRESS,
)

logger = get_logger(__name__)

APP_NAME = "ft260_pmbus"


@dataclass
class BridgeConfig:
    """Bridge/transport configuration."""

    vendor_id: int = FT260_VID
    product_id: int = FT260_PID
    preferred_path: str | None = None  # hidraw path of the I2C interface
    clock_khz: int | None = None  # applied after connect when set
    read_timeout: float = DEFAULT_READ_TIMEOUT_S
    feature_report_sizes: list[int] = field(
        default_factory=lambda: list(FEATURE_REPORT_SIZES)
    )
    strict_bus_errors: bool = False


@dataclass
class ScanConfig:
    """Bus scan configuration."""

    first_address: int = SCAN_FIRST_ADDRESS
    last_address: int = SCAN_LAST_ADDRESS
    probe_delay: float = 0.01  # seconds between probes
    check_status: bool = False


@dataclass
class LoggingConfig:
    """Logging-related configuration."""

    log_level: str = "INFO"
    log_dir: str = "./logs"
    log_raw_reports: bool = False


@dataclass
class AppConfig:
    """Main application configuration."""

    bridge: BridgeConfig = field(default_factory=BridgeConfig)
    scan: ScanConfig = field(default_factory=ScanConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    simulation_mode: bool = False

    # Last device path that connected, for ranking on the next run
    last_known_path: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "simulation_mode": self.simulation_mode,
            "last_known_path": self.last_known_path,
            "bridge": {
                "vendor_id": self.bridge.vendor_id,
                "product_id": self.bridge.product_id,
                "preferred_path": self.bridge.preferred_path,
                "clock_khz": self.bridge.clock_khz,
                "read_timeout": self.bridge.read_timeout,
                "feature_report_sizes": list(self.bridge.feature_report_sizes),
                "strict_bus_errors": self.bridge.strict_bus_errors,
            },
            "scan": {
                "first_address": self.scan.first_address,
                "last_address": self.scan.last_address,
                "probe_delay": self.scan.probe_delay,
                "check_status": self.scan.check_status,
            },
            "logging": {
                "log_level": self.logging.log_level,
                "log_dir": self.logging.log_dir,
                "log_raw_reports": self.logging.log_raw_reports,
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AppConfig":
        """Create configuration from dictionary."""
        config = cls()

        if "simulation_mode" in data:
            config.simulation_mode = bool(data["simulation_mode"])
        if "last_known_path" in data:
            config.last_known_path = data["last_known_path"]

        if "bridge" in data:
            bridge = data["bridge"]
            config.bridge = BridgeConfig(
                vendor_id=bridge.get("vendor_id", FT260_VID),
                product_id=bridge.get("product_id", FT260_PID),
                preferred_path=bridge.get("preferred_path"),
                clock_khz=bridge.get("clock_khz"),
                read_timeout=bridge.get("read_timeout", DEFAULT_READ_TIMEOUT_S),
                feature_report_sizes=list(
                    bridge.get("feature_report_sizes", FEATURE_REPORT_SIZES)
                ),
                strict_bus_errors=bridge.get("strict_bus_errors", False),
            )

        if "scan" in data:
            scan = data["scan"]
            config.scan = ScanConfig(
                first_address=scan.get("first_address", SCAN_FIRST_ADDRESS),
                last_address=scan.get("last_address", SCAN_LAST_ADDRESS),
                probe_delay=scan.get("probe_delay", 0.01),
                check_status=scan.get("check_status", False),
            )

        if "logging" in data:
            log = data["logging"]
            config.logging = LoggingConfig(
                log_level=log.get("log_level", "INFO"),
                log_dir=log.get("log_dir", "./logs"),
                log_raw_reports=log.get("log_raw_reports", False),
            )

        return config


def get_config_path() -> Path:
    """Get the default configuration file path."""
    config_dir = Path(user_config_dir(APP_NAME))
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir / "config.yaml"


def load_config(path: Path | None = None) -> AppConfig:
    """
    Load configuration from file.

    Args:
        path: Path to configuration file (default: user config dir)

    Returns:
        Loaded configuration, or defaults if the file is missing or invalid
    """
    config_path = path or get_config_path()

    if not config_path.exists():
        logger.info(f"No configuration file found at {config_path}, using defaults")
        return AppConfig()

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            if config_path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)

        config = AppConfig.from_dict(data or {})
        logger.info(f"Configuration loaded from {config_path}")
        return config

    except (OSError, ValueError, yaml.YAMLError, AttributeError) as e:
        logger.error(f"Failed to load configuration: {e}")
        return AppConfig()


def save_config(config: AppConfig, path: Path | None = None) -> bool:
    """
    Save configuration to file.

    Args:
        config: Configuration to save
        path: Path to save to (default: user config dir)

    Returns:
        True if saved successfully
    """
    config_path = path or get_config_path()

    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w", encoding="utf-8") as f:
            yaml.dump(config.to_dict(), f, default_flow_style=False)

        logger.info(f"Configuration saved to {config_path}")
        return True

    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Failed to save configuration: {e}")
        return False
