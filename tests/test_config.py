"""
Tests for configuration loading and persistence.
"""

import json
from pathlib import Path

from ft260_pmbus.core.config import AppConfig, load_config, save_config


class TestAppConfig:
    """Tests for AppConfig."""

    def test_defaults(self):
        """Test default configuration values."""
        config = AppConfig()

        assert config.bridge.vendor_id == 0x0403
        assert config.bridge.product_id == 0x6030
        assert config.bridge.feature_report_sizes == [16, 64]
        assert config.bridge.read_timeout == 1.5
        assert config.bridge.clock_khz is None
        assert not config.bridge.strict_bus_errors
        assert config.scan.first_address == 0x03
        assert config.scan.last_address == 0x77
        assert not config.simulation_mode

    def test_from_dict_partial(self):
        """Test missing sections keep their defaults."""
        config = AppConfig.from_dict({"bridge": {"clock_khz": 400}})

        assert config.bridge.clock_khz == 400
        assert config.bridge.read_timeout == 1.5
        assert config.scan.last_address == 0x77

    def test_dict_round_trip(self):
        """Test to_dict output is accepted by from_dict."""
        config = AppConfig()
        config.bridge.strict_bus_errors = True
        config.scan.check_status = True
        config.last_known_path = "/dev/hidraw3"

        restored = AppConfig.from_dict(config.to_dict())

        assert restored.to_dict() == config.to_dict()


class TestConfigFiles:
    """Tests for load_config and save_config."""

    def test_missing_file_gives_defaults(self, temp_dir: Path):
        config = load_config(temp_dir / "absent.yaml")
        assert config.to_dict() == AppConfig().to_dict()

    def test_save_and_load_yaml(self, temp_dir: Path):
        """Test YAML persistence."""
        path = temp_dir / "sub" / "config.yaml"
        config = AppConfig()
        config.bridge.clock_khz = 100
        config.logging.log_raw_reports = True

        assert save_config(config, path)
        loaded = load_config(path)

        assert loaded.bridge.clock_khz == 100
        assert loaded.logging.log_raw_reports

    def test_load_json(self, temp_dir: Path):
        """Test JSON configuration files."""
        path = temp_dir / "config.json"
        path.write_text(json.dumps({"scan": {"probe_delay": 0.5}, "simulation_mode": True}))

        config = load_config(path)

        assert config.scan.probe_delay == 0.5
        assert config.simulation_mode

    def test_invalid_file_gives_defaults(self, temp_dir: Path):
        """Test a malformed file falls back to defaults."""
        path = temp_dir / "config.yaml"
        path.write_text("bridge: [unclosed\n")

        config = load_config(path)

        assert config.to_dict() == AppConfig().to_dict()

    def test_non_mapping_gives_defaults(self, temp_dir: Path):
        """Test a YAML list instead of a mapping falls back to defaults."""
        path = temp_dir / "config.yaml"
        path.write_text("- 1\n- 2\n")

        assert load_config(path).to_dict() == AppConfig().to_dict()
