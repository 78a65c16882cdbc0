"""
Pytest configuration and fixtures for FT260 PMBus tests.
"""

import pytest
import pytest_asyncio
from pathlib import Path
from typing import AsyncIterator

from ft260_pmbus.core.config import AppConfig
from ft260_pmbus.core.session import BridgeSession
from ft260_pmbus.sim.mock_bridge import (
    SimulatedBridge,
    SimulatedI2CDevice,
    SimulatedPMBusDevice,
    SimulationOptions,
)


@pytest.fixture
def app_config() -> AppConfig:
    """Create test application configuration."""
    config = AppConfig()
    config.simulation_mode = True
    config.bridge.read_timeout = 0.2
    config.scan.probe_delay = 0.0
    return config


@pytest.fixture
def sim_options() -> SimulationOptions:
    """Default simulation options."""
    return SimulationOptions()


@pytest.fixture
def sim_bridge(sim_options: SimulationOptions) -> SimulatedBridge:
    """Simulated bridge with a PMBus regulator and an EEPROM."""
    return SimulatedBridge(
        devices=[
            SimulatedPMBusDevice(0x5A, {0x8B: 0x1234, 0x79: 0x0840, 0x20: 0x0014}),
            SimulatedI2CDevice(0x50, bytes(range(32))),
        ],
        options=sim_options,
    )


@pytest.fixture
def session(app_config: AppConfig) -> BridgeSession:
    """Unconnected bridge session."""
    return BridgeSession(app_config)


@pytest_asyncio.fixture
async def connected_session(
    session: BridgeSession, sim_bridge: SimulatedBridge
) -> AsyncIterator[BridgeSession]:
    """Bridge session connected to the simulated bridge."""
    await session.connect([sim_bridge])
    yield session
    await session.disconnect()


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Create temporary directory for test files."""
    return tmp_path
