"""
FT260 PMBus Simulation Mode

Provides a simulated bridge and I2C/PMBus targets for testing and
demonstration.
"""

from ft260_pmbus.sim.mock_bridge import (
    SimulatedBridge,
    SimulatedI2CDevice,
    SimulatedPMBusDevice,
    SimulationOptions,
)

__all__ = [
    "SimulatedBridge",
    "SimulatedI2CDevice",
    "SimulatedPMBusDevice",
    "SimulationOptions",
]
