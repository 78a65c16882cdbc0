"""
FT260 PMBus - USB HID to I2C bridge tooling

Drives an FTDI FT260 (or compatible) HID-class I2C bridge and layers
a minimal PMBus "read word" transaction on top of it.

Raw PMBus values are returned as-is. Decoding LINEAR11/LINEAR16 or
DIRECT formats into engineering units is left to the caller.
"""

__version__ = "0.1.0"
__author__ = "FT260 PMBus Contributors"

from ft260_pmbus.core.session import BridgeSession
from ft260_pmbus.pmbus.client import PMBusClient, WordReading
from ft260_pmbus.pmbus.scanner import BusScanner

__all__ = [
    "BridgeSession",
    "PMBusClient",
    "WordReading",
    "BusScanner",
]
