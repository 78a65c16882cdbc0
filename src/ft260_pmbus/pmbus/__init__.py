"""
FT260 PMBus Layer

PMBus read-word transactions and I2C bus scanning on top of a
bridge session.
"""

from ft260_pmbus.pmbus.client import PMBusClient, PMBusCommand, WordReading
from ft260_pmbus.pmbus.scanner import BusScanner, ScanResult

__all__ = [
    "PMBusClient",
    "PMBusCommand",
    "WordReading",
    "BusScanner",
    "ScanResult",
]
