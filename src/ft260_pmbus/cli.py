"""
FT260 PMBus command line

Usage examples:
    ft260-pmbus list
    ft260-pmbus scan
    ft260-pmbus --clock 400 read-vout 0x40
    ft260-pmbus read-word 0x5A 0x8B
    ft260-pmbus --simulate scan
"""

import argparse
import asyncio
import sys
from pathlib import Path

from ft260_pmbus import __version__
from ft260_pmbus.core.app_logging import get_logger, setup_logging
from ft260_pmbus.core.config import AppConfig, load_config, save_config
from ft260_pmbus.core.discovery import HidDiscovery
from ft260_pmbus.core.session import BridgeSession
from ft260_pmbus.pmbus.client import PMBusClient, PMBusCommand
from ft260_pmbus.pmbus.scanner import BusScanner
from ft260_pmbus.protocol.errors import BridgeError
from ft260_pmbus.sim.mock_bridge import SimulatedBridge
from ft260_pmbus.transport.base import ReportChannel, TransportError

logger = get_logger(__name__)


def parse_int(text: str) -> int:
    """Parse decimal or 0x-prefixed hex."""
    try:
        return int(text, 0)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {text!r}")


def parse_address(text: str) -> int:
    """Parse a 7-bit address; bare digits are read as hex."""
    try:
        value = int(text.strip().lower().removeprefix("0x"), 16)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid 7-bit address: {text!r}")
    if not 0 <= value <= 0x7F:
        raise argparse.ArgumentTypeError(f"invalid 7-bit address: {text!r}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ft260-pmbus",
        description="FT260 USB-HID I2C bridge and PMBus read tool",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", type=Path, help="configuration file (YAML or JSON)")
    parser.add_argument("--simulate", action="store_true", help="use the simulated bridge")
    parser.add_argument("--debug", action="store_true", help="debug logging")
    parser.add_argument("--device", help="hidraw path of the I2C interface")
    parser.add_argument("--clock", type=parse_int, help="I2C clock in kHz (60-3400)")
    parser.add_argument("--timeout", type=float, help="read timeout in seconds")
    parser.add_argument(
        "--save-config", action="store_true", help="persist the effective configuration"
    )

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="list bridge interfaces")

    scan = sub.add_parser("scan", help="probe the I2C bus for devices")
    scan.add_argument("--first", type=parse_address, help="first address (default 0x03)")
    scan.add_argument("--last", type=parse_address, help="last address (default 0x77)")
    scan.add_argument("--delay", type=float, help="seconds between probes")
    scan.add_argument(
        "--check-status", action="store_true", help="also check bus status after each probe"
    )

    word = sub.add_parser("read-word", help="PMBus read word")
    word.add_argument("address", type=parse_address)
    word.add_argument("pmbus_command", type=parse_int)

    vout = sub.add_parser("read-vout", help="PMBus READ_VOUT (raw)")
    vout.add_argument("address", type=parse_address)

    status_word = sub.add_parser("status-word", help="PMBus STATUS_WORD")
    status_word.add_argument("address", type=parse_address)

    clock = sub.add_parser("set-clock", help="set the I2C clock")
    clock.add_argument("khz", type=parse_int)

    sub.add_parser("status", help="show the bridge I2C status")

    return parser


def apply_overrides(config: AppConfig, args: argparse.Namespace) -> None:
    """Fold command line options into the loaded configuration."""
    if args.simulate:
        config.simulation_mode = True
    if args.device:
        config.bridge.preferred_path = args.device
    if args.clock is not None:
        config.bridge.clock_khz = args.clock
    if args.timeout is not None:
        config.bridge.read_timeout = args.timeout
    if args.debug:
        config.logging.log_level = "DEBUG"
        config.logging.log_raw_reports = True


def make_candidates(config: AppConfig) -> list[ReportChannel]:
    if config.simulation_mode:
        return [SimulatedBridge()]

    discovery = HidDiscovery(
        vendor_id=config.bridge.vendor_id,
        product_id=config.bridge.product_id,
        last_known_path=config.last_known_path,
    )
    return list(discovery.create_channels(config.bridge.preferred_path))


def list_interfaces(config: AppConfig) -> int:
    if config.simulation_mode:
        print(SimulatedBridge().info)
        return 0

    discovery = HidDiscovery(
        vendor_id=config.bridge.vendor_id,
        product_id=config.bridge.product_id,
        last_known_path=config.last_known_path,
    )
    channels = discovery.discover_channels()
    if not channels:
        print("No bridge interfaces found")
        return 1
    for info in channels:
        surface = "unknown" if info.surface is None else (
            "I2C" if info.surface.supports_i2c() else "no I2C"
        )
        print(f"{info} ({surface})")
    return 0


async def run_command(config: AppConfig, args: argparse.Namespace) -> int:
    session = BridgeSession(config)

    try:
        await session.connect(make_candidates(config))

        if args.command == "scan":
            scanner = BusScanner(
                session,
                probe_delay=args.delay,
                check_status=True if args.check_status else None,
            )
            result = await scanner.scan(args.first, args.last)
            found = " ".join(f"0x{a:02X}" for a in result.addresses) or "none"
            print(f"Devices: {found}")

        elif args.command in ("read-word", "read-vout", "status-word"):
            client = PMBusClient(session)
            if args.command == "read-vout":
                reading = await client.read_vout_raw(args.address)
                label = PMBusCommand.READ_VOUT.name
            elif args.command == "status-word":
                reading = await client.read_status_word(args.address)
                label = PMBusCommand.STATUS_WORD.name
            else:
                reading = await client.read_word(args.address, args.pmbus_command)
                label = f"0x{reading.command:02X}"
            print(f"PMBus {label} {reading}")
            if reading.bus_fault:
                print(f"Bus fault: {reading.status.describe()}")
            if args.command == "read-vout":
                print("Note: decode using VOUT_MODE (LINEAR16/DIRECT) for volts")

        elif args.command == "set-clock":
            await session.set_clock(args.khz)
            print(f"I2C clock set to {args.khz} kHz")

        elif args.command == "status":
            status = await session.read_status()
            print(f"I2C {status.describe()}")

    finally:
        await session.disconnect()

    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    config = load_config(args.config)
    apply_overrides(config, args)
    setup_logging(
        log_dir=Path(config.logging.log_dir),
        level=config.logging.log_level,
    )

    if args.command == "list":
        return list_interfaces(config)

    try:
        code = asyncio.run(run_command(config, args))
    except (BridgeError, TransportError) as e:
        logger.error(str(e))
        return 1

    if args.save_config:
        save_config(config, args.config)
    return code


if __name__ == "__main__":
    sys.exit(main())
