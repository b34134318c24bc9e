"""
Arduino Pin Sync - Command-Line Monitor
========================================
Opens a StandardFirmata board, configures the requested pins and prints
every analog and digital change until interrupted.

Examples:
    arduino-pinsync --port /dev/ttyACM0 --pin 4=DigitalInput --pin 0=AnalogInput
    arduino-pinsync --config board.yaml --verbose
    arduino-pinsync --list-ports
    arduino-pinsync --upload --firmware StandardFirmata.ino.hex
"""

from __future__ import annotations

import argparse
import signal
import sys
import threading
from pathlib import Path
from typing import List, Optional, Tuple

import yaml
from loguru import logger
from pydantic import ValidationError

# Add src to path for imports
SRC_DIR = Path(__file__).parent
sys.path.insert(0, str(SRC_DIR))

from controller import Arduino, ControllerConfig
from hardware_interface import SerialManager, SketchUploader


class PinMonitor:
    """
    Runs one controller and prints its change notifications.
    """

    VERSION = "1.0.0"

    def __init__(self, config: ControllerConfig):
        self.config = config
        self.board: Optional[Arduino] = None
        self._shutdown_event = threading.Event()

    def start(self) -> bool:
        """
        Open the board and subscribe to changes.

        Returns:
            True if the board is ready
        """
        try:
            self.board = Arduino.from_config(self.config)
        except ConnectionError as e:
            logger.error(f"{e}")
            return False

        self.board.on_analog_changed(self._on_analog_changed)
        self.board.on_digital_changed(self._on_digital_changed)

        self._print_status()
        return True

    def _on_analog_changed(self, board: Arduino, pin: int, value: int) -> None:
        print(f"A{pin} -> {value}", flush=True)

    def _on_digital_changed(self, board: Arduino, pin: int, value: bool) -> None:
        print(f"D{pin} -> {'HIGH' if value else 'LOW'}", flush=True)

    def _print_status(self) -> None:
        """Print current board status."""
        info = self.board.connection_info
        print("\n" + "=" * 60)
        print(f"  Arduino Pin Sync v{self.VERSION}")
        print("=" * 60)
        print(f"  Port:      {info.get('port')}")
        print(f"  Baud rate: {info.get('baudrate')}")
        print(f"  Threshold: {self.board.threshold}")
        for pin, mode in sorted(self.config.pins.items()):
            print(f"  Pin {pin:>2}:    {mode.value}")
        print("=" * 60 + "\n")

    def wait_for_shutdown(self) -> None:
        """Block until shutdown is requested."""
        while not self._shutdown_event.wait(0.5):
            pass

    def request_shutdown(self) -> None:
        self._shutdown_event.set()

    def stop(self) -> None:
        if self.board:
            self.board.close()
        logger.info("Monitor stopped")


def load_config(config_path: Optional[Path]) -> ControllerConfig:
    """Load configuration from YAML file."""
    if config_path is None:
        return ControllerConfig()

    if not config_path.exists():
        logger.warning(f"Config file not found: {config_path}")
        return ControllerConfig()

    with open(config_path, "r") as f:
        data = yaml.safe_load(f) or {}
    logger.info(f"Configuration loaded from {config_path}")
    return ControllerConfig.model_validate(data)


def parse_pin_argument(text: str) -> Tuple[int, str]:
    """Parse ``PIN=MODE`` as given to ``--pin``."""
    pin, sep, mode = text.partition("=")
    if not sep or not mode:
        raise argparse.ArgumentTypeError(f"expected PIN=MODE, got {text!r}")
    try:
        return int(pin), mode
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid pin number {pin!r}")


def build_config(args: argparse.Namespace) -> ControllerConfig:
    """Apply command-line overrides on top of the config file."""
    data = load_config(args.config).model_dump()

    if args.port:
        data["arduino"]["port"] = args.port
    if args.baudrate:
        data["arduino"]["baudrate"] = args.baudrate
    if args.firmware:
        data["arduino"]["firmware_path"] = str(args.firmware)
    if args.threshold is not None:
        data["threshold"] = args.threshold
    if args.verbose:
        data["log_mode"] = True
    for pin, mode in args.pin or []:
        data["pins"][pin] = mode

    return ControllerConfig.model_validate(data)


def setup_logging(verbose: bool = False, log_file: Optional[Path] = None) -> None:
    """Configure logging."""
    logger.remove()  # Remove default handler

    level = "DEBUG" if verbose else "INFO"

    # Console handler with custom format
    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
        level=level,
        colorize=True
    )

    if log_file:
        logger.add(
            log_file,
            rotation="10 MB",
            retention="7 days",
            level="DEBUG"
        )


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Arduino Pin Sync - watch and drive StandardFirmata board pins"
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        default=None,
        help="Path to configuration file"
    )
    parser.add_argument(
        "--port", "-p",
        default=None,
        help="Serial port, or 'auto' to search for a board"
    )
    parser.add_argument(
        "--baudrate", "-b",
        type=int,
        default=None,
        help="Serial baud rate (default: 57600)"
    )
    parser.add_argument(
        "--threshold", "-t",
        type=int,
        default=None,
        help="Analog noise threshold, 1..99 (default: 10)"
    )
    parser.add_argument(
        "--pin",
        type=parse_pin_argument,
        action="append",
        metavar="PIN=MODE",
        help="Configure a pin, e.g. 4=DigitalInput or 0=AnalogInput (repeatable)"
    )
    parser.add_argument(
        "--upload",
        action="store_true",
        help="Flash the firmware before connecting"
    )
    parser.add_argument(
        "--firmware",
        type=Path,
        default=None,
        help="Firmware hex file for --upload"
    )
    parser.add_argument(
        "--list-ports",
        action="store_true",
        help="List serial ports and exit"
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write debug logs to this file"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = create_parser().parse_args(argv)

    # Setup logging
    setup_logging(args.verbose, args.log_file)

    if args.list_ports:
        for port in SerialManager.list_available_ports():
            print(f"{port['device']:<20} {port['description']} ({port['manufacturer']})")
        return 0

    try:
        config = build_config(args)
    except ValidationError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    if args.upload:
        firmware = config.arduino.firmware_path
        if not firmware:
            logger.error("No firmware file given (--firmware or arduino.firmware_path)")
            return 1
        if not SketchUploader(config.arduino.port, firmware).upload():
            return 1

    app = PinMonitor(config)

    # Setup signal handlers
    def signal_handler(sig, frame):
        logger.info("Received shutdown signal")
        app.request_shutdown()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    if not app.start():
        return 1

    try:
        print("Monitoring pins. Press Ctrl+C to stop.")
        app.wait_for_shutdown()
    finally:
        app.stop()
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
