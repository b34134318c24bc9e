"""
Sketch upload for Uno-class boards.

Wraps avrdude the way the Arduino IDE invokes it for an Uno R3.
"""

from __future__ import annotations

import shutil
import subprocess
import time
from pathlib import Path
from typing import List, Optional

from loguru import logger

from .serial_manager import SerialManager


class SketchUploader:
    """Flashes a compiled sketch (Intel HEX) with avrdude."""

    MCU = "atmega328p"
    PROGRAMMER = "arduino"
    BAUDRATE = 115200

    def __init__(
        self,
        port: str,
        hex_path: str,
        avrdude: str = "avrdude",
        timeout_s: float = 120.0,
        settle_s: float = 1.0,
    ):
        self.port = port
        self.hex_path = Path(hex_path)
        self.avrdude = avrdude
        self.timeout_s = timeout_s
        self.settle_s = settle_s

    def command(self, port: str) -> List[str]:
        """avrdude argument list for ``port``."""
        return [
            self.avrdude,
            "-p", self.MCU,
            "-c", self.PROGRAMMER,
            "-P", port,
            "-b", str(self.BAUDRATE),
            "-D",
            "-U", f"flash:w:{self.hex_path}:i",
        ]

    def _resolve_port(self) -> Optional[str]:
        if self.port == "auto":
            return SerialManager.find_arduino_port()
        return self.port

    def upload(self) -> bool:
        """
        Flash the sketch.

        Returns:
            True if avrdude reported success
        """
        if shutil.which(self.avrdude) is None:
            logger.error(f"{self.avrdude} not found on PATH")
            return False

        if not self.hex_path.is_file():
            logger.error(f"Sketch file not found: {self.hex_path}")
            return False

        port = self._resolve_port()
        if not port:
            logger.error("Could not auto-detect Arduino port")
            return False

        logger.info(f"Uploading {self.hex_path.name} to {port}")
        try:
            result = subprocess.run(
                self.command(port),
                capture_output=True,
                text=True,
                timeout=self.timeout_s,
            )
        except subprocess.TimeoutExpired:
            logger.error(f"Upload timed out after {self.timeout_s:.0f}s")
            return False

        if result.returncode != 0:
            logger.error(f"Upload failed: {result.stderr.strip()}")
            return False

        # Board reboots into the new sketch
        time.sleep(self.settle_s)
        logger.success("Sketch uploaded")
        return True
