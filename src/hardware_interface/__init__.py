"""
Hardware Interface Package
===========================
Communication layer between the host and a StandardFirmata board:

- Firmata framing (command encoders, streaming parser)
- Serial transport with port auto-detection
- Firmware upload through avrdude

The controller depends only on ``BoardTransport``; ``SerialManager`` is
the concrete serial implementation.
"""

from .models import (
    ConnectionStatus,
    HardwareMode,
    MessageType,
    BoardMessage,
    ArduinoConfig,
)
from .transport import BoardTransport
from .firmata import Command, FirmataParser

# higher-level managers
from .serial_manager import SerialManager
from .uploader import SketchUploader

__all__ = [
    "ConnectionStatus",
    "HardwareMode",
    "MessageType",
    "BoardMessage",
    "ArduinoConfig",
    "BoardTransport",
    "Command",
    "FirmataParser",
    "SerialManager",
    "SketchUploader",
]
