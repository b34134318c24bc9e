"""
Hardware Interface - Data Models
=================================
Connection settings and decoded message types exchanged with the board.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Optional

from pydantic import BaseModel, Field


class ConnectionStatus(str, Enum):
    """Transport connection status."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class HardwareMode(IntEnum):
    """Pin modes understood by the firmware's SET_PIN_MODE command."""
    INPUT = 0x00
    OUTPUT = 0x01
    ANALOG = 0x02
    PWM = 0x03


class MessageType(Enum):
    """Kinds of decoded inbound messages."""
    ANALOG = "analog"
    DIGITAL = "digital"
    VERSION = "version"


@dataclass(frozen=True)
class BoardMessage:
    """
    One decoded inbound message.

    ``index`` is the analog pin for ANALOG, the port for DIGITAL and the
    major version for VERSION; ``value`` is the reading, port byte or minor
    version respectively.
    """
    message_type: MessageType
    index: int
    value: int


class ArduinoConfig(BaseModel):
    """Serial connection settings for a Firmata board."""
    device_id: str = "arduino"

    port: str = "auto"
    baudrate: int = Field(57600, gt=0)
    timeout_s: float = Field(0.1, gt=0)

    # The board reboots when the port opens
    reset_delay_s: float = Field(2.0, ge=0)

    firmware_path: Optional[str] = None
