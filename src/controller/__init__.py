"""
Controller Package
===================
Application-facing facade over a Firmata board: pin configuration,
mode-checked reads and writes, and change notifications.
"""

from .config import ControllerConfig
from .arduino import (
    Arduino,
    AnalogChangeHandler,
    DigitalChangeHandler,
    HARDWARE_MODES,
)

__all__ = [
    "ControllerConfig",
    "Arduino",
    "AnalogChangeHandler",
    "DigitalChangeHandler",
    "HARDWARE_MODES",
]
