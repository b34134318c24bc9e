"""
Pin State Package
==================
In-memory model of board pins and the logic that keeps it in sync with
the stream of reports coming from the board:

- Capability table for the reference board
- Per-pin record store
- Change detection for analog values and digital port bytes
- Mode guard for reads, writes and configuration
"""

from .models import (
    PinMode,
    PinClass,
    AnalogPinState,
    DigitalPinState,
    PortState,
    PinChange,
    pin_mode_from_name,
)
from .errors import (
    PinStateError,
    PinOutOfRange,
    ModeMismatch,
    InvalidThreshold,
    UnsupportedPort,
)
from .store import PinStateStore
from .change_detector import DEFAULT_THRESHOLD, ChangeDetector, is_valid_threshold
from .mode_guard import ModeGuard, Operation

__all__ = [
    "PinMode",
    "PinClass",
    "AnalogPinState",
    "DigitalPinState",
    "PortState",
    "PinChange",
    "pin_mode_from_name",
    "PinStateError",
    "PinOutOfRange",
    "ModeMismatch",
    "InvalidThreshold",
    "UnsupportedPort",
    "PinStateStore",
    "DEFAULT_THRESHOLD",
    "ChangeDetector",
    "is_valid_threshold",
    "ModeGuard",
    "Operation",
]
