"""
Pin State - Data Models
========================
Value types for the in-memory model of board pin state.

Records are immutable: the store swaps whole records, so a reader never
observes a value that belongs to a different mode.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union


class PinMode(str, Enum):
    """Configured functional role of a pin."""
    OFF = "Off"
    DIGITAL_INPUT = "DigitalInput"
    DIGITAL_OUTPUT = "DigitalOutput"
    ANALOG_INPUT = "AnalogInput"
    ANALOG_OUTPUT = "AnalogOutput"


class PinClass(str, Enum):
    """Record maps kept by the store."""
    ANALOG = "analog"
    DIGITAL = "digital"
    PWM = "pwm"


def pin_mode_from_name(name: str) -> PinMode:
    """
    Convert a mode name such as ``"DigitalInput"`` or ``"digital_input"``.

    Unrecognized names map to ``PinMode.OFF``.
    """
    if isinstance(name, PinMode):
        return name
    if not isinstance(name, str):
        return PinMode.OFF

    key = name.strip()
    for mode in PinMode:
        if key == mode.value or key.upper() == mode.name:
            return mode
    return PinMode.OFF


@dataclass(frozen=True)
class AnalogPinState:
    """Analog input or PWM output record."""
    value: int = 0
    mode: PinMode = PinMode.OFF


@dataclass(frozen=True)
class DigitalPinState:
    """Digital pin record."""
    value: bool = False
    mode: PinMode = PinMode.OFF


@dataclass(frozen=True)
class PortState:
    """Last raw byte reported for an 8-pin digital port."""
    last_byte: int = 0


@dataclass(frozen=True)
class PinChange:
    """A reportable transition found by the change detector."""
    pin_class: PinClass
    pin: int
    value: Union[int, bool]


PinRecord = Union[AnalogPinState, DigitalPinState]
