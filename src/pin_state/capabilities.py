"""
Pin Capability Table
=====================
Static facts about the reference board (Arduino Uno R3 running StandardFirmata).

- Digital pins 0..13, of which 0 and 1 carry the host serial link
- Analog inputs A0..A5
- PWM outputs on pins 3, 5, 6, 9, 10, 11
- Two 8-pin digital ports

Every predicate answers False for anything that is not a valid pin number;
none of them raise.
"""

from __future__ import annotations

from typing import Optional

from .models import PinClass, PinMode

DIGITAL_PIN_COUNT = 14
ANALOG_PIN_COUNT = 6
PORT_COUNT = 2
PINS_PER_PORT = 8

SERIAL_PINS = frozenset({0, 1})
DIGITAL_IO_PINS = range(2, DIGITAL_PIN_COUNT)
ANALOG_INPUT_PINS = range(0, ANALOG_PIN_COUNT)
PWM_PINS = frozenset({3, 5, 6, 9, 10, 11})

# Mode -> store map holding records for that mode
MODE_CLASSES = {
    PinMode.DIGITAL_INPUT: PinClass.DIGITAL,
    PinMode.DIGITAL_OUTPUT: PinClass.DIGITAL,
    PinMode.ANALOG_INPUT: PinClass.ANALOG,
    PinMode.ANALOG_OUTPUT: PinClass.PWM,
}


def _is_index(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def is_digital_pin(pin) -> bool:
    """Pin usable for digital I/O (serial pins excluded)."""
    return _is_index(pin) and pin in DIGITAL_IO_PINS


def is_analog_input_pin(pin) -> bool:
    return _is_index(pin) and pin in ANALOG_INPUT_PINS


def is_pwm_pin(pin) -> bool:
    return _is_index(pin) and pin in PWM_PINS


def is_supported_port(port) -> bool:
    return _is_index(port) and 0 <= port < PORT_COUNT


def port_of(pin: int) -> int:
    """Digital port that reports the given pin."""
    return pin // PINS_PER_PORT


def pin_class_for(mode: PinMode) -> Optional[PinClass]:
    """Store map for a mode, None for ``PinMode.OFF``."""
    return MODE_CLASSES.get(mode)


def supports_mode(pin, mode: PinMode) -> bool:
    """Whether the hardware can put ``pin`` into ``mode``."""
    if mode in (PinMode.DIGITAL_INPUT, PinMode.DIGITAL_OUTPUT):
        return is_digital_pin(pin)
    if mode is PinMode.ANALOG_INPUT:
        return is_analog_input_pin(pin)
    if mode is PinMode.ANALOG_OUTPUT:
        return is_pwm_pin(pin)
    return False
