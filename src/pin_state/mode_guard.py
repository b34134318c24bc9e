"""
Mode Guard
===========
Authorizes pin operations against hardware capability and configured mode.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, Dict, NamedTuple, Optional

from .capabilities import is_analog_input_pin, is_digital_pin, is_pwm_pin, pin_class_for, supports_mode
from .errors import ModeMismatch, PinOutOfRange
from .models import PinClass, PinMode, PinRecord
from .store import PinStateStore


class Operation(str, Enum):
    """Application-facing pin operations."""
    DIGITAL_READ = "digital read"
    DIGITAL_WRITE = "digital write"
    ANALOG_READ = "analog read"
    ANALOG_WRITE = "analog write"


class _Rule(NamedTuple):
    mode: PinMode
    pin_class: PinClass
    in_range: Callable[[int], bool]


RULES: Dict[Operation, _Rule] = {
    Operation.DIGITAL_READ: _Rule(PinMode.DIGITAL_INPUT, PinClass.DIGITAL, is_digital_pin),
    Operation.DIGITAL_WRITE: _Rule(PinMode.DIGITAL_OUTPUT, PinClass.DIGITAL, is_digital_pin),
    Operation.ANALOG_READ: _Rule(PinMode.ANALOG_INPUT, PinClass.ANALOG, is_analog_input_pin),
    Operation.ANALOG_WRITE: _Rule(PinMode.ANALOG_OUTPUT, PinClass.PWM, is_pwm_pin),
}


class ModeGuard:
    """Validates reads, writes and configuration requests."""

    def __init__(self, store: PinStateStore):
        self._store = store

    def authorize(
        self,
        operation: Operation,
        pin: int,
        required_mode: Optional[PinMode] = None,
    ) -> PinRecord:
        """
        Check that ``pin`` may perform ``operation``.

        Args:
            operation: Operation being attempted
            pin: Pin number
            required_mode: Mode the pin must be in; defaults to the operation's mode

        Returns:
            The pin's record, read atomically with the mode check

        Raises:
            PinOutOfRange: pin cannot perform this operation class
            ModeMismatch: pin is configured in another mode
        """
        rule = RULES[operation]
        required = required_mode or rule.mode
        if not rule.in_range(pin):
            raise PinOutOfRange(pin, operation.value)

        record = self._store.get(rule.pin_class, pin)
        if record.mode is not required:
            raise ModeMismatch(pin, required, record.mode)
        return record

    def authorize_configuration(self, pin: int, mode: PinMode) -> Optional[PinClass]:
        """
        Check that ``pin`` can be put into ``mode``.

        Returns:
            Store map for the new record, or None when ``mode`` is Off

        Raises:
            PinOutOfRange: hardware cannot put the pin into that mode
        """
        if mode is PinMode.OFF:
            return None
        if not supports_mode(pin, mode):
            raise PinOutOfRange(pin, f"{mode.value} mode")
        return pin_class_for(mode)
