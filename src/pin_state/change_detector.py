"""
Change Detector
================
Decides whether an inbound analog value or digital port byte is a real
state transition.

StandardFirmata reports analog inputs on every sampling interval and
reports a whole 8-bit port when any one of its pins moves, so most inbound
messages carry nothing new. Two filters apply:

- Analog: a value is a change only when it differs from the stored value
  by more than the noise threshold.
- Digital: an unchanged port byte is dropped outright; otherwise each bit
  is compared with the stored level of its pin.

Only pins configured in the matching input mode are updated or reported.
"""

from __future__ import annotations

from dataclasses import replace
from typing import List, Optional

from loguru import logger

from .capabilities import PINS_PER_PORT, is_analog_input_pin, is_supported_port
from .errors import InvalidThreshold, UnsupportedPort
from .models import PinChange, PinClass, PinMode, PortState
from .store import PinStateStore

DEFAULT_THRESHOLD = 10
THRESHOLD_MIN = 0
THRESHOLD_MAX = 100


def is_valid_threshold(value) -> bool:
    """Threshold must be a number strictly inside (0, 100)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return THRESHOLD_MIN < value < THRESHOLD_MAX


class ChangeDetector:
    """Runs both detection paths against a ``PinStateStore``."""

    def __init__(self, store: PinStateStore, threshold: int = DEFAULT_THRESHOLD):
        self._store = store
        self._threshold = DEFAULT_THRESHOLD
        self.set_threshold(threshold)

    @property
    def threshold(self):
        return self._threshold

    def set_threshold(self, value) -> None:
        """
        Replace the analog noise threshold.

        Raises:
            InvalidThreshold: value outside (0, 100); the current threshold is kept
        """
        if not is_valid_threshold(value):
            raise InvalidThreshold(value)
        self._threshold = value

    def detect_analog(self, pin: int, value: int) -> Optional[PinChange]:
        """
        Apply an analog reading.

        Returns:
            The change if it exceeded the threshold, otherwise None
        """
        if not is_analog_input_pin(pin) or isinstance(value, bool) or not isinstance(value, int):
            logger.trace(f"Dropping analog message pin={pin!r} value={value!r}")
            return None
        if value < 0:
            logger.trace(f"Dropping negative analog value {value} for pin {pin}")
            return None

        with self._store.lock:
            record = self._store.get(PinClass.ANALOG, pin)
            if record.mode is not PinMode.ANALOG_INPUT:
                return None
            if abs(record.value - value) <= self._threshold:
                return None
            self._store.set(PinClass.ANALOG, pin, replace(record, value=value))

        return PinChange(PinClass.ANALOG, pin, value)

    def detect_digital(self, port: int, port_byte: int) -> List[PinChange]:
        """
        Apply a digital port report.

        Returns:
            One change per pin whose level moved, in ascending pin order
        """
        if not is_supported_port(port):
            # Transport-side noise: logged, never raised to the caller
            logger.trace(f"Ignoring report: {UnsupportedPort(port)}")
            return []
        if isinstance(port_byte, bool) or not isinstance(port_byte, int) or not 0 <= port_byte <= 0xFF:
            logger.trace(f"Dropping port {port} report with byte {port_byte!r}")
            return []

        changes: List[PinChange] = []
        with self._store.lock:
            if self._store.get_port(port).last_byte == port_byte:
                return changes
            self._store.set_port(port, PortState(port_byte))

            for bit in range(PINS_PER_PORT):
                pin = bit + port * PINS_PER_PORT
                if not self._store.has(PinClass.DIGITAL, pin):
                    continue
                record = self._store.get(PinClass.DIGITAL, pin)
                if record.mode is not PinMode.DIGITAL_INPUT:
                    continue
                level = bool((port_byte >> bit) & 1)
                if record.value != level:
                    self._store.set(PinClass.DIGITAL, pin, replace(record, value=level))
                    changes.append(PinChange(PinClass.DIGITAL, pin, level))

        return changes
