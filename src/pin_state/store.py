"""
Pin State Store
================
Keyed container for per-pin records.

The key population is fixed when the store is initialized: every analog
input, every digital pin slot, every PWM pin and every port gets a record,
and ``set`` refuses keys outside that population. Validation of what may be
written is left to the callers (mode guard, change detector, controller).
"""

from __future__ import annotations

import threading
from typing import Dict

from .capabilities import ANALOG_PIN_COUNT, DIGITAL_PIN_COUNT, PORT_COUNT, PWM_PINS
from .models import AnalogPinState, DigitalPinState, PinClass, PinRecord, PortState


class PinStateStore:
    """
    Thread-safe store of analog, digital and PWM records plus port bytes.

    A single re-entrant lock guards every map. Callers that need a
    get-compare-set sequence hold ``store.lock`` around it; single get/set
    calls take the lock themselves.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._records: Dict[PinClass, Dict[int, PinRecord]] = {}
        self._ports: Dict[int, PortState] = {}
        self.initialize()

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def initialize(self) -> None:
        """Populate every slot with its default record in mode Off."""
        with self._lock:
            self._records = {
                PinClass.ANALOG: {pin: AnalogPinState() for pin in range(ANALOG_PIN_COUNT)},
                PinClass.DIGITAL: {pin: DigitalPinState() for pin in range(DIGITAL_PIN_COUNT)},
                PinClass.PWM: {pin: AnalogPinState() for pin in sorted(PWM_PINS)},
            }
            self._ports = {port: PortState() for port in range(PORT_COUNT)}

    def has(self, pin_class: PinClass, pin: int) -> bool:
        with self._lock:
            return pin in self._records[pin_class]

    def get(self, pin_class: PinClass, pin: int) -> PinRecord:
        with self._lock:
            return self._records[pin_class][pin]

    def set(self, pin_class: PinClass, pin: int, record: PinRecord) -> None:
        with self._lock:
            records = self._records[pin_class]
            if pin not in records:
                raise KeyError(f"No {pin_class.value} record for pin {pin}")
            records[pin] = record

    def get_port(self, port: int) -> PortState:
        with self._lock:
            return self._ports[port]

    def set_port(self, port: int, state: PortState) -> None:
        with self._lock:
            if port not in self._ports:
                raise KeyError(f"No record for port {port}")
            self._ports[port] = state

    def snapshot(self) -> Dict[str, Dict[int, object]]:
        """Copy of all maps, keyed by map name."""
        with self._lock:
            data: Dict[str, Dict[int, object]] = {
                pin_class.value: dict(records) for pin_class, records in self._records.items()
            }
            data["ports"] = dict(self._ports)
            return data
