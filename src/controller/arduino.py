"""
Arduino Controller
===================
Facade that keeps a pin-level model of a Firmata board in sync.

Responsibilities:
- Receive decoded analog and digital-port messages from the transport
- Filter them into real per-pin transitions and update the pin store
- Notify subscribers of each transition, in message-arrival order
- Validate reads, writes and pin configuration against pin modes

Misuse (wrong mode, bad pin number) never raises: the call returns a safe
default and the failure is kept on ``last_error``.
"""

from __future__ import annotations

import itertools
import threading
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from hardware_interface import (
    ArduinoConfig,
    BoardMessage,
    BoardTransport,
    HardwareMode,
    MessageType,
    SerialManager,
)
from pin_state import (
    DEFAULT_THRESHOLD,
    AnalogPinState,
    ChangeDetector,
    DigitalPinState,
    InvalidThreshold,
    ModeGuard,
    Operation,
    PinChange,
    PinClass,
    PinMode,
    PinStateError,
    PinStateStore,
    PortState,
)
from pin_state.capabilities import ANALOG_PIN_COUNT, PINS_PER_PORT, PORT_COUNT, port_of

from .config import ControllerConfig

AnalogChangeHandler = Callable[["Arduino", int, int], None]
DigitalChangeHandler = Callable[["Arduino", int, bool], None]

# Mode-set command sent when a pin is configured
HARDWARE_MODES = {
    PinMode.DIGITAL_INPUT: HardwareMode.INPUT,
    PinMode.DIGITAL_OUTPUT: HardwareMode.OUTPUT,
    PinMode.ANALOG_OUTPUT: HardwareMode.PWM,
}

DIGITAL_READ_DEFAULT = False
ANALOG_READ_DEFAULT = -1


class Arduino:
    """
    Pin-level controller for one board.

    The transport is connected on construction and released by ``close``.

    Usage:
        board = Arduino(SerialManager(ArduinoConfig(port="/dev/ttyACM0")))
        board.on_digital_changed(lambda b, pin, value: print(pin, value))
        board.configure_pin(4, PinMode.DIGITAL_INPUT)
        board.configure_pin(11, PinMode.ANALOG_OUTPUT)
        board.analog_write(11, 128)
        board.close()
    """

    def __init__(
        self,
        transport: BoardTransport,
        threshold: int = DEFAULT_THRESHOLD,
        log_mode: bool = False,
    ):
        """
        Initialize controller.

        Args:
            transport: Connected or connectable board transport
            threshold: Analog noise threshold, strictly between 0 and 100
            log_mode: Log recovered misuse as warnings

        Raises:
            ConnectionError: transport could not connect
        """
        self.log_mode = log_mode
        self.last_error: Optional[PinStateError] = None

        self._store = PinStateStore()
        self._guard = ModeGuard(self._store)
        self._detector = ChangeDetector(self._store)
        self.set_threshold(threshold)

        # Subscribers, per pin class, keyed by handle
        self._subscribers: Dict[PinClass, Dict[int, Callable]] = {
            PinClass.ANALOG: {},
            PinClass.DIGITAL: {},
        }
        self._subscriber_lock = threading.Lock()
        self._handles = itertools.count(1)

        self._transport = transport
        self._closed = False

        if not transport.is_connected and not transport.connect():
            raise ConnectionError("Could not connect to board")

        transport.register_callback(MessageType.ANALOG, self._on_analog_message)
        transport.register_callback(MessageType.DIGITAL, self._on_digital_message)
        self._set_reporting(True)

        logger.info(f"Arduino controller ready (threshold={self.threshold})")

    @classmethod
    def from_config(cls, config: ControllerConfig) -> "Arduino":
        """Open a serial controller and configure the pins listed in ``config``."""
        board = cls(SerialManager(config.arduino), threshold=config.threshold, log_mode=config.log_mode)
        for pin, mode in config.pins.items():
            board.configure_pin(pin, mode)
        return board

    @classmethod
    def open(cls, port: str = "auto", threshold: int = DEFAULT_THRESHOLD, log_mode: bool = False) -> "Arduino":
        """Open a serial controller on ``port`` with default settings."""
        return cls(SerialManager(ArduinoConfig(port=port)), threshold=threshold, log_mode=log_mode)

    def __enter__(self) -> "Arduino":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def transport(self) -> BoardTransport:
        return self._transport

    @property
    def connection_info(self) -> Dict[str, Any]:
        return self._transport.connection_info

    @property
    def closed(self) -> bool:
        return self._closed

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    @property
    def threshold(self):
        """Analog noise threshold."""
        return self._detector.threshold

    @threshold.setter
    def threshold(self, value) -> None:
        self.set_threshold(value)

    def set_threshold(self, value) -> bool:
        """
        Change the analog noise threshold.

        Returns:
            False if ``value`` is outside (0, 100); the old threshold is kept
        """
        try:
            self._detector.set_threshold(value)
        except InvalidThreshold as e:
            self._reject(e)
            return False
        return True

    def configure_pin(self, pin: int, mode: PinMode) -> bool:
        """
        Put a pin into a mode.

        The pin's record is reset to the default value for its class and
        any previous history is discarded. ``PinMode.OFF`` is ignored.

        Returns:
            True if the pin was configured
        """
        try:
            pin_class = self._guard.authorize_configuration(pin, mode)
        except PinStateError as e:
            self._reject(e)
            return False

        if pin_class is None:
            return False

        with self._store.lock:
            if pin_class is PinClass.DIGITAL:
                self._store.set(pin_class, pin, DigitalPinState(False, mode))
                self._release(PinClass.PWM, pin)
                port = port_of(pin)
                bit = pin % PINS_PER_PORT
                last = self._store.get_port(port).last_byte
                self._store.set_port(port, PortState(last & ~(1 << bit) & 0xFF))
            else:
                self._store.set(pin_class, pin, AnalogPinState(0, mode))
                if pin_class is PinClass.PWM:
                    self._release(PinClass.DIGITAL, pin)

        hardware_mode = HARDWARE_MODES.get(mode)
        if hardware_mode is not None:
            self._transport.set_pin_mode(pin, hardware_mode)

        logger.debug(f"Pin {pin} configured as {mode.value}")
        return True

    def _release(self, pin_class: PinClass, pin: int) -> None:
        """Turn off the record a pin holds in another map."""
        if self._store.has(pin_class, pin):
            record = self._store.get(pin_class, pin)
            if record.mode is not PinMode.OFF:
                self._store.set(pin_class, pin, type(record)())

    def pin_mode(self, pin: int, pin_class: Optional[PinClass] = None) -> PinMode:
        """
        Configured mode of a pin, Off for unknown pins.

        Without ``pin_class`` the pin is looked up by digital pin number,
        covering both digital and PWM modes. Analog inputs need
        ``PinClass.ANALOG``.
        """
        classes = [pin_class] if pin_class else [PinClass.DIGITAL, PinClass.PWM]
        for candidate in classes:
            if self._store.has(candidate, pin):
                mode = self._store.get(candidate, pin).mode
                if mode is not PinMode.OFF:
                    return mode
        return PinMode.OFF

    def snapshot(self) -> Dict[str, Dict[int, object]]:
        """Copy of the current pin store."""
        return self._store.snapshot()

    # =========================================================================
    # READ / WRITE
    # =========================================================================

    def digital_read(self, pin: int) -> bool:
        """
        Last reported level of a digital input.

        Returns:
            The level, or False if the pin is not a configured digital input
        """
        try:
            record = self._guard.authorize(Operation.DIGITAL_READ, pin)
        except PinStateError as e:
            self._reject(e)
            return DIGITAL_READ_DEFAULT
        return record.value

    def digital_write(self, pin: int, value: bool) -> bool:
        """
        Drive a digital output.

        Returns:
            True if the command was handed to the transport
        """
        try:
            self._guard.authorize(Operation.DIGITAL_WRITE, pin)
        except PinStateError as e:
            self._reject(e)
            return False
        return self._transport.digital_write(pin, bool(value))

    def analog_read(self, pin: int) -> int:
        """
        Last reported value of an analog input.

        Returns:
            The value, or -1 if the pin is not a configured analog input
        """
        try:
            record = self._guard.authorize(Operation.ANALOG_READ, pin)
        except PinStateError as e:
            self._reject(e)
            return ANALOG_READ_DEFAULT
        return record.value

    def analog_write(self, pin: int, value: int) -> bool:
        """
        Set the PWM duty of an analog output.

        Returns:
            True if the command was handed to the transport
        """
        try:
            self._guard.authorize(Operation.ANALOG_WRITE, pin)
        except PinStateError as e:
            self._reject(e)
            return False
        return self._transport.analog_write(pin, int(value))

    def _reject(self, error: PinStateError) -> None:
        self.last_error = error
        if self.log_mode:
            logger.warning(str(error))

    # =========================================================================
    # SUBSCRIPTIONS
    # =========================================================================

    def on_analog_changed(self, callback: AnalogChangeHandler) -> int:
        """
        Subscribe to analog input changes.

        Args:
            callback: Called with (controller, pin, value)

        Returns:
            Handle for ``unsubscribe``
        """
        return self._subscribe(PinClass.ANALOG, callback)

    def on_digital_changed(self, callback: DigitalChangeHandler) -> int:
        """
        Subscribe to digital input changes.

        Args:
            callback: Called with (controller, pin, level)

        Returns:
            Handle for ``unsubscribe``
        """
        return self._subscribe(PinClass.DIGITAL, callback)

    def unsubscribe(self, handle: int) -> bool:
        """Remove a subscription. Returns False for unknown handles."""
        with self._subscriber_lock:
            for subscribers in self._subscribers.values():
                if subscribers.pop(handle, None) is not None:
                    return True
        return False

    def _subscribe(self, pin_class: PinClass, callback: Callable) -> int:
        with self._subscriber_lock:
            handle = next(self._handles)
            self._subscribers[pin_class][handle] = callback
            logger.debug(f"Added {pin_class.value} subscriber, total: {len(self._subscribers[pin_class])}")
        return handle

    def _notify_subscribers(self, change: PinChange) -> None:
        with self._subscriber_lock:
            callbacks = list(self._subscribers[change.pin_class].values())
        for callback in callbacks:
            try:
                callback(self, change.pin, change.value)
            except Exception as e:
                logger.error(f"Subscriber callback error: {e}")

    # =========================================================================
    # INBOUND MESSAGES
    # =========================================================================

    def handle_analog_message(self, pin: int, value: int) -> Optional[PinChange]:
        """
        Process an analog report.

        Returns:
            The change that was dispatched, if any
        """
        change = self._detector.detect_analog(pin, value)
        if change is not None:
            self._notify_subscribers(change)
        return change

    def handle_digital_message(self, port: int, port_byte: int) -> List[PinChange]:
        """
        Process a digital port report.

        Returns:
            Changes dispatched, in ascending pin order
        """
        changes = self._detector.detect_digital(port, port_byte)
        for change in changes:
            self._notify_subscribers(change)
        return changes

    def _on_analog_message(self, message: BoardMessage) -> None:
        self.handle_analog_message(message.index, message.value)

    def _on_digital_message(self, message: BoardMessage) -> None:
        self.handle_digital_message(message.index, message.value)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def _set_reporting(self, enabled: bool) -> None:
        for pin in range(ANALOG_PIN_COUNT):
            self._transport.set_analog_reporting(pin, enabled)
        for port in range(PORT_COUNT):
            self._transport.set_digital_port_reporting(port, enabled)

    def close(self) -> None:
        """Stop reporting and release the transport. Safe to call twice."""
        if self._closed:
            return
        self._closed = True

        self._transport.unregister_callback(MessageType.ANALOG, self._on_analog_message)
        self._transport.unregister_callback(MessageType.DIGITAL, self._on_digital_message)

        if self._transport.is_connected:
            self._set_reporting(False)
        self._transport.disconnect()

        logger.info("Arduino controller closed")
