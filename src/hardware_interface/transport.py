"""
Board transport base class.

Concrete transports move decoded messages in and commands out; the
controller only talks to this surface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Dict, List

from loguru import logger

from .models import BoardMessage, ConnectionStatus, HardwareMode, MessageType

MessageCallback = Callable[[BoardMessage], None]


class BoardTransport(ABC):
    """
    Callback registry, connection status and outbound command surface.

    Subclasses implement the commands and call ``_dispatch`` for every
    decoded inbound message, in arrival order.
    """

    def __init__(self):
        self._status = ConnectionStatus.DISCONNECTED
        self._callbacks: Dict[MessageType, List[MessageCallback]] = {mt: [] for mt in MessageType}

    @property
    def status(self) -> ConnectionStatus:
        """Get current connection status."""
        return self._status

    @property
    def is_connected(self) -> bool:
        """Check if connected."""
        return self._status == ConnectionStatus.CONNECTED

    @property
    def connection_info(self) -> Dict[str, object]:
        return {}

    def register_callback(self, message_type: MessageType, callback: MessageCallback) -> None:
        """
        Register callback for a message type.

        Args:
            message_type: Type of message to handle
            callback: Function called with each decoded message
        """
        self._callbacks[message_type].append(callback)
        logger.debug(f"Registered callback for {message_type.name}")

    def unregister_callback(self, message_type: MessageType, callback: MessageCallback) -> None:
        """Remove a registered callback."""
        if callback in self._callbacks[message_type]:
            self._callbacks[message_type].remove(callback)

    def _dispatch(self, message: BoardMessage) -> None:
        """Dispatch message to registered callbacks."""
        for callback in list(self._callbacks[message.message_type]):
            try:
                callback(message)
            except Exception as e:
                logger.error(f"Callback error: {e}")

    @abstractmethod
    def connect(self) -> bool:
        """Open the link. Returns True once connected."""

    @abstractmethod
    def disconnect(self) -> None:
        """Close the link. Must be safe to call twice."""

    @abstractmethod
    def set_pin_mode(self, pin: int, mode: HardwareMode) -> bool:
        """Send a hardware mode for one pin."""

    @abstractmethod
    def digital_write(self, pin: int, value: bool) -> bool:
        """Drive one digital output level."""

    @abstractmethod
    def analog_write(self, pin: int, value: int) -> bool:
        """Set a PWM duty."""

    @abstractmethod
    def set_analog_reporting(self, pin: int, enabled: bool) -> bool:
        """Start or stop analog reports for one input."""

    @abstractmethod
    def set_digital_port_reporting(self, port: int, enabled: bool) -> bool:
        """Start or stop digital reports for one port."""
