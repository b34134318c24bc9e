"""
Serial Communication Manager
==============================
Firmata transport over a USB serial port.

Features:
- Auto-detection of Arduino serial ports
- Background reader thread feeding the Firmata parser
- Decoded messages dispatched to callbacks in arrival order
- Thread-safe command writes
"""

from __future__ import annotations

import threading
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

import serial
import serial.tools.list_ports
from loguru import logger

from .firmata import (
    FirmataParser,
    encode_analog_write,
    encode_digital_port,
    encode_report_analog,
    encode_report_digital,
    encode_set_pin_mode,
    encode_system_reset,
)
from .models import ArduinoConfig, ConnectionStatus, HardwareMode, MessageType
from .transport import BoardTransport

ARDUINO_DESCRIPTIONS = ("arduino", "ch340", "cp210", "ftdi")
ARDUINO_MANUFACTURERS = ("arduino", "wch")

PWM_MAX = 255


class SerialManager(BoardTransport):
    """
    Manages the serial link to a StandardFirmata board.

    Usage:
        manager = SerialManager(ArduinoConfig(port="/dev/ttyACM0"))
        manager.register_callback(MessageType.ANALOG, handle_analog)
        manager.connect()
        manager.set_analog_reporting(0, True)
        ...
        manager.disconnect()
    """

    def __init__(self, config: ArduinoConfig):
        """
        Initialize serial manager.

        Args:
            config: Arduino connection parameters
        """
        super().__init__()
        self.config = config
        self._serial: Optional[serial.Serial] = None
        self._port_name: Optional[str] = None

        self._parser = FirmataParser()
        self._output_ports: Dict[int, int] = {}
        self.firmware_version: Optional[str] = None

        # Statistics
        self._commands_sent = 0
        self._bytes_received = 0
        self._messages_received = 0
        self._last_message_time: Optional[datetime] = None

        # Threading
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._reader: Optional[threading.Thread] = None

        self.register_callback(MessageType.VERSION, self._on_version)

        logger.info(f"SerialManager initialized for device: {config.device_id}")

    @property
    def connection_info(self) -> Dict[str, Any]:
        """Port and baud rate actually in use."""
        return {
            "port": self._port_name or self.config.port,
            "baudrate": self.config.baudrate,
        }

    @property
    def statistics(self) -> Dict[str, Any]:
        """Get communication statistics."""
        return {
            "status": self._status.value,
            "commands_sent": self._commands_sent,
            "bytes_received": self._bytes_received,
            "messages_received": self._messages_received,
            "bytes_dropped": self._parser.dropped_bytes,
            "last_message_time": self._last_message_time.isoformat() if self._last_message_time else None,
        }

    @staticmethod
    def list_available_ports() -> List[Dict[str, str]]:
        """
        List all available serial ports.

        Returns:
            List of port information dictionaries
        """
        ports = []
        for port in serial.tools.list_ports.comports():
            ports.append({
                "device": port.device,
                "name": port.name,
                "description": port.description,
                "hwid": port.hwid,
                "manufacturer": port.manufacturer or "Unknown",
            })
        return ports

    @staticmethod
    def find_arduino_port() -> Optional[str]:
        """
        Auto-detect Arduino serial port.

        Returns:
            Port device path or None if not found
        """
        for port in serial.tools.list_ports.comports():
            description = (port.description or "").lower()
            manufacturer = (port.manufacturer or "").lower()
            if any(name in description for name in ARDUINO_DESCRIPTIONS) or \
                    any(name in manufacturer for name in ARDUINO_MANUFACTURERS):
                logger.info(f"Auto-detected Arduino on {port.device}")
                return port.device
        return None

    def connect(self) -> bool:
        """
        Open the serial port and start the reader thread.

        Returns:
            True if connection successful
        """
        if self.is_connected:
            return True

        self._status = ConnectionStatus.CONNECTING
        logger.info("Connecting to serial device...")

        port = self.config.port
        discovered = port == "auto"
        if discovered:
            port = self.find_arduino_port()
            if not port:
                logger.error("Could not auto-detect Arduino port")
                self._status = ConnectionStatus.ERROR
                return False

        try:
            self._serial = serial.Serial(
                port=port,
                baudrate=self.config.baudrate,
                timeout=self.config.timeout_s,
                write_timeout=self.config.timeout_s,
            )

            # Wait for Arduino reset
            time.sleep(self.config.reset_delay_s)

            if discovered:
                # Unknown prior state: reset the firmware before use
                self._serial.write(encode_system_reset())
                self._serial.flush()

            # Clear buffers
            self._serial.reset_input_buffer()
            self._serial.reset_output_buffer()

        except serial.SerialException as e:
            logger.error(f"Serial connection failed: {e}")
            self._serial = None
            self._status = ConnectionStatus.ERROR
            return False

        self._port_name = port
        self._parser.reset()
        self._output_ports.clear()
        self._status = ConnectionStatus.CONNECTED
        self._start_reader()

        logger.success(f"Connected to {port} at {self.config.baudrate} baud")
        return True

    def disconnect(self) -> None:
        """Stop the reader thread and close the port. Safe to call twice."""
        self._stop_event.set()
        if self._reader and self._reader is not threading.current_thread():
            self._reader.join(timeout=max(1.0, self.config.timeout_s * 5))
        self._reader = None

        if self._serial and self._serial.is_open:
            self._serial.close()
        self._serial = None

        if self._status != ConnectionStatus.DISCONNECTED:
            self._status = ConnectionStatus.DISCONNECTED
            logger.info("Serial connection closed")

    def _send(self, data: bytes) -> bool:
        """
        Write one encoded command.

        Returns:
            True if written successfully
        """
        with self._lock:
            return self._write_locked(data)

    def _write_locked(self, data: bytes) -> bool:
        """Write with ``_lock`` already held by the caller."""
        if not self.is_connected:
            logger.warning("Cannot send command: not connected")
            return False

        try:
            self._serial.write(data)
            self._serial.flush()
        except serial.SerialException as e:
            logger.error(f"Failed to send command: {e}")
            return False

        self._commands_sent += 1
        logger.trace(f"Sent {data.hex()}")
        return True

    def set_pin_mode(self, pin: int, mode: HardwareMode) -> bool:
        return self._send(encode_set_pin_mode(pin, mode))

    def digital_write(self, pin: int, value: bool) -> bool:
        """Set one output level; the firmware takes whole ports."""
        port, bit = divmod(pin, 8)
        with self._lock:
            port_byte = self._output_ports.get(port, 0)
            if value:
                port_byte |= 1 << bit
            else:
                port_byte &= ~(1 << bit) & 0xFF
            self._output_ports[port] = port_byte
            # Port bytes reach the wire in update order
            return self._write_locked(encode_digital_port(port, port_byte))

    def analog_write(self, pin: int, value: int) -> bool:
        value = max(0, min(PWM_MAX, int(value)))
        return self._send(encode_analog_write(pin, value))

    def set_analog_reporting(self, pin: int, enabled: bool) -> bool:
        return self._send(encode_report_analog(pin, enabled))

    def set_digital_port_reporting(self, port: int, enabled: bool) -> bool:
        return self._send(encode_report_digital(port, enabled))

    def _start_reader(self) -> None:
        self._stop_event.clear()
        self._reader = threading.Thread(target=self._read_loop, name="firmata-reader", daemon=True)
        self._reader.start()

    def _read_loop(self) -> None:
        """Continuous read loop."""
        while not self._stop_event.is_set():
            try:
                waiting = self._serial.in_waiting
                if waiting:
                    self._process_incoming(self._serial.read(waiting))
                else:
                    self._stop_event.wait(0.001)  # 1ms polling

            except (serial.SerialException, OSError) as e:
                logger.error(f"Read error: {e}")
                self._status = ConnectionStatus.ERROR
                self._stop_event.wait(1.0)

    def _process_incoming(self, data: bytes) -> int:
        """
        Decode received bytes and dispatch complete messages.

        Returns:
            Number of messages dispatched
        """
        self._bytes_received += len(data)
        messages = self._parser.feed(data)
        for message in messages:
            self._messages_received += 1
            self._last_message_time = datetime.now()
            self._dispatch(message)
        return len(messages)

    def _on_version(self, message) -> None:
        self.firmware_version = f"{message.index}.{message.value}"
        logger.info(f"Firmata protocol version {self.firmware_version}")
