"""
Firmata Framing
================
The subset of the Firmata protocol used to talk to StandardFirmata.

Message Format:
[COMMAND|CHANNEL][DATA...]

- COMMAND: high nibble of the first byte (0x80-0xEF), or the whole byte (0xF0-0xFF)
- CHANNEL: low nibble, the analog pin or digital port
- DATA: 7-bit bytes; 14-bit values are sent LSB first

SysEx frames (START_SYSEX ... END_SYSEX) are skipped.
"""

from __future__ import annotations

from enum import IntEnum
from typing import List

from loguru import logger

from .models import BoardMessage, HardwareMode, MessageType


class Command(IntEnum):
    """Firmata command bytes."""
    DIGITAL_MESSAGE = 0x90
    REPORT_ANALOG = 0xC0
    REPORT_DIGITAL = 0xD0
    ANALOG_MESSAGE = 0xE0
    START_SYSEX = 0xF0
    SET_PIN_MODE = 0xF4
    END_SYSEX = 0xF7
    REPORT_VERSION = 0xF9
    SYSTEM_RESET = 0xFF


# Inbound commands and their total length in bytes
INBOUND_SIZES = {
    Command.DIGITAL_MESSAGE: 3,
    Command.ANALOG_MESSAGE: 3,
    Command.REPORT_VERSION: 3,
}


def _split14(value: int) -> bytes:
    return bytes([value & 0x7F, (value >> 7) & 0x7F])


def encode_set_pin_mode(pin: int, mode: HardwareMode) -> bytes:
    return bytes([Command.SET_PIN_MODE, pin & 0x7F, int(mode)])


def encode_digital_port(port: int, port_byte: int) -> bytes:
    """Write all 8 output levels of a port at once."""
    return bytes([Command.DIGITAL_MESSAGE | (port & 0x0F)]) + _split14(port_byte & 0xFF)


def encode_analog_write(pin: int, value: int) -> bytes:
    return bytes([Command.ANALOG_MESSAGE | (pin & 0x0F)]) + _split14(value)


def encode_report_analog(pin: int, enabled: bool) -> bytes:
    return bytes([Command.REPORT_ANALOG | (pin & 0x0F), 1 if enabled else 0])


def encode_report_digital(port: int, enabled: bool) -> bytes:
    return bytes([Command.REPORT_DIGITAL | (port & 0x0F), 1 if enabled else 0])


def encode_system_reset() -> bytes:
    return bytes([Command.SYSTEM_RESET])


def command_of(first_byte: int) -> int:
    """Command part of a status byte."""
    return first_byte & 0xF0 if first_byte < 0xF0 else first_byte


class FirmataParser:
    """
    Incremental decoder for the inbound byte stream.

    Bytes may arrive split at any point; incomplete messages stay buffered
    until the rest arrives. Stray data bytes and unknown commands are
    discarded one byte at a time until a known command byte is found.
    """

    def __init__(self):
        self._buffer = bytearray()
        self.dropped_bytes = 0

    def reset(self) -> None:
        self._buffer.clear()

    def feed(self, data: bytes) -> List[BoardMessage]:
        """
        Append received bytes and decode every complete message.

        Returns:
            Decoded messages in stream order
        """
        self._buffer.extend(data)
        messages: List[BoardMessage] = []

        while self._buffer:
            first = self._buffer[0]

            if first < 0x80:
                self._discard(1)
                continue

            command = command_of(first)

            if command == Command.START_SYSEX:
                end = self._buffer.find(Command.END_SYSEX)
                if end == -1:
                    return messages
                del self._buffer[:end + 1]
                continue

            size = INBOUND_SIZES.get(command)
            if size is None:
                self._discard(1)
                continue

            if len(self._buffer) < size:
                return messages

            data_bytes = self._buffer[1:size]
            if any(b & 0x80 for b in data_bytes):
                # Truncated message followed by a new command byte
                self._discard(1)
                continue

            lsb, msb = data_bytes
            del self._buffer[:size]
            messages.append(self._decode(command, first, lsb, msb))

        return messages

    def _decode(self, command: int, first: int, lsb: int, msb: int) -> BoardMessage:
        if command == Command.ANALOG_MESSAGE:
            return BoardMessage(MessageType.ANALOG, first & 0x0F, lsb | (msb << 7))
        if command == Command.DIGITAL_MESSAGE:
            return BoardMessage(MessageType.DIGITAL, first & 0x0F, (lsb | (msb << 7)) & 0xFF)
        return BoardMessage(MessageType.VERSION, lsb, msb)

    def _discard(self, count: int) -> None:
        logger.trace(f"Discarding {count} byte(s): {bytes(self._buffer[:count]).hex()}")
        del self._buffer[:count]
        self.dropped_bytes += count
