"""
Tests for the hardware interface: Firmata framing, serial transport and
sketch upload. Serial ports and avrdude are mocked.
"""

import subprocess
import threading
import time
from types import SimpleNamespace
from unittest.mock import patch

import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import serial

from hardware_interface import (
    ArduinoConfig,
    BoardMessage,
    BoardTransport,
    ConnectionStatus,
    FirmataParser,
    HardwareMode,
    MessageType,
    SerialManager,
    SketchUploader,
)
from hardware_interface.firmata import (
    encode_analog_write,
    encode_digital_port,
    encode_report_analog,
    encode_report_digital,
    encode_set_pin_mode,
    encode_system_reset,
)


class TestFirmataEncoding:
    """Tests for outbound command encoding."""

    def test_set_pin_mode(self):
        assert encode_set_pin_mode(13, HardwareMode.OUTPUT) == bytes([0xF4, 13, 0x01])
        assert encode_set_pin_mode(11, HardwareMode.PWM) == bytes([0xF4, 11, 0x03])

    def test_reporting(self):
        assert encode_report_analog(3, True) == bytes([0xC3, 0x01])
        assert encode_report_digital(1, False) == bytes([0xD1, 0x00])

    def test_fourteen_bit_values(self):
        assert encode_analog_write(9, 200) == bytes([0xE9, 0x48, 0x01])
        assert encode_digital_port(0, 0x80) == bytes([0x90, 0x00, 0x01])

    def test_system_reset(self):
        assert encode_system_reset() == b"\xff"


class TestFirmataParser:
    """Tests for the streaming decoder."""

    def setup_method(self):
        self.parser = FirmataParser()

    def test_analog_message(self):
        messages = self.parser.feed(bytes([0xE0, 0x10, 0x03]))
        assert messages == [BoardMessage(MessageType.ANALOG, 0, 400)]

    def test_digital_message_masked_to_byte(self):
        messages = self.parser.feed(bytes([0x91, 0x7F, 0x03]))
        assert messages == [BoardMessage(MessageType.DIGITAL, 1, 0xFF)]

    def test_version_message(self):
        assert self.parser.feed(bytes([0xF9, 0x02, 0x05])) == [BoardMessage(MessageType.VERSION, 2, 5)]

    def test_split_across_reads(self):
        assert self.parser.feed(bytes([0xE2, 0x05])) == []
        assert self.parser.feed(bytes([0x01])) == [BoardMessage(MessageType.ANALOG, 2, 133)]

    def test_multiple_messages_in_order(self):
        data = bytes([0xE0, 0x01, 0x00, 0x90, 0x04, 0x00, 0xE1, 0x02, 0x00])
        messages = self.parser.feed(data)
        assert [m.message_type for m in messages] == [MessageType.ANALOG, MessageType.DIGITAL, MessageType.ANALOG]

    def test_sysex_skipped(self):
        data = bytes([0xF0, 0x79, 0x02, 0x05, 0x41, 0x00, 0xF7, 0x90, 0x04, 0x00])
        assert self.parser.feed(data) == [BoardMessage(MessageType.DIGITAL, 0, 4)]

    def test_partial_sysex_waits(self):
        assert self.parser.feed(bytes([0xF0, 0x79])) == []
        assert self.parser.feed(bytes([0xF7, 0xE0, 0x01, 0x00])) == [BoardMessage(MessageType.ANALOG, 0, 1)]

    def test_stray_bytes_dropped(self):
        messages = self.parser.feed(bytes([0x05, 0x06, 0xE1, 0x02, 0x00]))
        assert messages == [BoardMessage(MessageType.ANALOG, 1, 2)]
        assert self.parser.dropped_bytes == 2

    def test_truncated_message_resyncs(self):
        messages = self.parser.feed(bytes([0xE0, 0x05, 0x90, 0x01, 0x00]))
        assert messages == [BoardMessage(MessageType.DIGITAL, 0, 1)]
        assert self.parser.dropped_bytes == 2

    def test_unknown_command_dropped(self):
        messages = self.parser.feed(bytes([0xF4, 0xE0, 0x01, 0x00]))
        assert messages == [BoardMessage(MessageType.ANALOG, 0, 1)]


class TestBoardTransport:
    """Tests for the transport base class."""

    def test_partial_transport_cannot_be_created(self):
        class ReadOnlyTransport(BoardTransport):
            def connect(self):
                return True

            def disconnect(self):
                pass

        with pytest.raises(TypeError):
            ReadOnlyTransport()


@pytest.fixture
def serial_port():
    """Patch pyserial so no real port is opened."""
    with patch("hardware_interface.serial_manager.serial.Serial") as serial_cls:
        port = serial_cls.return_value
        port.in_waiting = 0
        port.is_open = True
        port.serial_cls = serial_cls
        yield port


def make_manager(port="/dev/ttyACM0"):
    return SerialManager(ArduinoConfig(port=port, reset_delay_s=0, timeout_s=0.05))


class TestSerialManager:
    """Tests for the pyserial transport."""

    def test_connect_and_disconnect(self, serial_port):
        manager = make_manager()
        assert manager.connect() is True
        assert manager.status == ConnectionStatus.CONNECTED
        serial_port.serial_cls.assert_called_once_with(
            port="/dev/ttyACM0", baudrate=57600, timeout=0.05, write_timeout=0.05
        )
        serial_port.reset_input_buffer.assert_called_once()
        serial_port.write.assert_not_called()
        assert manager.connection_info == {"port": "/dev/ttyACM0", "baudrate": 57600}

        manager.disconnect()
        manager.disconnect()
        serial_port.close.assert_called_once()
        assert manager.status == ConnectionStatus.DISCONNECTED

    def test_connect_failure(self, serial_port):
        serial_port.serial_cls.side_effect = serial.SerialException("port busy")
        manager = make_manager()
        assert manager.connect() is False
        assert manager.status == ConnectionStatus.ERROR

    def test_auto_discovery_resets_board(self, serial_port):
        ports = [
            SimpleNamespace(device="/dev/ttyS0", description="n/a", manufacturer=None),
            SimpleNamespace(device="/dev/ttyUSB0", description="USB2.0-Serial CH340", manufacturer=None),
        ]
        with patch("hardware_interface.serial_manager.serial.tools.list_ports.comports", return_value=ports):
            manager = make_manager(port="auto")
            assert manager.connect() is True
        try:
            assert manager.connection_info["port"] == "/dev/ttyUSB0"
            serial_port.write.assert_called_once_with(b"\xff")
        finally:
            manager.disconnect()

    def test_auto_discovery_without_board(self, serial_port):
        with patch("hardware_interface.serial_manager.serial.tools.list_ports.comports", return_value=[]):
            manager = make_manager(port="auto")
            assert manager.connect() is False
        assert manager.status == ConnectionStatus.ERROR
        serial_port.serial_cls.assert_not_called()

    def test_commands_require_connection(self, serial_port):
        manager = make_manager()
        assert manager.set_pin_mode(4, HardwareMode.INPUT) is False
        serial_port.write.assert_not_called()

    def test_digital_write_tracks_port_byte(self, serial_port):
        manager = make_manager()
        manager.connect()
        try:
            manager.digital_write(13, True)
            serial_port.write.assert_called_with(bytes([0x91, 0x20, 0x00]))
            manager.digital_write(12, True)
            serial_port.write.assert_called_with(bytes([0x91, 0x30, 0x00]))
            manager.digital_write(13, False)
            serial_port.write.assert_called_with(bytes([0x91, 0x10, 0x00]))
            manager.digital_write(7, True)
            serial_port.write.assert_called_with(bytes([0x90, 0x00, 0x01]))
        finally:
            manager.disconnect()

    def test_concurrent_digital_writes_keep_port_order(self, serial_port):
        manager = make_manager()
        manager.connect()
        first_encoding = threading.Event()

        def slow_encode(port, port_byte):
            if port_byte == 0b100:
                first_encoding.set()
                time.sleep(0.1)
            return encode_digital_port(port, port_byte)

        try:
            with patch("hardware_interface.serial_manager.encode_digital_port", side_effect=slow_encode):
                writer = threading.Thread(target=manager.digital_write, args=(2, True))
                writer.start()
                assert first_encoding.wait(1.0)
                manager.digital_write(3, True)
                writer.join()
            serial_port.write.assert_called_with(bytes([0x90, 0x0C, 0x00]))
        finally:
            manager.disconnect()

    def test_analog_write_clamped(self, serial_port):
        manager = make_manager()
        manager.connect()
        try:
            manager.analog_write(11, 300)
            serial_port.write.assert_called_with(bytes([0xEB, 0x7F, 0x01]))
            manager.analog_write(3, -5)
            serial_port.write.assert_called_with(bytes([0xE3, 0x00, 0x00]))
            assert manager.statistics["commands_sent"] == 2
        finally:
            manager.disconnect()

    def test_incoming_bytes_dispatched(self, serial_port):
        manager = make_manager()
        received = []
        manager.register_callback(MessageType.ANALOG, received.append)

        count = manager._process_incoming(bytes([0xE0, 0x10, 0x03, 0x90, 0x04, 0x00]))
        assert count == 2
        assert received == [BoardMessage(MessageType.ANALOG, 0, 400)]
        assert manager.statistics["messages_received"] == 2

        manager.unregister_callback(MessageType.ANALOG, received.append)
        manager._process_incoming(bytes([0xE0, 0x00, 0x00]))
        assert len(received) == 1

    def test_version_recorded(self, serial_port):
        manager = make_manager()
        manager._process_incoming(bytes([0xF9, 0x02, 0x05]))
        assert manager.firmware_version == "2.5"

    def test_list_available_ports(self):
        ports = [SimpleNamespace(device="COM4", name="COM4", description="Arduino Uno", hwid="USB", manufacturer=None)]
        with patch("hardware_interface.serial_manager.serial.tools.list_ports.comports", return_value=ports):
            listed = SerialManager.list_available_ports()
        assert listed == [{
            "device": "COM4",
            "name": "COM4",
            "description": "Arduino Uno",
            "hwid": "USB",
            "manufacturer": "Unknown",
        }]


class TestSketchUploader:
    """Tests for avrdude-based uploads."""

    def setup_method(self):
        self.which = patch("hardware_interface.uploader.shutil.which", return_value="/usr/bin/avrdude")
        self.which.start()

    def teardown_method(self):
        self.which.stop()

    def test_command(self):
        uploader = SketchUploader("/dev/ttyACM0", "firmata.hex")
        command = uploader.command("/dev/ttyACM0")
        assert command[0] == "avrdude"
        assert command[command.index("-P") + 1] == "/dev/ttyACM0"
        assert command[command.index("-p") + 1] == "atmega328p"
        assert command[-1] == "flash:w:firmata.hex:i"

    def test_upload_success(self, tmp_path):
        hex_file = tmp_path / "firmata.hex"
        hex_file.write_text(":00000001FF\n")
        completed = subprocess.CompletedProcess(args=[], returncode=0, stdout="", stderr="")
        with patch("hardware_interface.uploader.subprocess.run", return_value=completed) as run:
            assert SketchUploader("/dev/ttyACM0", str(hex_file), settle_s=0).upload() is True
        run.assert_called_once()
        assert "/dev/ttyACM0" in run.call_args[0][0]

    def test_upload_auto_port(self, tmp_path):
        hex_file = tmp_path / "firmata.hex"
        hex_file.write_text(":00000001FF\n")
        completed = subprocess.CompletedProcess(args=[], returncode=0, stdout="", stderr="")
        with patch.object(SerialManager, "find_arduino_port", return_value="/dev/ttyUSB0"), \
                patch("hardware_interface.uploader.subprocess.run", return_value=completed) as run:
            assert SketchUploader("auto", str(hex_file), settle_s=0).upload() is True
        assert "/dev/ttyUSB0" in run.call_args[0][0]

    def test_missing_avrdude(self, tmp_path):
        with patch("hardware_interface.uploader.shutil.which", return_value=None), \
                patch("hardware_interface.uploader.subprocess.run") as run:
            assert SketchUploader("/dev/ttyACM0", str(tmp_path / "x.hex")).upload() is False
        run.assert_not_called()

    def test_missing_hex_file(self, tmp_path):
        with patch("hardware_interface.uploader.subprocess.run") as run:
            assert SketchUploader("/dev/ttyACM0", str(tmp_path / "missing.hex")).upload() is False
        run.assert_not_called()

    def test_avrdude_failure(self, tmp_path):
        hex_file = tmp_path / "firmata.hex"
        hex_file.write_text(":00000001FF\n")
        failed = subprocess.CompletedProcess(args=[], returncode=1, stdout="", stderr="not in sync")
        with patch("hardware_interface.uploader.subprocess.run", return_value=failed):
            assert SketchUploader("/dev/ttyACM0", str(hex_file), settle_s=0).upload() is False

    def test_avrdude_timeout(self, tmp_path):
        hex_file = tmp_path / "firmata.hex"
        hex_file.write_text(":00000001FF\n")
        with patch("hardware_interface.uploader.subprocess.run",
                   side_effect=subprocess.TimeoutExpired(cmd="avrdude", timeout=1)):
            assert SketchUploader("/dev/ttyACM0", str(hex_file), settle_s=0).upload() is False


if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
